"""Relation metadata model."""
from autotranslate import db


class Relation(db.Model):
    """Foreign-key link as the CMS sees it.

    Exactly one row may exist per (many_collection, many_field, one_collection).
    Ids are assigned in insertion order, so the lowest id is the earliest record.
    """

    __tablename__ = 'directus_relations'

    id = db.Column(db.Integer, primary_key=True)
    many_collection = db.Column(db.String(64), nullable=False, index=True)
    many_field = db.Column(db.String(64), nullable=False)
    one_collection = db.Column(db.String(64), nullable=True)
    one_field = db.Column(db.String(64), nullable=True)
    one_collection_field = db.Column(db.String(64), nullable=True)
    one_allowed_collections = db.Column(db.Text, nullable=True)
    junction_field = db.Column(db.String(64), nullable=True)
    sort_field = db.Column(db.String(64), nullable=True)
    one_deselect_action = db.Column(db.String(255), nullable=False, default='nullify')

    def __repr__(self):
        return f'<Relation {self.id}: {self.many_collection}.{self.many_field} -> {self.one_collection}>'
