"""Field metadata model."""
from autotranslate import db


class FieldMeta(db.Model):
    """Per-field metadata row. ``special`` holds the capability marker."""

    __tablename__ = 'directus_fields'

    id = db.Column(db.Integer, primary_key=True)
    collection = db.Column(db.String(64), nullable=False, index=True)
    field = db.Column(db.String(64), nullable=False)
    special = db.Column(db.String(64), nullable=True)
    interface = db.Column(db.String(64), nullable=True)
    options = db.Column(db.JSON, nullable=True)
    display = db.Column(db.String(64), nullable=True)
    readonly = db.Column(db.Boolean, nullable=False, default=False)
    hidden = db.Column(db.Boolean, nullable=False, default=False)
    sort = db.Column(db.Integer, nullable=True)
    width = db.Column(db.String(30), nullable=True, default='full')
    note = db.Column(db.Text, nullable=True)

    def __repr__(self):
        return f'<FieldMeta {self.collection}.{self.field} special={self.special}>'
