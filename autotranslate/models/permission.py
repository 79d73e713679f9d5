"""Permission grant model."""
from autotranslate import db


class Permission(db.Model):
    """Grant of one action on one collection to one access policy."""

    __tablename__ = 'directus_permissions'

    id = db.Column(db.Integer, primary_key=True)
    policy = db.Column(db.String(36), nullable=False, index=True)
    collection = db.Column(db.String(64), nullable=False)
    action = db.Column(db.String(10), nullable=False)
    permissions = db.Column(db.JSON(none_as_null=True), nullable=True)
    validation = db.Column(db.JSON(none_as_null=True), nullable=True)
    presets = db.Column(db.JSON(none_as_null=True), nullable=True)
    fields = db.Column(db.Text, nullable=True)

    def __repr__(self):
        return f'<Permission {self.policy}: {self.action} {self.collection}>'
