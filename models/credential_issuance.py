from models.db import db, utcnow

KIND_PROVISION = "PROVISION"
KIND_RESET = "RESET"

SOURCE_GENERATED = "GENERATED"
SOURCE_EXPLICIT = "EXPLICIT"


class CredentialIssuance(db.Model):
    __tablename__ = "credential_issuances"

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    issued_by = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True)

    kind = db.Column(db.String(20), nullable=False)            # PROVISION | RESET
    secret_source = db.Column(db.String(20), nullable=False)   # GENERATED | EXPLICIT
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    account = db.relationship("Account", back_populates="issuances", foreign_keys=[account_id])
