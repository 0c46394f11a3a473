from models.db import db, utcnow


class LoginAttempt(db.Model):
    """One authentication attempt. Rows are appended, never updated."""

    __tablename__ = "login_attempts"
    __table_args__ = (
        db.Index("ix_login_attempts_key_created", "identifier_key", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)

    # As typed by the caller, and the canonical form lockout is keyed on
    identifier = db.Column(db.String(255), nullable=False)
    identifier_key = db.Column(db.String(255), nullable=False)
    namespace = db.Column(db.String(20), nullable=False)

    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True, index=True)

    success = db.Column(db.Boolean, nullable=False)
    # Refused by the lockout check before any secret comparison
    blocked = db.Column(db.Boolean, default=False, nullable=False)

    origin = db.Column(db.String(64), nullable=False)
    user_agent = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
