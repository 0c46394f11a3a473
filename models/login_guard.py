from models.db import db, utcnow


class LoginGuard(db.Model):
    """Row lock target that serializes check-then-append per identifier."""

    __tablename__ = "login_guards"

    id = db.Column(db.Integer, primary_key=True)
    identifier_key = db.Column(db.String(255), unique=True, nullable=False, index=True)

    last_attempt_at = db.Column(db.DateTime, default=utcnow, nullable=False)
