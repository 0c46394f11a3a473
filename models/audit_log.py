from models.db import db, utcnow


class AuditLog(db.Model):
    """Operator-facing security trail. Never holds secrets, hashes or tokens."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    # Acting account; NULL for events before a session exists
    actor_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True, index=True)
    action = db.Column(db.String(80), nullable=False, index=True)  # LOGIN_FAIL, CREDENTIALS_RESET, ...
    # Login identifier or account id the event is about
    subject = db.Column(db.String(255), nullable=True)

    origin = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    details_json = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
