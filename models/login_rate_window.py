from models.db import db, utcnow


class LoginRateWindow(db.Model):
    """Fixed counting window for login requests from one origin."""

    __tablename__ = "login_rate_windows"

    id = db.Column(db.Integer, primary_key=True)
    origin = db.Column(db.String(64), unique=True, nullable=False, index=True)

    window_start = db.Column(db.DateTime, nullable=False)
    request_count = db.Column(db.Integer, default=0, nullable=False)

    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)
