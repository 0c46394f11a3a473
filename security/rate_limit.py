"""Fixed-window cap on login requests per origin, checked before any credential work."""
from datetime import timedelta
from typing import Optional, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.db import utcnow
from models.login_rate_window import LoginRateWindow
from utils.request_info import client_origin


def _window_seconds() -> int:
    return int(current_app.config.get("LOGIN_RATE_WINDOW_SECONDS", 60))


def _find_window(origin: str) -> Optional[LoginRateWindow]:
    return LoginRateWindow.query.filter_by(origin=origin).first()


def _current_window(origin: str, now) -> LoginRateWindow:
    window = _find_window(origin)
    if window is None:
        window = LoginRateWindow(origin=origin, window_start=now, request_count=0)
        db.session.add(window)
        try:
            db.session.flush()
            return window
        except IntegrityError:
            # a concurrent request opened the window first
            db.session.rollback()
            window = LoginRateWindow.query.filter_by(origin=origin).one()

    if now >= window.window_start + timedelta(seconds=_window_seconds()):
        window.window_start = now
        window.request_count = 0
    return window


def check_login_rate(origin: Optional[str] = None, now=None) -> Tuple[bool, int]:
    """
    Count one request against the origin's window.
    Returns (allowed, retry_after_seconds); retry_after is 0 when allowed.
    """
    origin = origin or client_origin()
    now = now or utcnow()
    limit = int(current_app.config.get("LOGIN_RATE_MAX_REQUESTS", 30))

    window = _current_window(origin, now)
    window.request_count += 1
    db.session.commit()

    if window.request_count <= limit:
        return True, 0
    window_end = window.window_start + timedelta(seconds=_window_seconds())
    return False, max(int((window_end - now).total_seconds()), 1)
