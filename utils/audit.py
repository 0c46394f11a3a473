import json

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.audit_log import AuditLog
from utils.logging import get_logger
from utils.request_info import client_origin, client_user_agent

logger = get_logger(__name__)


def log_event(action: str, actor_id=None, subject=None, details=None):
    """
    Persist an audit row for the current request. Callers never pass secrets
    or hashes. A failed write is logged and does not change the response.
    """
    row = AuditLog(
        actor_id=actor_id,
        action=action,
        subject=str(subject)[:255] if subject is not None else None,
        origin=client_origin(),
        user_agent=client_user_agent(),
        details_json=json.dumps(details, default=str, sort_keys=True) if details else None,
    )
    try:
        db.session.add(row)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.warning("audit_write_failed", action=action, error=exc.__class__.__name__)
