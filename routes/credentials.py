from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.account import Role
from security.errors import CredentialError, WeakSecret
from security.provisioner import (
    STATUS_ALL,
    provision,
    reset_credentials,
    list_accounts_by_credential_status,
)
from security.rbac import require_roles
from utils.audit import log_event
from utils.auth_context import current_account_id
from utils.emailer import dispatch_credentials

credentials_bp = Blueprint("credentials", __name__, url_prefix="/admin/credentials")

_ERROR_STATUS = {
    "ACCOUNT_NOT_FOUND": 404,
    "ALREADY_PROVISIONED": 409,
    "WEAK_SECRET": 400,
    "UNAVAILABLE": 503,
}


def _error_response(exc: CredentialError):
    body = {"error": str(exc), "code": exc.code}
    if isinstance(exc, WeakSecret):
        body["details"] = exc.errors
    return jsonify(body), _ERROR_STATUS.get(exc.code, 400)


def _dispatcher():
    return current_app.extensions.get("credential_dispatcher", dispatch_credentials)


def _parse_request():
    data = request.get_json(silent=True) or {}
    account_id = data.get("account_id")
    secret = data.get("secret")
    notes = data.get("notes")
    if notes is not None and not isinstance(notes, str):
        notes = None
    return account_id, secret, (notes or "").strip()[:1000] or None


def _deliver(delivery, action: str, status: int):
    sent, error = _dispatcher()(delivery)

    log_event(
        action,
        actor_id=current_account_id(),
        subject=delivery.account_identifier,
        details={"issuance_id": delivery.issuance_id, "delivered": sent, "delivery_error": error},
    )

    body = {
        "issuance_id": delivery.issuance_id,
        "account_identifier": delivery.account_identifier,
        "account_email": delivery.account_email,
        "delivered": sent,
    }
    if not sent:
        # Only copy left; the admin has to pass it on by hand
        body["secret"] = delivery.secret
        body["delivery_error"] = error
    return jsonify(body), status


@credentials_bp.get("")
@require_roles(Role.ADMIN)
def list_credential_candidates():
    status = (request.args.get("status") or STATUS_ALL).strip().lower()
    role = (request.args.get("role") or "").strip().upper() or None
    if role and role not in {r.value for r in Role}:
        return jsonify(error="Unknown role"), 400

    try:
        accounts = list_accounts_by_credential_status(status, role=role)
    except ValueError:
        return jsonify(error="status must be needs_credentials, has_credentials or all"), 400
    except SQLAlchemyError:
        db.session.rollback()
        return jsonify(error="Credential store unavailable"), 503

    return jsonify(
        accounts=[
            {
                "id": a.id,
                "name": a.name,
                "role": a.role,
                "email": a.email,
                "index_number": a.index_number,
                "has_credentials": a.has_credentials,
                "created_at": a.created_at.isoformat(),
            }
            for a in accounts
        ],
        summary={
            "total": len(accounts),
            "needs_credentials": sum(1 for a in accounts if not a.has_credentials),
            "has_credentials": sum(1 for a in accounts if a.has_credentials),
        },
    ), 200


@credentials_bp.post("/provision")
@require_roles(Role.ADMIN)
def provision_credentials():
    account_id, secret, notes = _parse_request()
    if account_id is None:
        return jsonify(error="account_id is required"), 400

    try:
        delivery = provision(account_id, explicit_secret=secret, issued_by=current_account_id(), notes=notes)
    except CredentialError as exc:
        log_event(
            "CREDENTIALS_PROVISION_FAIL",
            actor_id=current_account_id(),
            subject=account_id,
            details={"code": exc.code},
        )
        return _error_response(exc)

    return _deliver(delivery, "CREDENTIALS_PROVISIONED", 201)


@credentials_bp.post("/reset")
@require_roles(Role.ADMIN)
def reset():
    account_id, secret, notes = _parse_request()
    if account_id is None:
        return jsonify(error="account_id is required"), 400

    try:
        delivery = reset_credentials(account_id, explicit_secret=secret, issued_by=current_account_id(), notes=notes)
    except CredentialError as exc:
        log_event(
            "CREDENTIALS_RESET_FAIL",
            actor_id=current_account_id(),
            subject=account_id,
            details={"code": exc.code},
        )
        return _error_response(exc)

    return _deliver(delivery, "CREDENTIALS_RESET", 200)
