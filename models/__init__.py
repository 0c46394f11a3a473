from .db import db
from .account import Account, Role
from .audit_log import AuditLog
from .login_attempt import LoginAttempt
from .login_guard import LoginGuard
from .credential_issuance import CredentialIssuance
from .login_rate_window import LoginRateWindow
