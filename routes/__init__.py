from .health import health_bp
from .auth import auth_bp
from .credentials import credentials_bp
