import enum

from sqlalchemy.orm import validates

from models.db import db, utcnow
from security.identifiers import normalize_email, normalize_index_number


class Role(str, enum.Enum):
    STUDENT = "STUDENT"
    LECTURER = "LECTURER"
    ADMIN = "ADMIN"


class Account(db.Model):
    __tablename__ = "accounts"

    id = db.Column(db.Integer, primary_key=True)

    # Login key for LECTURER/ADMIN; contact address only for students
    email = db.Column(db.String(255), unique=True, nullable=True, index=True)
    # Login key for STUDENT, e.g. CS/ITC/21/0001 (stored upper-case)
    index_number = db.Column(db.String(64), unique=True, nullable=True, index=True)

    role = db.Column(db.String(20), nullable=False, index=True)

    # NULL until an administrator provisions credentials
    password_hash = db.Column(db.String(255), nullable=True)

    name = db.Column(db.String(120), nullable=False)
    avatar_ref = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    issuances = db.relationship(
        "CredentialIssuance",
        back_populates="account",
        foreign_keys="CredentialIssuance.account_id",
        lazy=True,
    )

    @validates("email")
    def _normalize_email(self, key, value):
        return normalize_email(value) or None

    @validates("index_number")
    def _normalize_index_number(self, key, value):
        return normalize_index_number(value) or None

    @validates("role")
    def _validate_role(self, key, value):
        return Role(value).value

    @property
    def is_student(self) -> bool:
        return self.role == Role.STUDENT.value

    @property
    def has_credentials(self) -> bool:
        return self.password_hash is not None

    @property
    def login_identifier(self):
        return self.index_number if self.is_student else self.email
