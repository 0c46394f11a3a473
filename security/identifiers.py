"""
Login identifiers are either a staff email or a student index number.

Parsing happens once, at the boundary. Everything downstream works with the
resulting ``Email`` or ``IndexNumber`` value and its canonical ``key``.
"""
from dataclasses import dataclass
from typing import Union

INDEX_SEPARATOR = "/"
MAX_IDENTIFIER_LENGTH = 255

NAMESPACE_EMAIL = "EMAIL"
NAMESPACE_INDEX_NUMBER = "INDEX_NUMBER"


class InvalidIdentifier(ValueError):
    pass


def normalize_email(value: str) -> str:
    return (value or "").strip().lower()


def normalize_index_number(value: str) -> str:
    return (value or "").strip().upper()


@dataclass(frozen=True)
class Email:
    key: str
    namespace = NAMESPACE_EMAIL


@dataclass(frozen=True)
class IndexNumber:
    key: str
    namespace = NAMESPACE_INDEX_NUMBER


Identifier = Union[Email, IndexNumber]


def parse_identifier(raw: str) -> Identifier:
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidIdentifier("Identifier must be a non-empty string")
    if len(raw) > MAX_IDENTIFIER_LENGTH:
        raise InvalidIdentifier("Identifier is too long")

    if INDEX_SEPARATOR in raw:
        return IndexNumber(normalize_index_number(raw))
    return Email(normalize_email(raw))
