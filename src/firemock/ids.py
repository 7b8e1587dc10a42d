"""
Identifier generation for message ids, document ids, uids and tokens
"""

import secrets

import ulid


def new_id() -> str:
    """Time-ordered unique identifier"""
    return str(ulid.ULID())


def new_token() -> str:
    """Opaque token string"""
    return secrets.token_urlsafe(32)
