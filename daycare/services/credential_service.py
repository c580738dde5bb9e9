"""
Credential helpers: password hashing, JWT issuance/validation and opaque tokens.

Pure computation only. Persisting a generated token is the caller's job.
"""
import secrets
from datetime import timedelta
from typing import Optional

import jwt
from flask import current_app
from werkzeug.security import generate_password_hash, check_password_hash

from daycare.exceptions import UnauthorizedError
from daycare.utils.dates import utcnow

PASSWORD_HASH_METHOD = 'scrypt'
OPAQUE_TOKEN_BYTES = 32  # 256 bits -> 64 hex chars
TEMPORARY_PASSWORD_BYTES = 8


def hash_password(plain: str) -> str:
    """One-way salted hash."""
    return generate_password_hash(plain, method=PASSWORD_HASH_METHOD)


def verify_password(plain: str, password_hash: Optional[str]) -> bool:
    if not password_hash or plain is None:
        return False
    return check_password_hash(password_hash, plain)


def issue_token(user_id: str, email: str, role: str, tenant_id: Optional[str] = None) -> str:
    """
    Sign a JWT for an authenticated user.

    Payload: sub, email, role, tenantId (omitted for SUPER_ADMIN), iat, exp.
    """
    cfg = current_app.config
    now = utcnow()
    payload = {
        'sub': user_id,
        'email': email,
        'role': role,
        'iat': now,
        'exp': now + timedelta(seconds=cfg['JWT_EXPIRES_IN']),
    }
    if tenant_id:
        payload['tenantId'] = tenant_id
    return jwt.encode(payload, cfg['JWT_SECRET'], algorithm=cfg['JWT_ALGORITHM'])


def decode_token(token: str) -> dict:
    """
    Validate signature and expiry of a JWT.

    Raises:
        UnauthorizedError: If the token is expired, malformed or badly signed
    """
    cfg = current_app.config
    try:
        return jwt.decode(token, cfg['JWT_SECRET'], algorithms=[cfg['JWT_ALGORITHM']])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError('Token has expired')
    except jwt.InvalidTokenError:
        raise UnauthorizedError('Invalid token')


def generate_opaque_token() -> str:
    """Random hex string used for email verification and invitation links."""
    return secrets.token_hex(OPAQUE_TOKEN_BYTES)


def generate_temporary_password() -> str:
    return secrets.token_hex(TEMPORARY_PASSWORD_BYTES)
