from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from assessment_engine.core.config import settings


ROLE_VALUES = ('student', 'faculty', 'admin')


class TokenDecodeError(Exception):
    pass


def create_access_token(subject: str, roles: list[str], expires_delta: timedelta | None = None) -> str:
    """
    Issue an access token the way the hosting portal does.

    The engine never authenticates users itself; this exists for local tooling and tests.
    """
    unknown = set(roles) - set(ROLE_VALUES)
    if unknown:
        raise ValueError(f'Unknown roles: {sorted(unknown)}')
    expire = datetime.now(UTC) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {'sub': subject, 'roles': list(roles), 'token_type': 'access', 'exp': expire}
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise TokenDecodeError('Invalid access token') from exc

    if payload.get('token_type') != 'access':
        raise TokenDecodeError('Unexpected token type for access token')
    roles = payload.get('roles')
    if not isinstance(roles, list) or not all(isinstance(role, str) for role in roles):
        raise TokenDecodeError('Access token is missing a roles claim')
    return payload
