from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from assessment_engine.core.security import ROLE_VALUES, TokenDecodeError, decode_access_token


bearer_scheme = HTTPBearer(auto_error=False)

STAFF_ROLES = frozenset({'faculty', 'admin'})


@dataclass(frozen=True)
class Principal:
    user_id: UUID
    roles: frozenset[str]

    @property
    def is_staff(self) -> bool:
        return bool(self.roles & STAFF_ROLES)


def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Not authenticated',
            headers={'WWW-Authenticate': 'Bearer'},
        )
    try:
        payload = decode_access_token(credentials.credentials)
        subject = payload.get('sub')
        if not subject:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid access token subject')
        user_id = UUID(subject)
    except (TokenDecodeError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid access token') from exc

    roles = frozenset(role for role in payload['roles'] if role in ROLE_VALUES)
    return Principal(user_id=user_id, roles=roles)


def require_roles(*required_roles: str) -> Callable:
    required_set = set(required_roles)

    def role_checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if 'admin' in principal.roles:
            return principal

        if not required_set.intersection(principal.roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Insufficient role permissions',
            )
        return principal

    return role_checker
