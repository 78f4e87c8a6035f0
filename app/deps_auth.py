# app/deps_auth.py
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.security import SUBJECT_PREFIX, decode_access_token
from models.profiles import AppRole

# Authorization: Bearer <token>
bearer_scheme = HTTPBearer()


@dataclass(frozen=True)
class Identity:
    """Request-scoped caller identity, handed to every handler explicitly."""

    user_id: int
    roles: frozenset[AppRole]

    def has(self, role: AppRole) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        return AppRole.ADMIN in self.roles


def _parse_roles(raw) -> frozenset[AppRole]:
    roles = set()
    for r in raw or []:
        try:
            roles.add(AppRole(str(r).lower()))
        except ValueError:
            # unknown roles from the provider are ignored
            continue
    return frozenset(roles)


def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> Identity:
    claims = decode_access_token(credentials.credentials)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token.",
        )

    subject = str(claims.get("sub"))
    if not subject.startswith(SUBJECT_PREFIX) or not subject[len(SUBJECT_PREFIX):].isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token subject is not a user.",
        )

    return Identity(
        user_id=int(subject[len(SUBJECT_PREFIX):]),
        roles=_parse_roles(claims.get("roles")),
    )


def require_roles(*roles: AppRole):
    """Dependency factory: the caller must hold at least one of `roles`."""

    def _checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        if not any(identity.has(r) for r in roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role for this operation.",
            )
        return identity

    return _checker
