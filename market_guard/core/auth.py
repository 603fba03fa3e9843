"""Bearer token authentication and role checks.

Callers authenticate with a signed JWT in the ``Authorization: Bearer``
header. The verified claims become a ``Principal`` that carries explicit
roles, and privileged routes check them through ``require_role`` instead of
comparing usernames.

Expected claims:
- ``sub``: user id (required)
- ``wallet_address``: caller's wallet (optional)
- ``roles``: list of role names (optional)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Annotated, Callable

import jwt
from fastapi import Depends, Header

from market_guard.core.audit import log_audit_event
from market_guard.core.config import settings
from market_guard.core.errors import AuthenticationAppError, AuthorizationAppError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller."""

    user_id: str
    wallet_address: str | None = None
    roles: frozenset[str] = field(default_factory=frozenset)

    def has_role(self, role: str) -> bool:
        return role in self.roles


def get_bearer_token(authorization: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header.

    Raises:
        AuthenticationAppError: If the header is missing or malformed.
    """
    if not authorization:
        raise AuthenticationAppError(
            code="missing_token",
            message="Missing Authorization header",
        )

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationAppError(
            code="invalid_authorization_header",
            message="Authorization header must use the Bearer scheme",
        )
    return token.strip()


def _parse_roles(raw: object) -> frozenset[str]:
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        return frozenset({raw})
    if isinstance(raw, (list, tuple)):
        return frozenset(str(role) for role in raw)
    raise AuthenticationAppError(
        code="malformed_token",
        message="Token roles claim must be a list of strings",
    )


def decode_principal(token: str) -> Principal:
    """Verify a bearer token and build the principal it describes.

    Args:
        token: Encoded JWT.

    Returns:
        Principal built from the verified claims.

    Raises:
        AuthenticationAppError: If verification is not configured, the token
            is expired or invalid, or the ``sub`` claim is missing.
    """
    cfg = settings.auth
    if not cfg.jwt_secret:
        logger.error("auth.not_configured", extra={"reason": "jwt_secret_missing"})
        raise AuthenticationAppError(
            code="auth_not_configured",
            message="Token verification is not configured",
            details={"hint": "Set AUTH_JWT_SECRET"},
        )

    options = {"require": ["sub"]}
    try:
        payload = jwt.decode(
            token,
            cfg.jwt_secret,
            algorithms=[cfg.jwt_algorithm],
            issuer=cfg.jwt_issuer,
            audience=cfg.jwt_audience,
            options=options,
        )
    except jwt.ExpiredSignatureError as exc:
        logger.info("auth.token_expired")
        raise AuthenticationAppError(code="token_expired", message="Token expired") from exc
    except jwt.InvalidTokenError as exc:
        logger.warning("auth.token_invalid", extra={"error_type": type(exc).__name__})
        raise AuthenticationAppError(code="invalid_token", message="Invalid token") from exc

    user_id = payload.get("sub")
    if not user_id or not isinstance(user_id, str):
        raise AuthenticationAppError(
            code="malformed_token",
            message="Token subject is missing",
        )

    return Principal(
        user_id=user_id,
        wallet_address=payload.get("wallet_address"),
        roles=_parse_roles(payload.get("roles")),
    )


async def get_current_principal(
    authorization: Annotated[str | None, Header()] = None,
) -> Principal:
    """FastAPI dependency requiring an authenticated caller."""
    principal = decode_principal(get_bearer_token(authorization))
    logger.debug("auth.success", extra={"user_id": principal.user_id})
    return principal


async def get_optional_principal(
    authorization: Annotated[str | None, Header()] = None,
) -> Principal | None:
    """FastAPI dependency returning None for anonymous callers.

    A header that is present but invalid is still rejected.
    """
    if authorization is None:
        return None
    return decode_principal(get_bearer_token(authorization))


def require_role(principal: Principal, role: str) -> Principal:
    """Ensure the principal carries ``role``.

    Raises:
        AuthorizationAppError: If the role is missing.
    """
    if principal.has_role(role):
        return principal

    log_audit_event(
        "auth.role_denied",
        user_id=principal.user_id,
        success=False,
        details={"required_role": role},
    )
    raise AuthorizationAppError(
        code="forbidden",
        message=f"The '{role}' role is required",
        details={"required_role": role},
    )


def role_required(role: str | None = None) -> Callable[..., object]:
    """Build a dependency that authenticates the caller and checks a role.

    Usage:
        @router.post("/admin/x", dependencies=[Depends(role_required())])

    Args:
        role: Role name; defaults to the configured admin role.
    """

    async def dependency(
        principal: Annotated[Principal, Depends(get_current_principal)],
    ) -> Principal:
        return require_role(principal, role or settings.auth.admin_role)

    return dependency
