"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any import that builds settings.
"""

import os
import time
from typing import Callable, Iterator

# Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("AUTH_JWT_SECRET", "test-signing-secret-0123456789abcdef")
os.environ.setdefault("AUTH_JWT_ALGORITHM", "HS256")
os.environ.setdefault("RATE_LIMIT_SWEEP_PROBABILITY", "0")

import jwt
import pytest

from market_guard.core.rate_limit import reset_rate_limiter

TEST_JWT_SECRET = os.environ["AUTH_JWT_SECRET"]


@pytest.fixture(autouse=True)
def fresh_rate_limiter() -> Iterator[None]:
    """Every test starts with an empty process-wide limiter."""
    reset_rate_limiter()
    yield
    reset_rate_limiter()


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Factory for signed bearer tokens."""

    def _make(
        sub: str | None = "user-1",
        *,
        roles: list[str] | None = None,
        wallet_address: str | None = None,
        expires_in: int = 300,
        secret: str = TEST_JWT_SECRET,
    ) -> str:
        now = int(time.time())
        payload: dict = {"iat": now, "exp": now + expires_in}
        if sub is not None:
            payload["sub"] = sub
        if roles is not None:
            payload["roles"] = roles
        if wallet_address is not None:
            payload["wallet_address"] = wallet_address
        return jwt.encode(payload, secret, algorithm="HS256")

    return _make


@pytest.fixture
def auth_headers(make_token) -> Callable[..., dict[str, str]]:
    def _headers(sub: str = "user-1", roles: list[str] | None = None) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(sub, roles=roles)}"}

    return _headers
