"""Security audit events.

Throttled callers and denied admin attempts are recorded as structured
records on a dedicated ``market_guard.audit`` logger, so they can be routed
to a separate sink without touching the request handlers.
"""

from __future__ import annotations

import logging
from typing import Any

from market_guard.core.logging import get_request_id, hash_identifier

audit_logger = logging.getLogger("market_guard.audit")


def log_audit_event(
    action: str,
    *,
    identifier: str | None = None,
    user_id: str | None = None,
    success: bool = True,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a single audit record.

    Args:
        action: Dotted event name, e.g. ``rate_limit.exceeded``.
        identifier: Raw caller identifier; only its hash is logged.
        user_id: Authenticated principal id, when known.
        success: Whether the audited action was permitted.
        details: Extra structured context.
    """
    audit_logger.info(
        "audit.%s",
        action,
        extra={
            "audit_action": action,
            "identifier_hash": hash_identifier(identifier) if identifier else None,
            "user_id": user_id,
            "success": success,
            "request_id": get_request_id(),
            "details": details or {},
        },
    )
