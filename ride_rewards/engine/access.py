"""Admin gate shared by every configuration setter."""

from __future__ import annotations

import logging
from typing import Optional

from engine.errors import ErrorKind, Result


def require_admin(admin: str, caller: str, action: str, log: logging.Logger) -> Optional[Result]:
    """Returns a NotAuthorized failure when ``caller`` is not the admin, else None."""
    if caller == admin:
        return None
    reason = f"{action}: caller {caller} is not the admin"
    log.warning(f"[access] REJECTED {ErrorKind.NOT_AUTHORIZED.label} - {reason}")
    return Result.failure(ErrorKind.NOT_AUTHORIZED, reason)
