"""
Use case results. Workflow failures come back as values, not exceptions, so callers
(API, CLI, UI adapters) report them without try/except around every call.
"""

import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from transport_backend.domain.errors import NotFoundError, WorkflowError

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    ok: bool
    message: str = ""
    error: Optional[str] = None  # error code: precondition_failed, policy_violation, not_found, conflict, ...
    data: Any = None
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def success(cls, message: str = "", data: Any = None, warnings: Optional[list[str]] = None) -> "OperationResult":
        return cls(ok=True, message=message, data=data, warnings=list(warnings or []))

    @classmethod
    def failure(cls, exc: Exception) -> "OperationResult":
        return cls(ok=False, message=str(exc), error=getattr(exc, "code", "error"))


def as_result(func):
    """Turn WorkflowError / NotFoundError raised by an async use case into a failed OperationResult."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> OperationResult:
        try:
            return await func(*args, **kwargs)
        except (WorkflowError, NotFoundError) as e:
            logger.info("%s rejected: %s", func.__name__, e)
            return OperationResult.failure(e)

    return wrapper
