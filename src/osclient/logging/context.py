"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_request_id: ContextVar[str] = ContextVar("request_id", default="")
_service_type: ContextVar[str] = ContextVar("service_type", default="")
_operation: ContextVar[str] = ContextVar("operation", default="")

CONTEXT_FIELDS = ("request_id", "service_type", "operation")


def set_log_context(
    request_id: Optional[str] = None,
    service_type: Optional[str] = None,
    operation: Optional[str] = None,
) -> None:
    if request_id is not None:
        _request_id.set(request_id)
    if service_type is not None:
        _service_type.set(service_type)
    if operation is not None:
        _operation.set(operation)


def get_log_context() -> Dict[str, str]:
    return {
        "request_id": _request_id.get(),
        "service_type": _service_type.get(),
        "operation": _operation.get(),
    }


def clear_log_context() -> None:
    _request_id.set("")
    _service_type.set("")
    _operation.set("")


class LogContext:
    """
    Context manager for temporary log context.

    Usage:
        with LogContext(service_type="compute", operation="list servers"):
            # All logs in this block carry service_type and operation
            await executor.execute(request)
    """

    def __init__(
        self,
        request_id: Optional[str] = None,
        service_type: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        self.new_context = {
            "request_id": request_id,
            "service_type": service_type,
            "operation": operation,
        }
        self.old_context: Dict[str, str] = {}

    def __enter__(self) -> "LogContext":
        self.old_context = get_log_context()
        set_log_context(**self.new_context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Restore old context
        set_log_context(**self.old_context)
        return False
