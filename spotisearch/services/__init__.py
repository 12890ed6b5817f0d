"""
🏗️ Service Layer
================

Services sit between a host (launcher plugin, CLI) and the API client. Every
public operation returns a :class:`ServiceResult` instead of raising.
"""

import logging
from abc import ABC
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional


def _serialize(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    return value


@dataclass
class ServiceResult:
    """Outcome of a service operation as handed to the host."""
    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    error_code: Optional[str] = None
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()

    @property
    def items(self) -> List[Any]:
        """``data`` as a list of rows for hosts that render lists."""
        if self.data is None:
            return []
        return self.data if isinstance(self.data, list) else [self.data]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready form; nested objects with ``to_dict`` are expanded."""
        payload: Dict[str, Any] = {
            "success": self.success,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.data is not None:
            payload["data"] = _serialize(self.data)
        for key in ("message", "error_code"):
            value = getattr(self, key)
            if value:
                payload[key] = value
        return payload


class BaseService(ABC):
    """Shared logger naming and result helpers."""

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(f"service.{name}")

    def health_check(self) -> ServiceResult:
        return self._success_result({"status": "healthy", "service": self.name})

    def _handle_error(self, error: Exception, operation: str) -> ServiceResult:
        """Log an unexpected failure with its traceback and wrap it in a result."""
        self.logger.error(
            "service.operation.failed",
            exc_info=True,
            extra={"service": self.name, "operation": operation},
        )
        return self._error_result(f"{operation} failed: {error}", error_code="OPERATION_FAILED")

    def _success_result(self, data: Any = None, message: Optional[str] = None) -> ServiceResult:
        return ServiceResult(success=True, data=data, message=message)

    def _error_result(self, message: str, error_code: str = "ERROR", data: Any = None) -> ServiceResult:
        return ServiceResult(success=False, data=data, message=message, error_code=error_code)


__all__ = ["BaseService", "ServiceResult"]
