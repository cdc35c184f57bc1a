from typing import Any, Dict, Generic, Optional, TypeVar
from pydantic import BaseModel, Field
from datetime import datetime, timezone

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """
    Envelope for report endpoints (dashboard and friends). Plain resources are
    returned unwrapped; errors use the handler format in main.py.
    """
    success: bool = True
    data: Optional[T] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def ok(cls, data: T, metadata: Optional[Dict[str, Any]] = None) -> "ApiResponse[T]":
        return cls(data=data, metadata={k: v for k, v in (metadata or {}).items() if v is not None})
