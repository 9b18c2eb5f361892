"""Common schemas for the exit workflow data contract."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exchanging camelCase field names with the calling layer."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        """Plain JSON-compatible dict with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


class ErrorResponse(CamelModel):
    """Standard error response."""
    error: str
    message: str
    context: Optional[Dict[str, Any]] = None

    @classmethod
    def from_exception(cls, exc) -> "ErrorResponse":
        return cls(**exc.to_dict())
