from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """Base model for API payloads."""

    model_config = ConfigDict(protected_namespaces=())


class WireModel(APIModel):
    """Base model serialized with camelCase keys, populated by either name."""

    model_config = ConfigDict(
        protected_namespaces=(),
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ErrorResponse(APIModel):
    """Standard error response payload."""

    code: str
    message: str
