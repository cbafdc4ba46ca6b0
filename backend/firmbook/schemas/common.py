"""Common schemas used across the application."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class ApiModel(BaseModel):
    """Request/response base: camelCase on the wire, like the stored documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PaginatedResponse(ApiModel, Generic[T]):
    """Generic paginated response wrapper.

    Usage:
        response_model=PaginatedResponse[InvoiceRegisterRow]

    Returns:
        {
            "items": [...],
            "total": 150,
            "limit": 50,
            "offset": 0
        }
    """
    items: list[T]
    total: int
    limit: int
    offset: int
