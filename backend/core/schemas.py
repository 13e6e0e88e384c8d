"""
Shared Pydantic building blocks: the camelCase base model, the UTC datetime
type and the uniform response envelope every endpoint returns.
"""

from datetime import datetime
from typing import Annotated, Generic, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, model_serializer
from pydantic.alias_generators import to_camel

from core.timeutil import as_utc

DataT = TypeVar("DataT")

# Naive values (SQLite rows, client input without offset) are taken as UTC
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class ApiModel(BaseModel):
    """camelCase on the wire; snake_case attribute names still accepted."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Pagination(BaseModel):
    total: int
    page: int
    pages: int
    limit: int


class Envelope(ApiModel, Generic[DataT]):
    """
    ``{status, message?, token?, results?, pagination?, data?}``.  Keys that
    were not filled in are left out of the JSON; nested models keep their
    nulls.
    """

    status: str = "success"
    message: Optional[str] = None
    token: Optional[str] = None
    results: Optional[int] = None
    pagination: Optional[Pagination] = None
    data: Optional[DataT] = None

    @model_serializer(mode="wrap")
    def omit_empty_keys(self, handler):
        return {key: value for key, value in handler(self).items() if value is not None}
