"""Pydantic request / response models for the announcement endpoints."""

from typing import Annotated, List, Optional

from pydantic import Field, StringConstraints, model_validator

from core.schemas import ApiModel, UtcDatetime
from models.announcement import AnnouncementStatus

_WINDOW_ERROR = "expireDate must be later than publishDate"

Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]


# -- Requests --------------------------------------------------------------


class AnnouncementCreate(ApiModel):
    title: Title
    content: str = Field(min_length=1)
    status: AnnouncementStatus = AnnouncementStatus.draft
    priority: int = Field(0, ge=0, le=10)
    is_sticky: bool = False
    publish_date: Optional[UtcDatetime] = None
    expire_date: Optional[UtcDatetime] = None

    @model_validator(mode="after")
    def check_window(self):
        if self.publish_date and self.expire_date and self.expire_date <= self.publish_date:
            raise ValueError(_WINDOW_ERROR)
        return self


class AnnouncementUpdate(ApiModel):
    """Partial update; only the fields present in the body are applied."""

    title: Optional[Title] = None
    content: Optional[str] = Field(None, min_length=1)
    status: Optional[AnnouncementStatus] = None
    priority: Optional[int] = Field(None, ge=0, le=10)
    is_sticky: Optional[bool] = None
    publish_date: Optional[UtcDatetime] = None
    expire_date: Optional[UtcDatetime] = None

    @model_validator(mode="after")
    def check_window(self):
        if self.publish_date and self.expire_date and self.expire_date <= self.publish_date:
            raise ValueError(_WINDOW_ERROR)
        return self


class StatusUpdate(ApiModel):
    status: AnnouncementStatus


# -- Responses -------------------------------------------------------------


class UserRef(ApiModel):
    id: int
    name: str


class PublicAnnouncementOut(ApiModel):
    """What anonymous readers see: no creator / updater references."""

    id: int
    title: str
    content: str
    status: AnnouncementStatus
    priority: int
    is_sticky: bool
    publish_date: Optional[UtcDatetime] = None
    expire_date: Optional[UtcDatetime] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class AnnouncementOut(PublicAnnouncementOut):
    created_by: Optional[UserRef] = None
    updated_by: Optional[UserRef] = None


class AnnouncementData(ApiModel):
    announcement: AnnouncementOut


class AnnouncementListData(ApiModel):
    announcements: List[AnnouncementOut]


class PublicAnnouncementListData(ApiModel):
    announcements: List[PublicAnnouncementOut]
