"""
Announcement endpoints.

* ``GET /announcements/published`` is public and only ever returns what a
  reader may currently see: status ``published``, publish time reached,
  not yet expired.  Ordering is sticky first, then priority, then newest
  publish time – clients rely on this order.
* Everything else is admin-only (``require_admin``).

Status lifecycle
----------------
``draft``, ``published`` and ``archived`` may be entered from any state.
Entering ``published`` stamps the publish time if none was set
(:meth:`Announcement.set_status`).  Whatever the route, a stored
announcement never ends up with ``expireDate <= publishDate``.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from announcements.schemas import (
    AnnouncementCreate,
    AnnouncementData,
    AnnouncementListData,
    AnnouncementOut,
    AnnouncementUpdate,
    PublicAnnouncementListData,
    PublicAnnouncementOut,
    StatusUpdate,
)
from core.errors import NotFoundError, ValidationError
from core.logger import logger
from core.query import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    AnyOf,
    Condition,
    ListParams,
    QuerySpec,
    SortKey,
    build_query_spec,
    list_params,
    paginate,
)
from core.schemas import Envelope
from core.security import require_admin
from core.timeutil import as_utc, utcnow
from database import get_db
from models.announcement import Announcement, AnnouncementStatus
from models.user import User

router = APIRouter(prefix="/announcements", tags=["announcements"])

# Wire name → column, for filtering and sorting
_ANNOUNCEMENT_FIELDS = {
    "title": Announcement.title,
    "content": Announcement.content,
    "status": Announcement.status,
    "priority": Announcement.priority,
    "isSticky": Announcement.is_sticky,
    "publishDate": Announcement.publish_date,
    "expireDate": Announcement.expire_date,
    "createdAt": Announcement.created_at,
    "updatedAt": Announcement.updated_at,
}
_ANNOUNCEMENT_SEARCH = ("title", "content")

# Columns a PATCH may set to null
_NULLABLE = {"publish_date", "expire_date"}


def published_query_spec(page: int, limit: int, now: datetime) -> QuerySpec:
    """The fixed filter and three-key ordering of the public listing."""
    return QuerySpec(
        where=(
            Condition("status", "eq", AnnouncementStatus.published),
            AnyOf((
                Condition("expireDate", "is_null"),
                Condition("expireDate", "gt", now),
            )),
            Condition("publishDate", "lte", now),
        ),
        sort=(
            SortKey("isSticky"),
            SortKey("priority"),
            SortKey("publishDate"),
        ),
        page=page,
        limit=limit,
    )


def _get_or_404(db: Session, announcement_id: int) -> Announcement:
    announcement = db.query(Announcement).filter(Announcement.id == announcement_id).first()
    if not announcement:
        raise NotFoundError("Announcement not found")
    return announcement


def _check_window(announcement: Announcement) -> None:
    publish = as_utc(announcement.publish_date)
    expire = as_utc(announcement.expire_date)
    if publish and expire and expire <= publish:
        raise ValidationError("expireDate must be later than publishDate")


def _envelope(announcement: Announcement, **extra) -> Envelope[AnnouncementData]:
    return Envelope[AnnouncementData](
        data=AnnouncementData(announcement=AnnouncementOut.model_validate(announcement)),
        **extra,
    )


# ---------------------------------------------------------------------------
# GET /announcements/published  – public
# ---------------------------------------------------------------------------


@router.get("/published", response_model=Envelope[PublicAnnouncementListData])
def list_published(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: Session = Depends(get_db),
):
    spec = published_query_spec(page, limit, utcnow())
    result = paginate(db.query(Announcement), spec, _ANNOUNCEMENT_FIELDS)

    return Envelope[PublicAnnouncementListData](
        results=len(result.items),
        pagination=result.pagination(),
        data=PublicAnnouncementListData(
            announcements=[PublicAnnouncementOut.model_validate(a) for a in result.items]
        ),
    )


# ---------------------------------------------------------------------------
# POST /announcements
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=Envelope[AnnouncementData],
    status_code=status.HTTP_201_CREATED,
)
def create_announcement(
    body: AnnouncementCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    fields = body.model_dump(exclude={"status"})
    announcement = Announcement(**fields, created_by_id=admin.id, updated_by_id=admin.id)
    announcement.set_status(body.status, utcnow())
    _check_window(announcement)

    db.add(announcement)
    db.commit()
    db.refresh(announcement)
    logger.info("Admin id=%s created announcement id=%s", admin.id, announcement.id)
    return _envelope(announcement)


# ---------------------------------------------------------------------------
# GET /announcements  – admin listing
# ---------------------------------------------------------------------------


@router.get("", response_model=Envelope[AnnouncementListData])
def list_announcements(
    params: ListParams = Depends(list_params),
    status_filter: Optional[AnnouncementStatus] = Query(None, alias="status"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Every announcement regardless of status.  ``search`` matches title or
    content; ``status``, ``startDate`` and ``endDate`` narrow the result.
    """
    spec = build_query_spec(
        params,
        search_fields=_ANNOUNCEMENT_SEARCH,
        sortable=_ANNOUNCEMENT_FIELDS,
        equals={"status": status_filter},
    )
    result = paginate(db.query(Announcement), spec, _ANNOUNCEMENT_FIELDS)

    return Envelope[AnnouncementListData](
        results=len(result.items),
        pagination=result.pagination(),
        data=AnnouncementListData(
            announcements=[AnnouncementOut.model_validate(a) for a in result.items]
        ),
    )


# ---------------------------------------------------------------------------
# GET /announcements/{id}
# ---------------------------------------------------------------------------


@router.get("/{announcement_id}", response_model=Envelope[AnnouncementData])
def get_announcement(
    announcement_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _envelope(_get_or_404(db, announcement_id))


# ---------------------------------------------------------------------------
# PATCH /announcements/{id}
# ---------------------------------------------------------------------------


@router.patch("/{announcement_id}", response_model=Envelope[AnnouncementData])
def update_announcement(
    announcement_id: int,
    body: AnnouncementUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Apply the fields present in the body; the caller becomes the updater."""
    announcement = _get_or_404(db, announcement_id)
    changes = body.model_dump(exclude_unset=True)

    for name, value in changes.items():
        if value is None and name not in _NULLABLE:
            raise ValidationError(f"{name} cannot be null")

    new_status = changes.pop("status", None)
    for name, value in changes.items():
        setattr(announcement, name, value)
    if new_status is not None:
        announcement.set_status(new_status, utcnow())
    _check_window(announcement)

    announcement.updated_by_id = admin.id
    db.commit()
    db.refresh(announcement)
    return _envelope(announcement)


# ---------------------------------------------------------------------------
# PATCH /announcements/{id}/status
# ---------------------------------------------------------------------------


@router.patch("/{announcement_id}/status", response_model=Envelope[AnnouncementData])
def update_announcement_status(
    announcement_id: int,
    body: StatusUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    announcement = _get_or_404(db, announcement_id)
    announcement.set_status(body.status, utcnow())
    _check_window(announcement)

    announcement.updated_by_id = admin.id
    db.commit()
    db.refresh(announcement)
    logger.info(
        "Admin id=%s moved announcement id=%s to %s",
        admin.id, announcement.id, body.status.value,
    )
    return _envelope(announcement)


# ---------------------------------------------------------------------------
# DELETE /announcements/{id}
# ---------------------------------------------------------------------------


@router.delete("/{announcement_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_announcement(
    announcement_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    announcement = _get_or_404(db, announcement_id)
    db.delete(announcement)
    db.commit()
    logger.info("Admin id=%s deleted announcement id=%s", admin.id, announcement_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
