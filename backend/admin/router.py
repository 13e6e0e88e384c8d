"""
Admin endpoints – user lifecycle management.

Every endpoint in this router is guarded by ``require_admin``.  A request
that carries a valid JWT but belongs to a ``user`` role will receive 403
before any business logic runs.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from admin.schemas import UpdateUserRequest, UserListData
from admin.service import delete_user, email_taken, ensure_not_last_admin
from auth.schemas import UserData, UserOut
from core.errors import ConflictError, NotFoundError, ValidationError
from core.logger import logger
from core.query import ListParams, build_query_spec, list_params, paginate
from core.schemas import Envelope
from core.security import require_admin
from core.storage import StorageClient, get_storage
from database import get_db
from models.user import Role, User

router = APIRouter(prefix="/admin", tags=["admin"])

# Wire name → column, for filtering and sorting
_USER_FIELDS = {
    "name": User.name,
    "email": User.email,
    "role": User.role,
    "createdAt": User.created_at,
    "updatedAt": User.updated_at,
}
_USER_SEARCH = ("name", "email")


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


# ---------------------------------------------------------------------------
# GET /admin/users  – search, filter, sort, paginate
# ---------------------------------------------------------------------------


@router.get("/users", response_model=Envelope[UserListData])
def list_users(
    params: ListParams = Depends(list_params),
    role: Optional[Role] = Query(None, description="Only users with this role"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Paginated user list.  ``search`` matches name or email; ``role``,
    ``startDate`` and ``endDate`` narrow the result further.
    """
    spec = build_query_spec(
        params,
        search_fields=_USER_SEARCH,
        sortable=_USER_FIELDS,
        equals={"role": role},
    )
    page = paginate(db.query(User), spec, _USER_FIELDS)

    return Envelope[UserListData](
        results=len(page.items),
        pagination=page.pagination(),
        data=UserListData(users=[UserOut.model_validate(u) for u in page.items]),
    )


# ---------------------------------------------------------------------------
# GET /admin/users/{id}
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}", response_model=Envelope[UserData])
def get_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = _get_user_or_404(db, user_id)
    return Envelope[UserData](data=UserData(user=UserOut.model_validate(user)))


# ---------------------------------------------------------------------------
# PATCH /admin/users/{id}  – profile fields and role
# ---------------------------------------------------------------------------


@router.patch("/users/{user_id}", response_model=Envelope[UserData])
def update_user(
    user_id: int,
    body: UpdateUserRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Update name, email or role of a user.  Guards:
    * Passwords cannot be set here.
    * The last remaining admin cannot be demoted.
    """
    if body.password is not None:
        raise ValidationError("Passwords cannot be changed through this endpoint")

    target = _get_user_or_404(db, user_id)

    if body.role is not None and body.role != target.role:
        if body.role == Role.user:
            ensure_not_last_admin(db, target)
        logger.info(
            "Admin id=%s changed role of user id=%s to %s",
            admin.id, target.id, body.role.value,
        )
        target.role = body.role

    if body.email and body.email != target.email:
        if email_taken(db, body.email, target.id):
            raise ConflictError("This email is already used by another account")
        target.email = body.email
    if body.name:
        target.name = body.name

    db.commit()
    db.refresh(target)
    return Envelope[UserData](data=UserData(user=UserOut.model_validate(target)))


# ---------------------------------------------------------------------------
# DELETE /admin/users/{id}
# ---------------------------------------------------------------------------


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
):
    """Delete a user and their stored avatar.  The last admin is protected."""
    target = _get_user_or_404(db, user_id)
    delete_user(db, storage, target)
    logger.info("Admin id=%s deleted user id=%s", admin.id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
