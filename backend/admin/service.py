"""
User-lifecycle rules shared by the self-service (auth) and admin routers.

Last-admin protection
---------------------
The system must always keep at least one ``admin``.  Demoting or deleting
an admin first counts the admins *with their rows locked*
(``SELECT … FOR UPDATE``), so two concurrent requests that each try to
remove one of the last two admins serialize on MySQL/InnoDB instead of both
passing the check.  SQLite ignores the clause but only allows one writer at
a time anyway.
"""

from sqlalchemy.orm import Session

from core.errors import ConflictError
from core.logger import logger
from core.storage import StorageClient, discard_avatar
from models.user import Role, User

_LAST_ADMIN = "The system must keep at least one admin account"


def locked_admin_count(db: Session) -> int:
    return len(db.query(User.id).filter(User.role == Role.admin).with_for_update().all())


def ensure_not_last_admin(db: Session, target: User) -> None:
    """Raise 400 if *target* is the only remaining admin."""
    if target.role != Role.admin:
        return
    if locked_admin_count(db) <= 1:
        raise ConflictError(_LAST_ADMIN)


def email_taken(db: Session, email: str, exclude_id: int) -> bool:
    return (
        db.query(User.id).filter(User.email == email, User.id != exclude_id).first()
        is not None
    )


def delete_user(db: Session, storage: StorageClient, user: User) -> None:
    """
    Delete *user* after the last-admin check, then drop their avatar from
    object storage.  Avatar removal is best-effort and never undoes the
    deletion.
    """
    ensure_not_last_admin(db, user)

    avatar, user_id = user.avatar, user.id
    db.delete(user)
    db.commit()
    logger.info("Deleted user id=%s", user_id)

    discard_avatar(storage, avatar)
