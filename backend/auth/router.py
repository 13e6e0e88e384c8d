"""
Auth endpoints – registration, login, password reset, profile and avatar
management, self-service account removal.

Security notes
--------------
* Login returns the *same* error message whether the email doesn't exist or
  the password is wrong.  This prevents user-enumeration attacks on login.
* update-password and deactivate re-check the current password, so a stolen
  (but not yet expired) token alone cannot take over or delete the account.
* Reset tokens are mailed in the clear exactly once; only their SHA-256
  digest is stored, and they are cleared after use.
"""

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from sqlalchemy.orm import Session

from admin.service import delete_user, email_taken
from auth.schemas import (
    DeactivateRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UpdatePasswordRequest,
    UpdateProfileRequest,
    UserData,
    UserOut,
)
from core.config import settings
from core.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from core.logger import logger
from core.mailer import Mailer, get_mailer
from core.schemas import Envelope
from core.security import (
    create_access_token,
    create_password_reset_token,
    get_current_user,
    hash_password,
    hash_reset_token,
    verify_password,
)
from core.storage import StorageClient, discard_avatar, get_storage, read_avatar, store_avatar
from core.timeutil import as_utc, utcnow
from database import get_db
from models.user import Role, User

router = APIRouter(prefix="/auth", tags=["auth"])

# Generic message used for both "no such email" and "wrong password"
_LOGIN_FAIL = "Incorrect email or password"


def _user_envelope(user: User, **extra) -> Envelope[UserData]:
    return Envelope[UserData](data=UserData(user=UserOut.model_validate(user)), **extra)


# ---------------------------------------------------------------------------
# POST /auth/register
# ---------------------------------------------------------------------------


@router.post(
    "/register",
    response_model=Envelope[UserData],
    status_code=status.HTTP_201_CREATED,
)
def register(body: RegisterRequest, db: Session = Depends(get_db)):
    """Create a ``user`` account and log it in."""
    if db.query(User.id).filter(User.email == body.email).first():
        raise ConflictError("This email is already registered")

    user = User(
        email=body.email,
        password_hash=hash_password(body.password),
        name=body.name,
        role=Role.user,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user id=%s", user.id)

    return _user_envelope(user, token=create_access_token(user.id))


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=Envelope[UserData])
def login(body: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate and return a signed JWT."""
    user = db.query(User).filter(User.email == body.email).first()

    # Unified failure path – no information leaks about whether the email exists
    if not user or not verify_password(body.password, user.password_hash):
        raise AuthenticationError(_LOGIN_FAIL)

    return _user_envelope(user, token=create_access_token(user.id))


# ---------------------------------------------------------------------------
# GET /auth/me
# ---------------------------------------------------------------------------


@router.get("/me", response_model=Envelope[UserData])
def me(current_user: User = Depends(get_current_user)):
    """Return the authenticated user's public profile (no secrets)."""
    return _user_envelope(current_user)


# ---------------------------------------------------------------------------
# POST /auth/forgot-password
# ---------------------------------------------------------------------------


@router.post("/forgot-password", response_model=Envelope)
def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Issue a single-use reset token and mail the reset link to the user.

    If the mail cannot be sent the stored token is cleared again, so there
    is never a live token nobody received.
    """
    user = db.query(User).filter(User.email == body.email).first()
    if not user:
        raise NotFoundError("No account is registered with this email")

    raw_token, hashed, expires_at = create_password_reset_token()
    user.password_reset_token = hashed
    user.password_reset_expires = expires_at
    db.commit()

    reset_url = (
        f"{str(request.base_url).rstrip('/')}{settings.api_prefix}"
        f"/auth/reset-password/{raw_token}"
    )
    try:
        mailer.send_password_reset(user.email, user.name, reset_url)
    except Exception:
        logger.exception("Password reset mail to user id=%s failed", user.id)
        user.password_reset_token = None
        user.password_reset_expires = None
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send the reset email, please try again later",
        )

    return Envelope(message="A password reset link has been sent to your email")


# ---------------------------------------------------------------------------
# POST /auth/reset-password/{token}
# ---------------------------------------------------------------------------


@router.post("/reset-password/{token}", response_model=Envelope)
def reset_password(token: str, body: ResetPasswordRequest, db: Session = Depends(get_db)):
    """Consume a reset token, set the new password and log the user in."""
    user = (
        db.query(User)
        .filter(User.password_reset_token == hash_reset_token(token))
        .first()
    )
    if not user:
        raise ValidationError("Reset token is invalid")

    expires_at = as_utc(user.password_reset_expires)
    if expires_at is None or expires_at <= utcnow():
        raise ValidationError("Reset token has expired")

    user.password_hash = hash_password(body.password)
    user.password_reset_token = None
    user.password_reset_expires = None
    db.commit()
    logger.info("Password reset completed for user id=%s", user.id)

    return Envelope(
        message="Password has been reset",
        token=create_access_token(user.id),
    )


# ---------------------------------------------------------------------------
# PATCH /auth/update-profile
# ---------------------------------------------------------------------------


@router.patch("/update-profile", response_model=Envelope[UserData])
def update_profile(
    body: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Change display name and/or email.  Passwords go through update-password."""
    if body.password is not None:
        raise ValidationError(
            "This endpoint cannot change the password, use /auth/update-password"
        )

    if body.email and body.email != current_user.email:
        if email_taken(db, body.email, current_user.id):
            raise ConflictError("This email is already used by another account")
        current_user.email = body.email
    if body.name:
        current_user.name = body.name

    db.commit()
    db.refresh(current_user)
    return _user_envelope(current_user)


# ---------------------------------------------------------------------------
# PATCH /auth/update-password
# ---------------------------------------------------------------------------


@router.patch("/update-password", response_model=Envelope)
def update_password(
    body: UpdatePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Change the login password after re-checking the current one."""
    if not verify_password(body.current_password, current_user.password_hash):
        raise AuthenticationError("Current password is incorrect")

    current_user.password_hash = hash_password(body.new_password)
    db.commit()

    return Envelope(
        message="Password updated",
        token=create_access_token(current_user.id),
    )


# ---------------------------------------------------------------------------
# POST /auth/upload-avatar
# ---------------------------------------------------------------------------


@router.post("/upload-avatar", response_model=Envelope[UserData])
async def upload_avatar(
    avatar: UploadFile = File(..., description="Image file, at most 5 MB"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
):
    """Store a new avatar image and point the profile at it."""
    body = await read_avatar(avatar)
    url = store_avatar(storage, avatar.filename, body, avatar.content_type)

    previous = current_user.avatar
    current_user.avatar = url
    db.commit()
    db.refresh(current_user)

    discard_avatar(storage, previous)
    return _user_envelope(current_user)


# ---------------------------------------------------------------------------
# DELETE /auth/deactivate
# ---------------------------------------------------------------------------


@router.delete("/deactivate", response_model=Envelope)
def deactivate(
    body: DeactivateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
):
    """Permanently delete the caller's account after a password check."""
    if not verify_password(body.password, current_user.password_hash):
        raise AuthenticationError("Password is incorrect")

    delete_user(db, storage, current_user)
    return Envelope(message="Your account has been deleted")
