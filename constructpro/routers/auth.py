import re

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from constructpro.core.api_docs import error_responses
from constructpro.core.deps import get_db
from constructpro.core.id_utils import generate_short_token
from constructpro.core.permissions import CurrentUser, is_admin
from constructpro.core.security import create_access_token, hash_password, verify_password
from constructpro.core.security_current import get_current_actor, get_current_user
from constructpro.models.user import User
from constructpro.schemas.auth import LoginIn, RegisterIn, RoleUpdateIn, TokenOut, UserProfileOut

router = APIRouter(prefix="/auth", tags=["auth"])
TOKEN_RESPONSE = {
    200: {
        "description": "Bearer access token",
        "content": {
            "application/json": {
                "example": {
                    "access_token": "access-token",
                    "token_type": "bearer",
                }
            }
        },
    }
}


def _slugify_username(seed: str) -> str:
    cleaned = re.sub(r"[^a-z0-9_]+", "_", seed.strip().lower())
    cleaned = re.sub(r"_+", "_", cleaned).strip("_")
    if not cleaned:
        return "user"
    return cleaned[:30]


def _username_exists(db: Session, username: str) -> bool:
    found = db.execute(
        select(User.id).where(func.lower(User.username) == username.lower())
    ).scalar_one_or_none()
    return found is not None


def _generate_unique_username(db: Session, preferred_username: str | None, fallback_seed: str) -> str:
    base = _slugify_username(preferred_username or fallback_seed)
    candidate = base
    while _username_exists(db, candidate):
        candidate = f"{base[:22]}_{generate_short_token(6)}"
    return candidate


def _authenticate_user(db: Session, identifier: str, password: str) -> User:
    normalized_identifier = identifier.strip().lower()
    user = db.execute(
        select(User).where(
            or_(
                func.lower(User.email) == normalized_identifier,
                func.lower(User.username) == normalized_identifier,
            )
        )
    ).scalar_one_or_none()

    if not user or not user.is_active or not verify_password(password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return user


def _token_for(user: User) -> TokenOut:
    return TokenOut(access_token=create_access_token(user.id, user.role))


@router.post(
    "/register",
    response_model=TokenOut,
    summary="Register a user",
    description="Creates a user and returns an access token. The first account registered becomes an admin.",
    responses={**TOKEN_RESPONSE, **error_responses(400, 422, 500)},
)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    normalized_email = payload.email.lower()
    exists = db.execute(
        select(User).where(func.lower(User.email) == normalized_email)
    ).scalar_one_or_none()
    if exists:
        raise HTTPException(status_code=400, detail="Email already registered")

    is_first_user = db.execute(select(func.count(User.id))).scalar_one() == 0
    user = User(
        email=normalized_email,
        username=_generate_unique_username(
            db,
            preferred_username=payload.username,
            fallback_seed=normalized_email.split("@")[0],
        ),
        full_name=payload.full_name,
        hashed_password=hash_password(payload.password),
        role="admin" if is_first_user else "employee",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return _token_for(user)


@router.post(
    "/login",
    response_model=TokenOut,
    summary="Login with JSON",
    description="Authenticate with email/username and password.",
    responses={**TOKEN_RESPONSE, **error_responses(401, 422, 500)},
)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    return _token_for(_authenticate_user(db, payload.identifier, payload.password))


@router.post(
    "/token",
    response_model=TokenOut,
    summary="OAuth2 password token (Swagger Authorize)",
    description=(
        "Form-data login endpoint used by Swagger Authorize. "
        "Use your email or username in the `username` field."
    ),
    responses={**TOKEN_RESPONSE, **error_responses(401, 422, 500)},
)
def login_for_swagger(
    db: Session = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
):
    return _token_for(_authenticate_user(db, form_data.username, form_data.password))


@router.get(
    "/me",
    response_model=UserProfileOut,
    summary="Get current user profile",
    responses=error_responses(401, 500),
)
def get_my_profile(user: User = Depends(get_current_user)):
    return user


@router.patch(
    "/users/{user_id}/role",
    response_model=UserProfileOut,
    summary="Change a user's role",
    description="Admin only. Role changes apply to the user's next request.",
    responses=error_responses(401, 403, 404, 422, 500),
)
def update_user_role(
    user_id: str,
    payload: RoleUpdateIn,
    actor: CurrentUser = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    if not is_admin(actor):
        raise HTTPException(status_code=403, detail="Only admins can change roles")
    user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    user.role = payload.role
    db.commit()
    db.refresh(user)
    return user
