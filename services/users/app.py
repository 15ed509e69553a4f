from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from booking_common import auth
from booking_common.database import get_db
from booking_common.dependencies import get_current_active_user, require_admin
from booking_common.models import RoleEnum, User
from booking_common.rate_limit import limiter
from booking_common.repositories import UserRepository
from booking_common.schemas import (
    PasswordChange,
    ProfileUpdate,
    PushTokenUpdate,
    Token,
    UserAdminUpdate,
    UserCreate,
    UserRead,
)
from booking_common.service import build_app


def create_app():
    return build_app("Users Service", "users")


app = create_app()


@app.post("/auth/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register_user(request: Request, user_in: UserCreate, db: Session = Depends(get_db)) -> User:
    users = UserRepository(db)
    if users.get_by_email(user_in.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    # Only the very first admin may self-register; later admins are promoted by an admin.
    if user_in.role != RoleEnum.REQUESTER and users.admin_exists():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can assign elevated roles")

    user = users.create(
        User(
            name=user_in.name,
            email=user_in.email,
            phone=user_in.phone,
            role=user_in.role,
            hashed_password=auth.get_password_hash(user_in.password),
        )
    )
    db.commit()
    db.refresh(user)
    return user


@app.post("/auth/login", response_model=Token)
@limiter.limit("10/minute")
def login(request: Request, form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)) -> Token:
    user = auth.authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    return Token(access_token=auth.create_user_token(user))


@app.get("/users/me", response_model=UserRead)
def read_me(current_user: User = Depends(get_current_active_user)) -> User:
    return current_user


@app.put("/users/me", response_model=UserRead)
@limiter.limit("10/minute")
def update_me(
    request: Request,
    profile: ProfileUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> User:
    if profile.email and profile.email.lower() != current_user.email:
        if UserRepository(db).get_by_email(profile.email):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
        current_user.email = profile.email.lower()
    if profile.name:
        current_user.name = profile.name
    if profile.phone is not None:
        current_user.phone = profile.phone or None
    db.commit()
    db.refresh(current_user)
    return current_user


@app.put("/users/me/password", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("5/minute")
def change_password(
    request: Request,
    change: PasswordChange,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> None:
    if not auth.verify_password(change.current_password, current_user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    current_user.hashed_password = auth.get_password_hash(change.new_password)
    db.commit()


@app.put("/users/me/push-token", status_code=status.HTTP_204_NO_CONTENT)
def update_push_token(
    token_in: PushTokenUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> None:
    current_user.push_token = token_in.push_token or None
    db.commit()


@app.get("/users", response_model=list[UserRead])
@limiter.limit("20/minute")
def list_users(
    request: Request,
    role: RoleEnum | None = None,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> list[User]:
    return UserRepository(db).list(role=role)


@app.patch("/users/{user_id}", response_model=UserRead)
@limiter.limit("10/minute")
def update_user(
    request: Request,
    user_id: int,
    user_update: UserAdminUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> User:
    user = UserRepository(db).get(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.id == current_user.id and (user_update.is_active is False or user_update.role == RoleEnum.REQUESTER):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Admins cannot demote or disable themselves")

    if user_update.role is not None:
        user.role = user_update.role
    if user_update.is_active is not None:
        user.is_active = user_update.is_active
    db.commit()
    db.refresh(user)
    return user
