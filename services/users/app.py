from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from facility import auth
from facility.database import get_db
from facility.dependencies import allow_roles, get_current_user
from facility.models import RoleEnum, User
from facility.rate_limit import limiter
from facility.schemas import Token, UserCreate, UserRead
from facility.service import create_service

app = create_service("Users Service", "users")


@app.post("/users/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register_user(request: Request, user_in: UserCreate, db: Session = Depends(get_db)) -> User:
    clash = (
        db.query(User)
        .filter(
            (User.username == user_in.username)
            | (User.email == user_in.email)
            | (User.identity_number == user_in.identity_number)
        )
        .first()
    )
    if clash:
        if clash.identity_number == user_in.identity_number:
            detail = "Identity number is already registered"
        elif clash.username == user_in.username:
            detail = "Username is already taken"
        else:
            detail = "Email is already registered"
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)

    # The first account bootstraps the system; later elevated roles are granted by a super admin.
    admins_exist = db.query(User).filter(User.role == RoleEnum.SUPER_ADMIN).first() is not None
    role = user_in.role if not admins_exist else RoleEnum.STUDENT

    user = User(
        full_name=user_in.full_name,
        username=user_in.username,
        email=user_in.email,
        identity_number=user_in.identity_number,
        department_id=user_in.department_id,
        role=role,
        hashed_password=auth.get_password_hash(user_in.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@app.post("/users/login", response_model=Token)
@limiter.limit("10/minute")
def login(request: Request, form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)) -> Token:
    user = auth.authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect username or password")

    access_token = auth.create_access_token({"sub": user.username, "role": user.role.value})
    return Token(access_token=access_token)


@app.get("/users/me", response_model=UserRead)
def read_me(current_user: User = Depends(get_current_user)) -> User:
    return current_user


@app.get("/users", response_model=list[UserRead])
@limiter.limit("20/minute")
def list_users(
    request: Request,
    _: User = Depends(allow_roles(RoleEnum.SUPER_ADMIN)),
    db: Session = Depends(get_db),
) -> list[User]:
    return db.query(User).order_by(User.full_name).all()


@app.patch("/users/{user_id}/role", response_model=UserRead)
@limiter.limit("10/minute")
def change_role(
    request: Request,
    user_id: int,
    role: RoleEnum,
    _: User = Depends(allow_roles(RoleEnum.SUPER_ADMIN)),
    db: Session = Depends(get_db),
) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    user.role = role
    db.commit()
    db.refresh(user)
    return user
