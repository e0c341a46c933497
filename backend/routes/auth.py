# backend/routes/auth.py
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models import users as models
from schemas import user as schemas
from services.auth import AuthError, AuthService, SessionContext
from services.auth_gate import post_login_redirect
from utils.audit import client_ip, write_log
from utils.data_client import DataClient, DataClientError
from utils.tokenJWT import TOKEN_COOKIE, bearer_scheme, get_current_user, get_optional_user

router = APIRouter(tags=["Auth"])


def _auth_service(db: Session) -> AuthService:
    return AuthService(DataClient(db), SessionContext())


# Register a new customer account
@router.post("/register", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
def register(payload: schemas.UserCreate, request: Request, db: Session = Depends(get_db)):
    service = _auth_service(db)
    profile = payload.model_dump(exclude={"email", "password"})
    try:
        session = service.sign_up(payload.email, payload.password, profile)
    except AuthError as e:
        write_log(db, user_id=None, action="REGISTER", resource="auth", status="FAIL",
                  ip=client_ip(request), meta={"email": payload.email, "reason": str(e)})
        raise HTTPException(status_code=400, detail=str(e))
    except DataClientError:
        raise HTTPException(status_code=500, detail="Could not create account")

    write_log(db, user_id=session.user["id"], action="REGISTER", resource="auth",
              ip=client_ip(request), meta={"email": session.user["email"]})
    return session.user


# Authenticate and issue a JWT; the same token is set as a cookie for page navigation
@router.post("/login", response_model=schemas.Token)
def login(payload: schemas.UserLogin, request: Request, response: Response, db: Session = Depends(get_db)):
    service = _auth_service(db)
    try:
        session = service.sign_in(payload.email, payload.password)
    except AuthError:
        write_log(db, user_id=None, action="LOGIN", resource="auth", status="FAIL",
                  ip=client_ip(request), meta={"email": payload.email})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    response.set_cookie(
        TOKEN_COOKIE, session.access_token,
        httponly=True, samesite="lax", max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    write_log(db, user_id=session.user["id"], action="LOGIN", resource="auth",
              ip=client_ip(request), meta={"email": session.user["email"]})

    return {
        "access_token": session.access_token,
        "token_type": "bearer",
        "redirect_to": post_login_redirect(payload.next),
        "user": session.user,
    }


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    current_user=Depends(get_optional_user),
):
    response.delete_cookie(TOKEN_COOKIE)
    if current_user is not None:
        write_log(db, user_id=current_user.id, action="LOGOUT", resource="auth", ip=client_ip(request))
    return {"status": "ok"}


# Current user's profile
@router.get("/me", response_model=schemas.UserResponse)
def me(current_user: models.User = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=schemas.UserResponse)
def update_me(
    payload: schemas.ProfileUpdate,
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
):
    service = _auth_service(db)
    session = service.restore(credentials.credentials)
    if session is None:
        raise HTTPException(status_code=401, detail="Could not validate credentials")

    changes = payload.model_dump(exclude_unset=True)
    try:
        user = service.update_profile(changes)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DataClientError:
        raise HTTPException(status_code=500, detail="Could not update profile")

    write_log(db, user_id=user["id"], action="PROFILE_UPDATE", resource="users",
              ip=client_ip(request), meta={"fields": sorted(changes)})
    return user
