# backend/routes/pages.py
"""Page entry points guarded by the session gate.

Anonymous visitors are sent to ``/login?next=<page>``; signed-in users
without the page's role are sent to ``/dashboard``.
"""
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from database import get_db
from schemas.mapping import to_app
from services.auth import AuthService, SessionContext
from services.auth_gate import AuthGate, GateState, LOGIN_PATH, post_login_redirect
from utils.data_client import DataClient
from utils.tokenJWT import TOKEN_COOKIE, optional_bearer

router = APIRouter(tags=["Pages"])

ADMIN_SECTIONS = ["orders", "products", "delivery", "customers"]


def _gate_context(request: Request, credentials: Optional[HTTPAuthorizationCredentials], db: Session) -> SessionContext:
    token = credentials.credentials if credentials else request.cookies.get(TOKEN_COOKIE)
    context = SessionContext()
    AuthService(DataClient(db), context).restore(token)
    return context


def _redirect(decision) -> RedirectResponse:
    location = decision.location
    if location == LOGIN_PATH and decision.came_from:
        location = f"{LOGIN_PATH}?{urlencode({'next': decision.came_from})}"
    return RedirectResponse(location, status_code=307)


@router.get("/login")
def login_page(next: Optional[str] = Query(None)):
    # Where a successful sign-in will land
    return {"page": "login", "next": post_login_redirect(next)}


@router.get("/dashboard")
def dashboard_page(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_bearer),
    db: Session = Depends(get_db),
):
    context = _gate_context(request, credentials, db)
    decision = AuthGate(context).evaluate("/dashboard")
    if decision.state != GateState.RENDER:
        return _redirect(decision)

    user = context.current_user()
    return {"page": "dashboard", "user": to_app("users", user), "isAdmin": context.current_role() == "admin"}


@router.get("/admin")
def admin_page(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_bearer),
    db: Session = Depends(get_db),
):
    context = _gate_context(request, credentials, db)
    decision = AuthGate(context).evaluate("/admin", required_role="admin")
    if decision.state != GateState.RENDER:
        return _redirect(decision)

    return {"page": "admin", "user": to_app("users", context.current_user()), "sections": ADMIN_SECTIONS}
