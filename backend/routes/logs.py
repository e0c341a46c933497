# backend/routes/logs.py
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.log import LogPage
from utils.audit import LogFilters, search_logs
from utils.data_client import DataClientError
from utils.tokenJWT import role_required

router = APIRouter(prefix="/admin/logs", tags=["Logs"])


@router.get("", response_model=LogPage)
def list_audit_entries(
    action: Optional[str] = Query(None),
    resource: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="SUCCESS or FAIL"),
    user_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    if date_from and date_to and date_from > date_to:
        raise HTTPException(status_code=400, detail="date_from must not be after date_to")

    filters = LogFilters(action=action, resource=resource, status=status, user_id=user_id,
                         date_from=date_from, date_to=date_to)
    try:
        rows, total = search_logs(db, filters, page=page, page_size=page_size)
    except DataClientError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"items": rows, "total": total, "page": page, "page_size": page_size}
