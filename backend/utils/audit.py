# utils/audit.py
import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Request
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.log import Log
from models.users import User
from utils.data_client import DataClientError

logger = logging.getLogger(__name__)


def client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None or request.client is None:
        return None
    return request.client.host


# Append one row to the audit trail. A failed audit write never fails the
# action it describes; it is logged and rolled back instead.
def write_log(
    db: Session,
    *,
    user_id: Optional[int],
    action: str,
    resource: str,
    status: str = "SUCCESS",
    ip: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> None:
    entry = Log(user_id=user_id, action=action, resource=resource, status=status, ip=ip, meta=meta or {})
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to write audit log %s/%s: %s", resource, action, e)


@dataclass
class LogFilters:
    action: Optional[str] = None
    resource: Optional[str] = None
    status: Optional[str] = None
    user_id: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    def clauses(self) -> List[Any]:
        """Blank text filters are ignored; action and resource match substrings."""
        clauses = []
        if self.action and self.action.strip():
            clauses.append(Log.action.ilike(f"%{self.action.strip()}%"))
        if self.resource and self.resource.strip():
            clauses.append(Log.resource.ilike(f"%{self.resource.strip()}%"))
        if self.status and self.status.strip():
            clauses.append(Log.status == self.status.strip().upper())
        if self.user_id is not None:
            clauses.append(Log.user_id == self.user_id)
        if self.date_from:
            clauses.append(Log.ts >= datetime.combine(self.date_from, time.min))
        if self.date_to:
            # date_to covers the whole day
            clauses.append(Log.ts <= datetime.combine(self.date_to, time.max))
        return clauses


def search_logs(db: Session, filters: LogFilters, page: int = 1, page_size: int = 20) -> Tuple[List[Dict[str, Any]], int]:
    """Newest entries first. Returns one page of rows and the total match count."""
    stmt = (
        select(*Log.__table__.columns, User.email.label("user_email"))
        .outerjoin(User, Log.user_id == User.id)
        .where(*filters.clauses())
    )
    try:
        total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        result = db.execute(
            stmt.order_by(Log.ts.desc(), Log.id.desc()).offset((page - 1) * page_size).limit(page_size)
        )
        rows = [dict(r._mapping) for r in result]
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Audit log query failed: %s", e)
        raise DataClientError(str(e)) from e
    return rows, total
