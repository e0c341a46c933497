# backend/schemas/log.py
from datetime import datetime
from typing import Any, List, Optional

from schemas.base import AppModel


# One audit trail row, with the acting user's email when there is one
class LogEntryOut(AppModel):
    id: int
    ts: datetime
    user_id: Optional[int] = None
    user_email: Optional[str] = None
    action: str
    resource: str
    status: str
    ip: Optional[str] = None
    meta: Optional[Any] = None


class LogPage(AppModel):
    items: List[LogEntryOut]
    total: int
    page: int
    page_size: int
