# backend/utils/data_client.py
"""Table-style access to the shop database.

Every caller reads and writes plain ``dict`` rows keyed by storage column
names. Each write commits on its own, so a sequence of writes is not atomic.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.delivery import BlockedDate, DeliveryPreference, DeliverySettings
from models.order import Order, OrderItem
from models.product import Product
from models.users import User

logger = logging.getLogger(__name__)

TABLES = {
    "products": Product,
    "orders": Order,
    "order_items": OrderItem,
    "users": User,
    "delivery_preferences": DeliveryPreference,
    "delivery_settings": DeliverySettings,
    "blocked_dates": BlockedDate,
}


class DataClientError(Exception):
    """The data store rejected or failed a request."""


class RecordNotFound(DataClientError):
    pass


@dataclass
class QueryResult:
    rows: List[Dict[str, Any]]
    count: Optional[int] = None


class DataClient:
    def __init__(self, db: Session):
        self.db = db

    # ---- helpers ----
    def _model(self, table: str):
        model = TABLES.get(table)
        if model is None:
            raise DataClientError(f"Unknown table: {table}")
        return model

    def _column(self, model, name: str):
        col = model.__table__.columns.get(name)
        if col is None:
            raise DataClientError(f"Unknown column '{name}' on {model.__tablename__}")
        return col

    def _columns(self, model, columns: str):
        if columns.strip() == "*":
            return list(model.__table__.columns)
        return [self._column(model, c.strip()) for c in columns.split(",") if c.strip()]

    def _check_fields(self, model, values: Dict[str, Any]):
        for key in values:
            self._column(model, key)

    def _to_row(self, obj) -> Dict[str, Any]:
        return {c.key: getattr(obj, c.key) for c in obj.__table__.columns}

    def _fail(self, action: str, table: str, exc: SQLAlchemyError):
        self.db.rollback()
        logger.error("%s on %s failed: %s", action, table, exc)
        raise DataClientError(str(getattr(exc, "orig", None) or exc)) from exc

    # ---- reads ----
    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        ascending: bool = True,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        count_exact: bool = False,
    ) -> QueryResult:
        model = self._model(table)
        stmt = select(*self._columns(model, columns))
        for key, value in (filters or {}).items():
            stmt = stmt.where(self._column(model, key) == value)

        if order_by:
            col = self._column(model, order_by)
            stmt = stmt.order_by(col.asc() if ascending else col.desc())

        try:
            count = None
            if count_exact:
                count = self.db.execute(
                    select(func.count()).select_from(stmt.order_by(None).subquery())
                ).scalar_one()

            if offset:
                stmt = stmt.offset(offset)
            if limit is not None:
                stmt = stmt.limit(limit)

            rows = [dict(r._mapping) for r in self.db.execute(stmt)]
        except SQLAlchemyError as e:
            self._fail("Select", table, e)
        return QueryResult(rows=rows, count=count)

    def get(self, table: str, record_id: Any) -> Optional[Dict[str, Any]]:
        model = self._model(table)
        try:
            obj = self.db.get(model, record_id)
        except SQLAlchemyError as e:
            self._fail("Get", table, e)
        return self._to_row(obj) if obj is not None else None

    def find_one(self, table: str, **filters) -> Optional[Dict[str, Any]]:
        result = self.select(table, filters=filters, limit=1)
        return result.rows[0] if result.rows else None

    # ---- writes ----
    def insert(self, table: str, rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        model = self._model(table)
        rows = list(rows)
        for values in rows:
            self._check_fields(model, values)

        objs = [model(**values) for values in rows]
        try:
            self.db.add_all(objs)
            self.db.commit()
            for obj in objs:
                self.db.refresh(obj)
        except SQLAlchemyError as e:
            self._fail("Insert", table, e)
        return [self._to_row(obj) for obj in objs]

    def update(self, table: str, record_id: Any, values: Dict[str, Any]) -> List[Dict[str, Any]]:
        model = self._model(table)
        self._check_fields(model, values)
        try:
            obj = self.db.get(model, record_id)
            if obj is None:
                return []
            for key, value in values.items():
                setattr(obj, key, value)
            self.db.commit()
            self.db.refresh(obj)
        except SQLAlchemyError as e:
            self._fail("Update", table, e)
        return [self._to_row(obj)]

    def upsert(self, table: str, values: Dict[str, Any], on: str) -> Dict[str, Any]:
        """Insert ``values`` or update the row whose ``on`` column matches."""
        model = self._model(table)
        self._check_fields(model, values)
        existing = self.find_one(table, **{on: values[on]})
        if existing is None:
            return self.insert(table, [values])[0]
        pk = model.__table__.primary_key.columns.keys()[0]
        return self.update(table, existing[pk], values)[0]

    def delete(self, table: str, record_id: Any) -> int:
        model = self._model(table)
        try:
            obj = self.db.get(model, record_id)
            if obj is None:
                return 0
            self.db.delete(obj)
            self.db.commit()
        except SQLAlchemyError as e:
            self._fail("Delete", table, e)
        return 1
