# backend/routes/products.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from sqlalchemy.sql.expression import ColumnElement

from database import get_db
from utils.tokenJWT import get_optional_user, role_required
from utils.audit import client_ip, write_log
from utils.data_client import DataClient, DataClientError, RecordNotFound
from models.users import User
from models.product import Product
from services.fetch import DataFeed, FetchOptions, OrderBy, page_response
from services.records import create_record, delete_record, update_record
import schemas.product as product_schemas

router = APIRouter(tags=["Products"])

SORTABLE = {"id", "name", "price", "category", "created_at"}


# ---- HELPERS ----
def _is_admin(user: Optional[User]) -> bool:
    return user is not None and (user.role or "").upper() == "ADMIN"

def _get_unique_values(db: Session, column: ColumnElement) -> List[str]:
    values = db.query(column).distinct().filter(column != None, column != "").order_by(column).all()  # noqa: E711
    return [v[0] for v in values]


# =========================
# PRODUCT LIST
# =========================
@router.get("/products", response_model=product_schemas.ProductListPage)
def list_products(
    category: Optional[str] = Query(None),
    is_organic: Optional[bool] = Query(None),
    available: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    sort_by: str = Query("name"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    if sort_by not in SORTABLE:
        raise HTTPException(status_code=400, detail=f"Cannot sort by {sort_by}")

    # Shoppers only ever see what can be bought
    if not _is_admin(current_user):
        available = True

    options = FetchOptions(
        table="products",
        filters={"category": category, "is_organic": is_organic, "available": available},
        order_by=OrderBy(column=sort_by, ascending=(order == "asc")),
        limit=page_size,
        page=page,
    )
    result = DataFeed(DataClient(db)).refresh(options)
    if result.error:
        raise HTTPException(status_code=502, detail=result.error)
    return page_response(result, options)


@router.get("/products/categories", response_model=List[str])
def get_product_categories(db: Session = Depends(get_db)):
    return _get_unique_values(db, Product.category)


# =========================
# SINGLE PRODUCT
# =========================
@router.get("/products/{product_id}", response_model=product_schemas.ProductOut)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    product = DataClient(db).get("products", product_id)
    if not product or (not product["available"] and not _is_admin(current_user)):
        raise HTTPException(status_code=404, detail="Product not found")
    return product


# =========================
# ADMIN CRUD
# =========================
@router.post("/products", response_model=product_schemas.ProductOut, status_code=201)
def add_product(
    payload: product_schemas.ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    try:
        product = create_record(DataClient(db), "products", payload.model_dump())
    except DataClientError as e:
        raise HTTPException(status_code=500, detail=f"Could not create product: {e}")

    write_log(
        db, user_id=current_user.id, action="PRODUCT_CREATE", resource="products",
        ip=client_ip(request), meta={"id": product["id"], "name": product["name"]},
    )
    return product


@router.patch("/products/{product_id}", response_model=product_schemas.ProductOut)
def edit_product(
    product_id: int,
    payload: product_schemas.ProductUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    changes = payload.model_dump(exclude_unset=True)
    for key in ("name", "price", "is_organic", "available", "stock_quantity"):
        if key in changes and changes[key] is None:
            raise HTTPException(status_code=400, detail=f"{key} cannot be empty")

    try:
        product = update_record(DataClient(db), "products", product_id, changes)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Product not found")
    except DataClientError as e:
        raise HTTPException(status_code=500, detail=f"Could not update product: {e}")

    write_log(
        db, user_id=current_user.id, action="PRODUCT_EDIT", resource="products",
        ip=client_ip(request), meta={"product_id": product_id, "fields": sorted(changes)},
    )
    return product


@router.delete("/products/{product_id}", status_code=204)
def delete_product(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required("admin")),
):
    client = DataClient(db)
    if client.get("products", product_id) is None:
        raise HTTPException(status_code=404, detail="Product not found")
    # Ordered products keep their history; hide them instead
    if client.find_one("order_items", product_id=product_id):
        raise HTTPException(status_code=409, detail="Product has orders; mark it unavailable instead")

    try:
        delete_record(client, "products", product_id)
    except DataClientError as e:
        raise HTTPException(status_code=500, detail=f"Could not delete product: {e}")

    write_log(
        db, user_id=current_user.id, action="PRODUCT_DELETE", resource="products",
        ip=client_ip(request), meta={"product_id": product_id},
    )
