# chaintrack/routes/products.py
from typing import Optional
from fastapi import APIRouter, Depends, Request, Query
from sqlalchemy.orm import Session

from chaintrack.database import get_db
from chaintrack.models.users import User, Role
from chaintrack.schemas import product as product_schemas
from chaintrack.services import catalog
from chaintrack.services.access import require_owner
from chaintrack.utils.audit import client_ip, write_log
from chaintrack.utils.tokenJWT import get_current_user, role_required

router = APIRouter(prefix="/products", tags=["Products"])


@router.get("", response_model=product_schemas.ProductListPage)
def list_products(
    manufacturer_id: Optional[int] = Query(None),
    serialized: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items = catalog.list_products(db, manufacturer_id=manufacturer_id, serialized=serialized)
    return {"items": items, "total": len(items)}


@router.get("/{product_id}", response_model=product_schemas.ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return catalog.require_product(db, product_id)


@router.post("", response_model=product_schemas.ProductOut, status_code=201)
def create_product(
    payload: product_schemas.ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.MANUFACTURER)),
):
    product = catalog.create_product(
        db, name=payload.name, description=payload.description,
        is_serialized=payload.is_serialized, manufacturer_id=current_user.id,
    )
    write_log(db, user_id=current_user.id, action="PRODUCT_CREATE", resource="products", status="SUCCESS",
              ip=client_ip(request), meta={"product_id": product.id, "serialized": product.is_serialized})
    return product


@router.patch("/{product_id}", response_model=product_schemas.ProductOut)
def edit_product(
    product_id: int,
    payload: product_schemas.ProductEditRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.MANUFACTURER)),
):
    product = catalog.require_product(db, product_id)
    require_owner(current_user, product.manufacturer_id, "product", product_id)
    changes = payload.model_dump(exclude_unset=True)
    product = catalog.update_product(db, product_id, **changes)
    write_log(db, user_id=current_user.id, action="PRODUCT_EDIT", resource="products", status="SUCCESS",
              ip=client_ip(request), meta={"product_id": product_id, "fields": sorted(changes)})
    return product


@router.delete("/{product_id}", status_code=204)
def delete_product(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(role_required(Role.MANUFACTURER)),
):
    product = catalog.require_product(db, product_id)
    require_owner(current_user, product.manufacturer_id, "product", product_id)
    catalog.delete_product(db, product_id)
    write_log(db, user_id=current_user.id, action="PRODUCT_DELETE", resource="products", status="SUCCESS",
              ip=client_ip(request), meta={"product_id": product_id})
