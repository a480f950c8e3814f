"""Product catalog endpoints.

WHAT: CRUD over products keyed by SKU, plus barcode lookup, SKU conflict
      checks and bulk import.
WHEN: Used by the catalog screens and by CSV product imports.
HOW:  Thin wrappers over ``crud.catalog``; domain errors are rendered by the
      app-level ``StockError`` handler.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.errors import NotFoundError
from ..crud.catalog import (
    check_sku_conflict,
    create_product,
    delete_product,
    find_product_by_barcode,
    import_products,
    list_products,
    require_product,
    update_product,
)
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.catalog import (
    ProductCreate,
    ProductImportRequest,
    ProductImportResult,
    ProductOut,
    ProductUpdate,
    SkuCheckOut,
)

router = APIRouter(prefix="/api/v1/products", tags=["products"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[ProductOut])
def api_list(search: Optional[str] = None, category: Optional[str] = None, db: Session = Depends(get_db)):
    return list_products(db, search=search, category=category)


@router.get("/check-sku", response_model=SkuCheckOut)
def api_check_sku(sku: str, name: Optional[str] = None, db: Session = Depends(get_db)):
    return check_sku_conflict(db, sku, name)


@router.get("/barcode/{barcode}", response_model=ProductOut)
def api_by_barcode(barcode: str, db: Session = Depends(get_db)):
    product = find_product_by_barcode(db, barcode)
    if not product:
        raise NotFoundError(f"no product with barcode {barcode}")
    return product


@router.post("/import", response_model=ProductImportResult)
def api_import(payload: ProductImportRequest, db: Session = Depends(get_db)):
    return import_products(db, payload.products)


@router.get("/{sku}", response_model=ProductOut)
def api_get(sku: str, db: Session = Depends(get_db)):
    return require_product(db, sku)


@router.post("", response_model=ProductOut, status_code=201)
def api_create(payload: ProductCreate, db: Session = Depends(get_db)):
    return create_product(db, payload.model_dump(exclude_none=True))


@router.patch("/{sku}", response_model=ProductOut)
def api_update(sku: str, payload: ProductUpdate, db: Session = Depends(get_db)):
    product = require_product(db, sku)
    data = payload.model_dump(exclude_unset=True)
    if not data:
        return product
    return update_product(db, product, data)


@router.delete("/{sku}")
def api_delete(sku: str, db: Session = Depends(get_db)):
    delete_product(db, require_product(db, sku))
    return {"status": "deleted"}
