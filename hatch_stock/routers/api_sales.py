from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.catalog import import_products
from ..crud.sales import (
    import_sales,
    list_imports,
    list_sales,
    reconcile_stock_from_sales,
    summarize_sales_by_location,
)
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.sales import (
    ReconcileIn,
    ReconcileResult,
    SaleOut,
    SalesImportIn,
    SalesImportOut,
    SalesImportResult,
    VendliveImportIn,
)
from ..services import analytics
from ..services.vendlive import parse_vendlive_csv

router = APIRouter(prefix="/api/v1/sales", tags=["sales"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[SaleOut])
def api_list(
    start: Optional[str] = None,
    end: Optional[str] = None,
    sku: Optional[str] = None,
    limit: int = 1000,
    db: Session = Depends(get_db),
):
    return list_sales(db, start=start, end=end, sku=sku, limit=limit)


@router.post("/import", response_model=SalesImportResult)
def api_import(payload: SalesImportIn, db: Session = Depends(get_db)):
    return import_sales(db, [sale.model_dump() for sale in payload.sales], payload.filename)


@router.post("/import/vendlive", response_model=SalesImportResult)
def api_import_vendlive(payload: VendliveImportIn, db: Session = Depends(get_db)):
    """Import a raw Vendlive CSV export. Products seen in the file are upserted first."""

    parsed = parse_vendlive_csv(payload.content)
    products_imported = None
    if payload.import_products and parsed.products:
        outcome = import_products(db, parsed.products)
        products_imported = outcome["created"] + outcome["updated"]
    result = import_sales(db, parsed.sales, payload.filename)
    result["products_imported"] = products_imported
    return result


@router.get("/imports", response_model=list[SalesImportOut])
def api_imports(limit: int = 50, db: Session = Depends(get_db)):
    return list_imports(db, limit=limit)


@router.get("/analytics")
def api_summary(start: Optional[str] = None, end: Optional[str] = None, db: Session = Depends(get_db)):
    return analytics.summary(list_sales(db, start=start, end=end, limit=None))


@router.get("/daily")
def api_daily(start: Optional[str] = None, end: Optional[str] = None, db: Session = Depends(get_db)):
    return analytics.by_day(list_sales(db, start=start, end=end, limit=None))


@router.get("/by-product")
def api_by_product(start: Optional[str] = None, end: Optional[str] = None, db: Session = Depends(get_db)):
    return analytics.by_product(list_sales(db, start=start, end=end, limit=None))


@router.get("/by-category")
def api_by_category(start: Optional[str] = None, end: Optional[str] = None, db: Session = Depends(get_db)):
    return analytics.by_category(list_sales(db, start=start, end=end, limit=None))


@router.get("/by-location")
def api_by_location(start: Optional[str] = None, end: Optional[str] = None, db: Session = Depends(get_db)):
    """Units sold per location name, the input to the reconciliation mapping step."""

    return summarize_sales_by_location(list_sales(db, start=start, end=end, limit=None))


@router.post("/reconcile", response_model=ReconcileResult)
def api_reconcile(payload: ReconcileIn, db: Session = Depends(get_db)):
    sales = list_sales(db, start=payload.start, end=payload.end, limit=None)
    return reconcile_stock_from_sales(db, summarize_sales_by_location(sales), payload.location_map)
