from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.catalog import list_locations, list_products
from ..crud.movements import list_stock_checks
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..services.shrinkage import shrinkage_report

router = APIRouter(prefix="/api/v1/reports", tags=["reports"], dependencies=[Depends(require_api_key)])


@router.get("/shrinkage")
def api_shrinkage(
    start: Optional[str] = None,
    end: Optional[str] = None,
    location_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    checks = list_stock_checks(db, start=start, end=end, location_id=location_id)
    return shrinkage_report(checks, list_products(db), list_locations(db))
