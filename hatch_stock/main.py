from __future__ import annotations

import logging

import uvicorn
from fastapi import Depends
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .core.config import settings
from .core.errors import ErrorEnvelope
from .core.logging import configure_logging
from .db.session import get_db
from . import app as api_app

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = api_app
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, include_in_schema=False)


@app.get("/health")
async def health() -> dict[str, object]:
    return {"ok": True, "app": settings.APP_NAME, "env": settings.APP_ENV}


@app.get("/health/db")
def health_db(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("health.db_unavailable")
        return ErrorEnvelope(status_code=503, code="db_unavailable", message="Database unavailable")
    return {"ok": True}


def run() -> None:
    uvicorn.run("hatch_stock.main:app", host=settings.HOST, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
