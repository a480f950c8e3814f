"""Application object and top-level wiring for the Hatch stock service.

This module brings together configuration, database setup, middleware, API
routers and error handling. ``hatch_stock.main`` adds logging, health checks
and metrics on top and is what uvicorn serves.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.errors import (
    StockError,
    http_exception_handler,
    stock_error_handler,
    validation_exception_handler,
)
from .db.migrate import run_migrations
from .db.session import Base, engine
from .middlewares import RequestIdMiddleware, SecurityHeadersMiddleware

# Importing the models registers their tables on ``Base.metadata``.
from .models import catalog as _catalog  # noqa: F401
from .models import movements as _movements  # noqa: F401
from .models import orders as _orders  # noqa: F401
from .models import sales as _sales  # noqa: F401
from .models import stock as _stock  # noqa: F401

# ---------- App init ----------
app = FastAPI(title=settings.APP_NAME)

# ---------- DB init/migrations ----------
# ``create_all`` builds a fresh database; ``run_migrations`` adds late columns
# to one created by an older build.
Base.metadata.create_all(bind=engine)
run_migrations(engine)

# ---------- Middleware ----------
# Added last runs first: request ids wrap everything, including CORS replies.
app.add_middleware(SecurityHeadersMiddleware, hsts=settings.APP_ENV == "prod")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)

# ---------- Routers ----------
# Every API router carries the X-API-Key dependency itself.
from .routers import api_inventory as api_inventory_router  # noqa: E402
from .routers import api_locations as api_locations_router  # noqa: E402
from .routers import api_orders as api_orders_router  # noqa: E402
from .routers import api_products as api_products_router  # noqa: E402
from .routers import api_reports as api_reports_router  # noqa: E402
from .routers import api_routes as api_routes_router  # noqa: E402
from .routers import api_sales as api_sales_router  # noqa: E402
from .routers import api_suppliers as api_suppliers_router  # noqa: E402
from .routers import api_warehouses as api_warehouses_router  # noqa: E402

app.include_router(api_products_router.router)
app.include_router(api_suppliers_router.router)
app.include_router(api_warehouses_router.router)
app.include_router(api_locations_router.router)
app.include_router(api_routes_router.router)
app.include_router(api_inventory_router.router)
app.include_router(api_orders_router.router)
app.include_router(api_sales_router.router)
app.include_router(api_reports_router.router)

# ---------- Exception handling ----------
# Domain errors, HTTP errors and request validation all render the same
# ``{code, message, details}`` envelope.
app.add_exception_handler(StockError, stock_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)


__all__ = ["app"]
