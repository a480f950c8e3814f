from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.catalog import create_route, delete_route, list_routes, require_route, route_locations, update_route
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..models.catalog import RestockRoute
from ..schemas.catalog import LocationOut, RouteIn, RouteOut

router = APIRouter(prefix="/api/v1/routes", tags=["routes"], dependencies=[Depends(require_api_key)])


def _route_out(db: Session, route: RestockRoute) -> RouteOut:
    return RouteOut(
        id=route.id,
        name=route.name,
        location_ids=route.location_ids,
        locations=[LocationOut.model_validate(loc) for loc in route_locations(db, route)],
        created_at=route.created_at,
    )


@router.get("", response_model=list[RouteOut])
def api_list(db: Session = Depends(get_db)):
    return [_route_out(db, route) for route in list_routes(db)]


@router.get("/{route_id}", response_model=RouteOut)
def api_get(route_id: int, db: Session = Depends(get_db)):
    return _route_out(db, require_route(db, route_id))


@router.post("", response_model=RouteOut, status_code=201)
def api_create(payload: RouteIn, db: Session = Depends(get_db)):
    return _route_out(db, create_route(db, payload.model_dump()))


@router.patch("/{route_id}", response_model=RouteOut)
def api_update(route_id: int, payload: RouteIn, db: Session = Depends(get_db)):
    route = update_route(db, require_route(db, route_id), payload.model_dump(exclude_unset=True))
    return _route_out(db, route)


@router.delete("/{route_id}")
def api_delete(route_id: int, db: Session = Depends(get_db)):
    delete_route(db, require_route(db, route_id))
    return {"status": "deleted"}
