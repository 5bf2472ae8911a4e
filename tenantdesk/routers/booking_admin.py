"""Booking-service administration proxied through the console API."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException

from ..booking import BookingClient, BookingGraphQLError, BookingServiceError
from ..booking import schemas
from ..security.auth import require_role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/booking", tags=["booking-admin"])

ViewerRole = Annotated[str, Depends(require_role("viewer"))]
OperatorRole = Annotated[str, Depends(require_role("operator"))]


def get_booking_client(
    x_booking_token: Annotated[str | None, Header()] = None,
) -> BookingClient:
    """Client authenticated with ``X-Booking-Token`` or ``BOOKING_SERVICE_TOKEN``."""

    token = x_booking_token or os.getenv("BOOKING_SERVICE_TOKEN") or None
    return BookingClient(token=token)


BookingDep = Annotated[BookingClient, Depends(get_booking_client)]


@contextmanager
def _upstream() -> Iterator[None]:
    try:
        yield
    except BookingGraphQLError as exc:
        logger.warning("Booking service rejected the request: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except BookingServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


def _deleted(ok: bool) -> dict[str, bool]:
    return {"success": ok}


# Venues
@router.get("/venues")
def list_venues(client: BookingDep, role: ViewerRole) -> list[dict[str, Any]]:
    with _upstream():
        return client.all_venues()


@router.post("/venues", status_code=201)
def create_venue(payload: schemas.VenueInput, client: BookingDep, role: OperatorRole) -> dict[str, Any]:
    with _upstream():
        return client.create_venue(payload)


@router.put("/venues/{venue_id}")
def update_venue(
    venue_id: str, payload: schemas.VenueUpdate, client: BookingDep, role: OperatorRole
) -> dict[str, Any]:
    with _upstream():
        return client.update_venue(venue_id, payload)


@router.delete("/venues/{venue_id}")
def delete_venue(venue_id: str, client: BookingDep, role: OperatorRole) -> dict[str, bool]:
    with _upstream():
        return _deleted(client.delete_venue(venue_id))


# Spaces
@router.post("/spaces", status_code=201)
def create_space(payload: schemas.SpaceInput, client: BookingDep, role: OperatorRole) -> dict[str, Any]:
    with _upstream():
        return client.create_space(payload)


@router.put("/spaces/{space_id}")
def update_space(
    space_id: str, payload: schemas.SpaceUpdate, client: BookingDep, role: OperatorRole
) -> dict[str, Any]:
    with _upstream():
        return client.update_space(space_id, payload)


@router.delete("/spaces/{space_id}")
def delete_space(space_id: str, client: BookingDep, role: OperatorRole) -> dict[str, bool]:
    with _upstream():
        return _deleted(client.delete_space(space_id))


# Space presets
@router.get("/space-presets")
def list_space_presets(client: BookingDep, role: ViewerRole) -> list[dict[str, Any]]:
    with _upstream():
        return client.all_space_presets()


@router.post("/space-presets", status_code=201)
def create_space_preset(
    payload: schemas.SpacePresetInput, client: BookingDep, role: OperatorRole
) -> dict[str, Any]:
    with _upstream():
        return client.create_space_preset(payload)


@router.delete("/space-presets/{preset_id}")
def delete_space_preset(preset_id: str, client: BookingDep, role: OperatorRole) -> dict[str, bool]:
    with _upstream():
        return _deleted(client.delete_space_preset(preset_id))


# Services
@router.get("/services")
def list_services(client: BookingDep, role: ViewerRole) -> list[dict[str, Any]]:
    with _upstream():
        return client.all_services()


@router.post("/services", status_code=201)
def create_service(
    payload: schemas.ServiceInput, client: BookingDep, role: OperatorRole
) -> dict[str, Any]:
    with _upstream():
        return client.create_service(payload)


@router.put("/services/{service_id}")
def update_service(
    service_id: str, payload: schemas.ServiceUpdate, client: BookingDep, role: OperatorRole
) -> dict[str, Any]:
    with _upstream():
        return client.update_service(service_id, payload)


@router.delete("/services/{service_id}")
def delete_service(service_id: str, client: BookingDep, role: OperatorRole) -> dict[str, bool]:
    with _upstream():
        return _deleted(client.delete_service(service_id))
