"""GraphQL-over-HTTP client for the booking service gateway."""

from __future__ import annotations

import logging
import os
from typing import Any

import requests

from .schemas import (
    ServiceInput,
    ServiceUpdate,
    SpaceInput,
    SpacePresetInput,
    SpaceUpdate,
    VenueInput,
    VenueUpdate,
)

DEFAULT_GATEWAY_URL = "http://localhost:3006"

ALL_VENUES = """
query GetAllVenues {
  allVenues {
    id name address description timezone type openingHours
    spaces { id name capacity }
    networks { id name type }
    parent { id name }
    children { id name }
    profile { id name }
  }
}
"""

CREATE_VENUE = """
mutation CreateVenue($type: VenueType!, $name: String!, $address: String,
  $description: String, $timezone: String, $openingHours: OpeningHoursInput,
  $amenities: JSONObject, $profileId: String, $parentId: String, $networkIds: [String!]) {
  createVenue(type: $type, name: $name, address: $address, description: $description,
    timezone: $timezone, openingHours: $openingHours, amenities: $amenities,
    profileId: $profileId, parentId: $parentId, networkIds: $networkIds) { id name }
}
"""

UPDATE_VENUE = """
mutation UpdateVenue($id: String!, $name: String, $type: VenueType, $address: String,
  $description: String, $timezone: String, $openingHours: OpeningHoursInput,
  $amenities: JSONObject, $profileId: String, $parentId: String, $networkIds: [String!]) {
  updateVenue(id: $id, name: $name, type: $type, address: $address, description: $description,
    timezone: $timezone, openingHours: $openingHours, amenities: $amenities,
    profileId: $profileId, parentId: $parentId, networkIds: $networkIds) { id name }
}
"""

DELETE_VENUE = "mutation DeleteVenue($id: String!) { deleteVenue(id: $id) }"

CREATE_SPACE = """
mutation CreateSpace($venueId: String!, $name: String!, $capacity: Int, $type: String, $amenities: JSONObject) {
  createSpace(venueId: $venueId, name: $name, capacity: $capacity, type: $type, amenities: $amenities) {
    id name capacity type amenities
  }
}
"""

UPDATE_SPACE = """
mutation UpdateSpace($id: String!, $name: String, $capacity: Int, $type: String, $amenities: JSONObject) {
  updateSpace(id: $id, name: $name, capacity: $capacity, type: $type, amenities: $amenities) {
    id name capacity type amenities
  }
}
"""

DELETE_SPACE = "mutation DeleteSpace($id: String!) { deleteSpace(id: $id) }"

ALL_SPACE_PRESETS = """
query AllSpacePresets {
  allSpacePresets { id name type capacity amenities }
}
"""

CREATE_SPACE_PRESET = """
mutation CreateSpacePreset($name: String!, $type: String!, $capacity: Int!, $amenities: JSONObject) {
  createSpacePreset(name: $name, type: $type, capacity: $capacity, amenities: $amenities) { id name }
}
"""

DELETE_SPACE_PRESET = "mutation DeleteSpacePreset($id: String!) { deleteSpacePreset(id: $id) }"

ALL_SERVICES = """
query GetAllServices {
  allServices { id name }
}
"""

CREATE_SERVICE = """
mutation CreateService($name: String!, $description: String, $duration: Float, $price: Float) {
  createService(name: $name, description: $description, duration: $duration, price: $price) { id name }
}
"""

UPDATE_SERVICE = """
mutation UpdateService($id: String!, $name: String, $description: String, $duration: Float, $price: Float) {
  updateService(id: $id, name: $name, description: $description, duration: $duration, price: $price) { id name }
}
"""

DELETE_SERVICE = "mutation DeleteService($id: String!) { deleteService(id: $id) }"


class BookingServiceError(RuntimeError):
    """Raised when the gateway cannot be reached or answers with an HTTP error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BookingGraphQLError(BookingServiceError):
    """Raised when the gateway returns a GraphQL ``errors`` array."""

    def __init__(self, errors: list[Any]) -> None:
        messages = [
            str(item.get("message")) if isinstance(item, dict) else str(item) for item in errors
        ]
        super().__init__("; ".join(messages) or "GraphQL request failed")
        self.errors = errors


def resolve_graphql_endpoint(raw: str | None = None) -> str:
    base = (raw or os.getenv("API_GATEWAY_URL") or DEFAULT_GATEWAY_URL).rstrip("/")
    return base if base.endswith("/graphql") else f"{base}/graphql"


class BookingClient:
    """Execute booking-service queries and mutations.

    ``token`` is sent as a bearer header when given; reads work without it.
    """

    def __init__(
        self,
        endpoint: str | None = None,
        *,
        token: str | None = None,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
        timeout: float = 15.0,
    ) -> None:
        self.endpoint = resolve_graphql_endpoint(endpoint)
        self.token = token
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)
        self.timeout = timeout

    def execute(self, document: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = self.session.request(
                "POST",
                self.endpoint,
                json={"query": document, "variables": variables or {}},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            self.logger.warning("Booking gateway unreachable: %s", exc.__class__.__name__)
            raise BookingServiceError("Booking service is unavailable") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict) and payload.get("errors"):
            raise BookingGraphQLError(list(payload["errors"]))
        if response.status_code >= 400:
            raise BookingServiceError(
                f"Booking service returned HTTP {response.status_code}", response.status_code
            )
        if not isinstance(payload, dict):
            raise BookingServiceError("Booking service returned an invalid response")
        return payload.get("data") or {}

    def _field(self, document: str, field: str, variables: dict[str, Any] | None = None) -> Any:
        return self.execute(document, variables).get(field)

    # Venues
    def all_venues(self) -> list[dict[str, Any]]:
        return self._field(ALL_VENUES, "allVenues") or []

    def create_venue(self, venue: VenueInput) -> dict[str, Any]:
        return self._field(CREATE_VENUE, "createVenue", venue.to_variables())

    def update_venue(self, venue_id: str, changes: VenueUpdate) -> dict[str, Any]:
        return self._field(UPDATE_VENUE, "updateVenue", {"id": venue_id, **changes.to_variables()})

    def delete_venue(self, venue_id: str) -> bool:
        return bool(self._field(DELETE_VENUE, "deleteVenue", {"id": venue_id}))

    # Spaces
    def create_space(self, space: SpaceInput) -> dict[str, Any]:
        return self._field(CREATE_SPACE, "createSpace", space.to_variables())

    def update_space(self, space_id: str, changes: SpaceUpdate) -> dict[str, Any]:
        return self._field(UPDATE_SPACE, "updateSpace", {"id": space_id, **changes.to_variables()})

    def delete_space(self, space_id: str) -> bool:
        return bool(self._field(DELETE_SPACE, "deleteSpace", {"id": space_id}))

    # Space presets
    def all_space_presets(self) -> list[dict[str, Any]]:
        return self._field(ALL_SPACE_PRESETS, "allSpacePresets") or []

    def create_space_preset(self, preset: SpacePresetInput) -> dict[str, Any]:
        return self._field(CREATE_SPACE_PRESET, "createSpacePreset", preset.to_variables())

    def delete_space_preset(self, preset_id: str) -> bool:
        return bool(self._field(DELETE_SPACE_PRESET, "deleteSpacePreset", {"id": preset_id}))

    # Services
    def all_services(self) -> list[dict[str, Any]]:
        return self._field(ALL_SERVICES, "allServices") or []

    def create_service(self, service: ServiceInput) -> dict[str, Any]:
        return self._field(CREATE_SERVICE, "createService", service.to_variables())

    def update_service(self, service_id: str, changes: ServiceUpdate) -> dict[str, Any]:
        return self._field(
            UPDATE_SERVICE, "updateService", {"id": service_id, **changes.to_variables()}
        )

    def delete_service(self, service_id: str) -> bool:
        return bool(self._field(DELETE_SERVICE, "deleteService", {"id": service_id}))


__all__ = [
    "BookingClient",
    "BookingGraphQLError",
    "BookingServiceError",
    "DEFAULT_GATEWAY_URL",
    "resolve_graphql_endpoint",
]
