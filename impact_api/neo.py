"""NASA NeoWs / Near-Earth Comets integration."""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx

from .config import Settings, mask_key
from .errors import AsteroidNotFoundError, ProviderError
from .impact_model import Composition, ImpactorParameters, sphere_mass_kg

logger = logging.getLogger(__name__)

# NeoWs only reports size; mass assumes an average stony body.
NEO_ASSUMED_DENSITY = 3000.0  # kg/m^3
NEO_DEFAULT_ANGLE_DEG = 45.0
COMET_RESULT_LIMIT = 10


@dataclass(frozen=True)
class AsteroidData:
    id: str
    name: str
    speed_mps: float
    diameter_m: float
    mass_kg: float
    is_hazardous: bool
    absolute_magnitude: Optional[float]

    def to_impactor(self, angle_deg: float = NEO_DEFAULT_ANGLE_DEG,
                    composition: Composition = Composition.STONY) -> ImpactorParameters:
        return ImpactorParameters(
            speed_mps=self.speed_mps,
            diameter_m=self.diameter_m,
            mass_kg=self.mass_kg,
            angle_deg=angle_deg,
            composition=composition,
            source_name=self.name,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "speedMps": self.speed_mps,
            "diameterM": self.diameter_m,
            "massKg": self.mass_kg,
            "isHazardous": self.is_hazardous,
            "absoluteMagnitude": self.absolute_magnitude,
        }


class AsteroidDataProvider(Protocol):
    async def fetch_by_id(self, asteroid_id: str) -> AsteroidData: ...


def parse_neo(payload: Dict[str, Any], asteroid_id: str) -> AsteroidData:
    """Map a NeoWs /neo/{id} payload; missing size or speed is an error, never a default."""
    try:
        diameter = float(payload["estimated_diameter"]["meters"]["estimated_diameter_max"])
    except (KeyError, TypeError, ValueError):
        raise ProviderError(f"NeoWs payload for {asteroid_id} has no usable estimated diameter.")

    approaches = payload.get("close_approach_data") or []
    try:
        speed = float(approaches[0]["relative_velocity"]["kilometers_per_second"]) * 1000.0
    except (IndexError, KeyError, TypeError, ValueError):
        raise ProviderError(f"NeoWs payload for {asteroid_id} has no close-approach velocity.")

    if diameter <= 0.0 or speed <= 0.0:
        raise ProviderError(f"NeoWs payload for {asteroid_id} has non-positive size or speed.")

    h = payload.get("absolute_magnitude_h")
    return AsteroidData(
        id=str(payload.get("id") or asteroid_id),
        name=str(payload.get("name") or asteroid_id),
        speed_mps=speed,
        diameter_m=diameter,
        mass_kg=sphere_mass_kg(diameter, NEO_ASSUMED_DENSITY),
        is_hazardous=bool(payload.get("is_potentially_hazardous_asteroid", False)),
        absolute_magnitude=float(h) if h is not None else None,
    )


class NeoWsClient:
    """AsteroidDataProvider backed by api.nasa.gov."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._base = settings.nasa_neo_api_base.rstrip("/")
        self._comets_url = settings.nasa_comets_url
        self._api_key = settings.nasa_api_key
        self._timeout = settings.neo_timeout_s
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def fetch_by_id(self, asteroid_id: str) -> AsteroidData:
        asteroid_id = str(asteroid_id).strip()
        if not asteroid_id:
            raise AsteroidNotFoundError("Asteroid ID is required.")

        url = f"{self._base}/neo/{asteroid_id}"
        logger.info("[neo.request] GET %s key=%s", url, mask_key(self._api_key))
        try:
            async with self._client() as client:
                r = await client.get(url, params={"api_key": self._api_key})
        except httpx.HTTPError as e:
            logger.warning("[neo.error] transport id=%s error=%s", asteroid_id, e)
            raise ProviderError(f"NASA NeoWs unreachable: {e}") from e

        logger.info("[neo.response] id=%s status=%s", asteroid_id, r.status_code)
        if r.status_code in (400, 404):
            raise AsteroidNotFoundError(f"Unknown asteroid id '{asteroid_id}'.")
        if r.status_code >= 400:
            raise ProviderError(f"NASA NeoWs returned HTTP {r.status_code} for '{asteroid_id}'.")

        try:
            payload = r.json()
        except ValueError as je:
            raise ProviderError(f"NASA NeoWs returned non-JSON: {je}") from je
        if not isinstance(payload, dict):
            raise ProviderError("NASA NeoWs returned an unexpected response.")

        data = parse_neo(payload, asteroid_id)
        logger.info("[neo.parsed] id=%s name=%s d=%.1fm v=%.0fm/s hazardous=%s",
                    data.id, data.name, data.diameter_m, data.speed_mps, data.is_hazardous)
        return data

    async def search_comets(self, query: str) -> list[dict]:
        """Case-insensitive object_name match against the Near-Earth Comets dataset."""
        needle = (query or "").strip().lower()
        logger.info("[comets.request] GET %s query=%r", self._comets_url, needle)
        try:
            async with self._client() as client:
                r = await client.get(self._comets_url)
                r.raise_for_status()
                rows = r.json()
        except httpx.HTTPError as e:
            logger.warning("[comets.error] %s", e)
            raise ProviderError(f"Failed to fetch comet data: {e}") from e
        except ValueError as je:
            raise ProviderError(f"Comet dataset returned non-JSON: {je}") from je

        if not isinstance(rows, list):
            raise ProviderError("Comet dataset returned an unexpected response.")
        hits = [row for row in rows
                if isinstance(row, dict) and needle in str(row.get("object_name") or "").lower()]
        logger.info("[comets.done] rows=%d hits=%d", len(rows), len(hits))
        return hits[:COMET_RESULT_LIMIT]
