import httpx
import logging
import time
from config import (
    NOMINATIM_USER_AGENT,
    OVERPASS_BACKOFF_SECONDS,
    OVERPASS_MAX_RETRIES,
    OVERPASS_TIMEOUT_SECONDS,
    OVERPASS_URL,
    VENUE_SEARCH_RADIUS_METERS,
)
from core.models import OSMVenue
from typing import Callable
from utils.geo import distance_meters

logger = logging.getLogger(__name__)

VENUE_TAGS = {
    'amenity': ('nightclub', 'theatre', 'theater', 'stage', 'events_venue', 'events_centre'),
    'leisure': ('bandstand', 'stadium', 'park'),
}
ALT_NAME_TAGS = ('alt_name', 'old_name', 'official_name')
RETRYABLE_STATUS_CODES = {502, 503, 504, 524}


def build_venue_query(lat: float, lon: float, radius_meters: int, timeout: int = 25) -> str:
    """Overpass QL for named nodes and ways carrying any venue tag around a point"""
    around = f"around:{int(radius_meters)},{lat:.6f},{lon:.6f}"
    clauses = []
    for key, values in VENUE_TAGS.items():
        for value in values:
            for element in ('node', 'way'):
                clauses.append(f'{element}["{key}"="{value}"]["name"]({around});')
    return f"[out:json][timeout:{timeout}];(" + ''.join(clauses) + ');out tags center;'


def _element_center(element: dict) -> tuple[float, float] | None:
    center = element.get('center')
    if isinstance(center, dict) and 'lat' in center and 'lon' in center:
        return float(center['lat']), float(center['lon'])
    if 'lat' in element and 'lon' in element:
        return float(element['lat']), float(element['lon'])
    return None


def _matched_tag(tags: dict) -> str | None:
    for key, values in VENUE_TAGS.items():
        if tags.get(key) in values:
            return f"{key}={tags[key]}"
    return None


def parse_elements(elements: list, lat: float, lon: float) -> list[OSMVenue]:
    """Named venue elements with coordinates, closest first"""
    venues = []
    for element in elements:
        if not isinstance(element, dict):
            continue
        tags = element.get('tags') or {}
        name = (tags.get('name') or '').strip()
        center = _element_center(element)
        matched = _matched_tag(tags)
        if not name or not center or not matched:
            continue

        alt_name = next((tags[t].strip() for t in ALT_NAME_TAGS if tags.get(t, '').strip()), None)
        venues.append(
            OSMVenue(
                name=name,
                latitude=center[0],
                longitude=center[1],
                tags=tags,
                matched_tag=matched,
                distance_meters=distance_meters(lat, lon, center[0], center[1]),
                alt_name=alt_name,
            )
        )

    venues.sort(key=lambda v: v.distance_meters)
    return venues


class OverpassClient:
    """Geospatial tag lookups against an Overpass API endpoint"""

    def __init__(
        self,
        client: httpx.Client | None = None,
        url: str = OVERPASS_URL,
        max_retries: int = OVERPASS_MAX_RETRIES,
        backoff_seconds: float = OVERPASS_BACKOFF_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client or httpx.Client(
            timeout=OVERPASS_TIMEOUT_SECONDS, headers={'User-Agent': NOMINATIM_USER_AGENT}
        )
        self.url = url
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep

    def _post(self, query: str) -> dict | None:
        """POST a query, retrying gateway timeouts with doubling backoff"""
        for attempt in range(self.max_retries + 1):
            try:
                response = self.client.post(self.url, data={'data': query})
                if response.status_code in RETRYABLE_STATUS_CODES:
                    raise httpx.HTTPStatusError(
                        f"Overpass returned {response.status_code}", request=response.request, response=response
                    )
                response.raise_for_status()
                return response.json()
            except (httpx.TimeoutException, httpx.HTTPStatusError) as e:
                retryable = isinstance(e, httpx.TimeoutException) or (
                    e.response.status_code in RETRYABLE_STATUS_CODES
                )
                if not retryable or attempt >= self.max_retries:
                    logger.error(f"Overpass request failed: {e}")
                    return None
                delay = self.backoff_seconds * (2**attempt)
                logger.warning(f"Overpass attempt {attempt + 1} failed ({e}), retrying in {delay:.0f}s")
                self.sleep(delay)
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"Overpass request failed: {e}")
                return None
        return None

    def find_venues(self, lat: float, lon: float, radius_meters: int = VENUE_SEARCH_RADIUS_METERS) -> list[OSMVenue]:
        data = self._post(build_venue_query(lat, lon, radius_meters))
        if not data:
            return []

        venues = parse_elements(data.get('elements') or [], lat, lon)
        logger.debug(f"Overpass returned {len(venues)} named venues within {radius_meters}m of {lat}, {lon}")
        return venues
