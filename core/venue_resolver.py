import logging
from config import (
    VENUE_CACHE_RADIUS_METERS,
    VENUE_CLOSE_FALLBACK_METERS,
    VENUE_HIGH_CONFIDENCE_METERS,
    VENUE_MEDIUM_CONFIDENCE_METERS,
    VENUE_SEARCH_RADIUS_METERS,
    VENUE_VALIDATION_CANDIDATES,
)
from core.catalog import CatalogStore
from core.models import Confidence, Location, OSMVenue, ResolvedVenue, VenueMethod
from core.overpass import OverpassClient
from core.setlistfm import SetlistFmClient

logger = logging.getLogger(__name__)


def confidence_for_distance(distance: float, is_park: bool = False) -> Confidence:
    if is_park or distance > VENUE_MEDIUM_CONFIDENCE_METERS:
        return Confidence.LOW
    if distance > VENUE_HIGH_CONFIDENCE_METERS:
        return Confidence.MEDIUM
    return Confidence.HIGH


class VenueResolver:
    """Most likely named venue for a coordinate: catalog cache, map tags, event database validation"""

    def __init__(self, catalog: CatalogStore, overpass: OverpassClient, setlistfm: SetlistFmClient):
        self.catalog = catalog
        self.overpass = overpass
        self.setlistfm = setlistfm

    def _from_cache(self, lat: float, lon: float) -> ResolvedVenue | None:
        cached = self.catalog.find_venues_near(lat, lon, VENUE_CACHE_RADIUS_METERS)
        if not cached:
            return None
        venue = cached[0]
        logger.debug(f"Venue cache hit: '{venue['name']}' {venue['distance']:.0f}m away")
        return ResolvedVenue(
            name=venue['name'],
            method=VenueMethod.OSM_TAG,
            confidence=confidence_for_distance(venue['distance']),
            distance_meters=venue['distance'],
            alt_name=venue.get('alt_name'),
            latitude=venue['latitude'],
            longitude=venue['longitude'],
        )

    def _is_validated(self, candidate: OSMVenue, city: str) -> bool:
        if self.setlistfm.validate_venue(candidate.name, city):
            return True
        if candidate.alt_name and candidate.alt_name != candidate.name:
            logger.debug(f"Retrying validation of '{candidate.name}' as '{candidate.alt_name}'")
            return self.setlistfm.validate_venue(candidate.alt_name, city)
        return False

    def _validate(self, candidates: list[OSMVenue], city: str) -> ResolvedVenue | None:
        for candidate in candidates[:VENUE_VALIDATION_CANDIDATES]:
            if not self._is_validated(candidate, city):
                logger.debug(f"Skipping '{candidate.name}' ({candidate.distance_meters:.0f}m): no events listed")
                continue

            logger.info(f"Validated venue '{candidate.name}' ({candidate.distance_meters:.0f}m away)")
            confidence = confidence_for_distance(candidate.distance_meters, candidate.is_park)
            return self._resolved(candidate, VenueMethod.OSM_SCAN_VALIDATED, confidence)
        return None

    @staticmethod
    def _resolved(candidate: OSMVenue, method: VenueMethod, confidence: Confidence) -> ResolvedVenue:
        return ResolvedVenue(
            name=candidate.name,
            method=method,
            confidence=confidence,
            distance_meters=candidate.distance_meters,
            alt_name=candidate.alt_name,
            latitude=candidate.latitude,
            longitude=candidate.longitude,
            matched_tag=candidate.matched_tag,
        )

    def resolve_venue(self, lat: float, lon: float, location: Location | None = None) -> ResolvedVenue | None:
        """
        Resolve a coordinate to a venue

        Catalog venues within the cache radius win outright. Otherwise the
        closest tagged map features are validated against the event database
        (only when the city is known); failing that, a feature closer than the
        fallback distance is trusted unvalidated. Any venue found through the
        map is written back to the catalog. Returns None when nothing fits.
        """
        cached = self._from_cache(lat, lon)
        if cached:
            return cached

        candidates = self.overpass.find_venues(lat, lon, VENUE_SEARCH_RADIUS_METERS)
        if not candidates:
            logger.info(f"No tagged venues near {lat}, {lon}")
            return None

        resolved = None
        if location and location.city:
            resolved = self._validate(candidates, location.city)
            if not resolved:
                logger.info(f"No venue near {lat}, {lon} has events listed in {location.city}")

        if not resolved:
            closest = candidates[0]
            if closest.distance_meters < VENUE_CLOSE_FALLBACK_METERS:
                confidence = Confidence.LOW if closest.is_park else Confidence.HIGH
                logger.info(f"Using closest venue '{closest.name}' ({closest.distance_meters:.0f}m) without validation")
                resolved = self._resolved(closest, VenueMethod.OSM_TAG, confidence)
            else:
                logger.info(f"Closest venue '{closest.name}' is {closest.distance_meters:.0f}m away, too far to trust")
                return None

        self.catalog.cache_venue(
            resolved.name, resolved.latitude, resolved.longitude, location=location, alt_name=resolved.alt_name
        )
        return resolved
