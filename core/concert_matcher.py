import logging
from config import CATALOG_VENUE_RADIUS_METERS, CONCERT_MATCH_WINDOW_HOURS, NEARBY_PHOTO_RADIUS_METERS
from core.catalog import CatalogStore
from core.models import EventCandidate, EventGroup, MatchResult
from core.setlistfm import SetlistFmClient
from core.weather import WeatherClient
from dataclasses import dataclass
from datetime import datetime
from utils.dates import is_opener_time, normalize_concert_date

logger = logging.getLogger(__name__)


@dataclass
class MatchRequest:
    user_id: int
    group: EventGroup


def select_candidate(candidates: list[EventCandidate], taken_at: datetime) -> EventCandidate | None:
    """
    Pick one event when several acts played the same venue that day

    Photos taken before the cutoff document the opener (fewest songs),
    later photos the headliner (most songs). Ties keep the listing order.
    """
    if not candidates:
        return None
    if len(candidates) == 1:
        return candidates[0]

    if is_opener_time(taken_at):
        chosen = min(candidates, key=lambda c: c.song_count)
        logger.debug(f"Early photo, choosing opener {chosen.artist_name} ({chosen.song_count} songs)")
    else:
        chosen = max(candidates, key=lambda c: c.song_count)
        logger.debug(f"Late photo, choosing headliner {chosen.artist_name} ({chosen.song_count} songs)")
    return chosen


class ExistingCatalogStrategy:
    """A concert already in the user's catalog at a nearby venue around the photo time"""

    name = 'existing-catalog'

    def __init__(self, catalog: CatalogStore):
        self.catalog = catalog

    def attempt(self, request: MatchRequest) -> MatchResult | None:
        group = request.group
        if not group.has_gps:
            return None

        # Window is centred on the midnight-adjusted show date at noon UTC, not the raw photo time
        anchor = normalize_concert_date(group.event_date)
        for venue in self.catalog.find_venues_near(group.latitude, group.longitude, CATALOG_VENUE_RADIUS_METERS):
            concert = self.catalog.find_concert_near_time(
                request.user_id, venue['id'], anchor, CONCERT_MATCH_WINDOW_HOURS
            )
            if concert:
                logger.debug(f"Existing concert {concert['id']} at '{venue['name']}'")
                return MatchResult(concert_id=concert['id'], is_new=False, strategy=self.name)
        return None


class ExternalSearchStrategy:
    """Search the event database at the resolved venue and materialize the chosen event"""

    name = 'external-search'

    def __init__(self, catalog: CatalogStore, setlistfm: SetlistFmClient, weather: WeatherClient | None = None):
        self.catalog = catalog
        self.setlistfm = setlistfm
        self.weather = weather

    def attempt(self, request: MatchRequest) -> MatchResult | None:
        group = request.group
        venue = group.venue
        if not venue or not venue.name:
            # Date-only searches return every show in the city; never guess without a venue
            logger.debug(f"No resolved venue for group {group.key}, skipping event search")
            return None

        city = group.location.city if group.location else None
        candidates = self.setlistfm.search_setlists(group.event_date, venue.name, city)
        if not candidates and venue.alt_name:
            candidates = self.setlistfm.search_setlists(group.event_date, venue.alt_name, city)

        candidate = select_candidate(candidates, group.taken_at)
        if not candidate:
            return None
        return self.materialize(request, candidate)

    def _weather(self, lat: float | None, lon: float | None) -> dict | None:
        if not self.weather or lat is None or lon is None:
            return None
        return self.weather.current(lat, lon)

    def copy_setlist(self, concert_id: int, artist_id: int, candidate: EventCandidate) -> int:
        copied = 0
        for set_number, songs in enumerate(candidate.sets, start=1):
            for position, entry in enumerate(songs, start=1):
                song = self.catalog.find_or_create_song(entry.name, artist_id)
                self.catalog.create_setlist_entry(concert_id, song['id'], set_number, position, entry.notes)
                copied += 1
        return copied

    def materialize(self, request: MatchRequest, candidate: EventCandidate) -> MatchResult:
        """Create (or reuse) the artist, venue and concert for an event database hit"""
        group = request.group
        location = group.location
        resolved = group.venue

        artist = self.catalog.find_or_create_artist(candidate.artist_name or 'Unknown Artist', candidate.artist_mbid)

        lat = resolved.latitude if resolved and resolved.latitude is not None else group.latitude
        lon = resolved.longitude if resolved and resolved.longitude is not None else group.longitude
        venue = self.catalog.find_or_create_venue(
            candidate.venue_name or resolved.name,
            candidate.city or (location.city if location else 'Unknown'),
            country=candidate.country_code or (location.country if location else 'Unknown'),
            state=candidate.state or (location.state if location else None),
            latitude=lat,
            longitude=lon,
        )

        day = candidate.event_date or group.event_date
        existing = self.catalog.find_concert(request.user_id, venue['id'], day)
        if existing:
            return MatchResult(concert_id=existing['id'], is_new=False, strategy=self.name)

        concert, created = self.catalog.create_concert(
            request.user_id,
            artist['id'],
            venue['id'],
            day,
            external_event_id=candidate.external_id,
            external_url=candidate.url,
        )
        if created:
            weather = self._weather(lat, lon)
            if weather:
                self.catalog.record_weather(concert['id'], weather)
            copied = self.copy_setlist(concert['id'], artist['id'], candidate)
            logger.info(f"New concert: {artist['name']} at {venue['name']} on {day} ({copied} songs)")
        return MatchResult(concert_id=concert['id'], is_new=created, strategy=self.name)


class NearbyMatchedPhotoStrategy:
    """Reuse the concert of an already-matched photo taken close by on the same night"""

    name = 'nearby-matched-photo'

    def __init__(self, catalog: CatalogStore):
        self.catalog = catalog

    def attempt(self, request: MatchRequest) -> MatchResult | None:
        group = request.group
        if not group.has_gps:
            return None
        concert_id = self.catalog.find_nearby_photo_on_same_date(
            request.user_id, group.taken_at, group.latitude, group.longitude, NEARBY_PHOTO_RADIUS_METERS
        )
        if concert_id is None:
            return None
        return MatchResult(concert_id=concert_id, is_new=False, strategy=self.name)


class SameDateNoGpsStrategy:
    """A GPS-less group goes to the only concert the user has on that date"""

    name = 'same-date-no-gps'

    def __init__(self, catalog: CatalogStore):
        self.catalog = catalog

    def attempt(self, request: MatchRequest) -> MatchResult | None:
        group = request.group
        if group.has_gps:
            return None
        concerts = self.catalog.concerts_on_date(request.user_id, group.event_date)
        if len(concerts) != 1:
            if concerts:
                logger.debug(f"{len(concerts)} concerts on {group.event_date}, not guessing for a no-GPS photo")
            return None
        return MatchResult(concert_id=concerts[0]['id'], is_new=False, strategy=self.name)


class ConcertMatcher:
    """Run the matching strategies in order and stop at the first hit"""

    def __init__(
        self, catalog: CatalogStore, setlistfm: SetlistFmClient, weather: WeatherClient | None = None, strategies=None
    ):
        self.strategies = strategies if strategies is not None else [
            ExistingCatalogStrategy(catalog),
            ExternalSearchStrategy(catalog, setlistfm, weather),
            NearbyMatchedPhotoStrategy(catalog),
            SameDateNoGpsStrategy(catalog),
        ]

    def match_concert(self, user_id: int, group: EventGroup) -> MatchResult | None:
        request = MatchRequest(user_id=user_id, group=group)
        for strategy in self.strategies:
            result = strategy.attempt(request)
            if result:
                logger.info(f"Group {group.key} matched concert {result.concert_id} via {strategy.name}")
                return result

        logger.info(f"Group {group.key} matched no concert")
        return None
