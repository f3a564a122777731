import httpx
import logging
from config import (
    SETLISTFM_API_KEY,
    SETLISTFM_API_URL,
    SETLISTFM_MAX_PAGES,
    SETLISTFM_MIN_INTERVAL_SECONDS,
    SETLISTFM_TIMEOUT_SECONDS,
)
from core.models import EventCandidate, SongEntry
from datetime import date
from utils.dates import format_event_date, parse_event_date
from utils.fuzzy import is_fuzzy_match, similarity
from utils.rate_limit import RateLimiter
from utils.venue_names import first_significant_word, first_word, simplify_venue_name

logger = logging.getLogger(__name__)

MIN_FALLBACK_WORD_LENGTH = 3


def _coordinate(value) -> float | None:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def parse_candidate(item: dict) -> EventCandidate:
    """Map one setlist.fm setlist object onto an EventCandidate"""
    artist = item.get('artist') or {}
    venue = item.get('venue') or {}
    city = venue.get('city') or {}
    coords = city.get('coords') or {}
    country = city.get('country') or {}

    sets = []
    for set_data in (item.get('sets') or {}).get('set') or []:
        songs = [
            SongEntry(name=song['name'], info=song.get('info'), tape=bool(song.get('tape')))
            for song in set_data.get('song') or []
            if song.get('name')
        ]
        sets.append(songs)

    return EventCandidate(
        external_id=item.get('id'),
        artist_name=artist.get('name'),
        venue_name=venue.get('name'),
        city=city.get('name'),
        state=city.get('state'),
        country_code=country.get('code'),
        latitude=_coordinate(coords.get('lat')),
        longitude=_coordinate(coords.get('long')),
        event_date=parse_event_date(item.get('eventDate')),
        artist_mbid=artist.get('mbid'),
        url=item.get('url'),
        tour=(item.get('tour') or {}).get('name'),
        sets=sets,
    )


def filter_by_venue(candidates: list[EventCandidate], venue_name: str) -> list[EventCandidate]:
    """
    Keep candidates held at the named venue

    Fuzzy match first; if nothing survives, fall back to the first significant
    word of the venue name appearing in the candidate's venue. When matches
    span several venues only those at the best-scoring venue are kept, so
    several acts at one venue stay together for opener/headliner selection.
    """
    matched = [c for c in candidates if c.venue_name and is_fuzzy_match(c.venue_name, venue_name)]

    if not matched:
        keyword = first_significant_word(venue_name).lower()
        if len(keyword) >= MIN_FALLBACK_WORD_LENGTH:
            matched = [c for c in candidates if c.venue_name and keyword in c.venue_name.lower()]
            if matched:
                logger.debug(f"Matched {len(matched)} events on keyword '{keyword}'")

    venue_names = {c.venue_name for c in matched}
    if len(venue_names) > 1:
        best_venue = max(sorted(venue_names), key=lambda name: similarity(name, venue_name))
        logger.debug(f"Several venues matched '{venue_name}', keeping '{best_venue}'")
        matched = [c for c in matched if c.venue_name == best_venue]

    return matched


class SetlistFmClient:
    """setlist.fm REST client; every request waits on the shared rate limiter"""

    def __init__(
        self,
        api_key: str = SETLISTFM_API_KEY,
        rate_limiter: RateLimiter | None = None,
        client: httpx.Client | None = None,
        base_url: str = SETLISTFM_API_URL,
        max_pages: int = SETLISTFM_MAX_PAGES,
    ):
        self.api_key = api_key
        self.rate_limiter = rate_limiter or RateLimiter(SETLISTFM_MIN_INTERVAL_SECONDS, name='setlist.fm')
        self.client = client or httpx.Client(timeout=SETLISTFM_TIMEOUT_SECONDS)
        self.base_url = base_url.rstrip('/')
        self.max_pages = max_pages
        self.request_count = 0

    def _get(self, path: str, params: dict) -> dict | None:
        """GET a JSON resource; a 404 means no results and comes back as an empty dict"""
        self.rate_limiter.wait()
        self.request_count += 1
        headers = {'x-api-key': self.api_key, 'Accept': 'application/json'}

        try:
            response = self.client.get(f"{self.base_url}{path}", params=params, headers=headers)
            if response.status_code == 404:
                return {}
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.warning(f"setlist.fm request {path} {params} failed: {e}")
            return None
        except ValueError as e:
            logger.warning(f"setlist.fm returned invalid JSON for {path}: {e}")
            return None

    def search_pages(self, params: dict) -> list[dict]:
        """Raw setlist objects across up to max_pages result pages"""
        results = []
        for page in range(1, self.max_pages + 1):
            data = self._get('/search/setlists', {**params, 'p': page})
            items = (data or {}).get('setlist') or []
            if not items:
                break
            results.extend(items)

            total = data.get('total')
            per_page = data.get('itemsPerPage') or len(items)
            if total is not None and page * per_page >= total:
                break
        return results

    def search_setlists(self, day: date, venue_name: str, city: str | None = None) -> list[EventCandidate]:
        """Events on a date at a venue; city is dropped when it is a county or yields nothing"""
        params = {'date': format_event_date(day), 'venueName': first_word(venue_name)}
        if city and 'county' not in city.lower():
            params['cityName'] = city

        items = self.search_pages(params)
        if not items and 'cityName' in params:
            logger.debug(f"No events for '{venue_name}' in {city} on {day}, retrying without city")
            params.pop('cityName')
            items = self.search_pages(params)

        candidates = [parse_candidate(item) for item in items]
        matched = filter_by_venue(candidates, venue_name)
        logger.info(f"setlist.fm: {len(matched)} of {len(candidates)} events on {day} match '{venue_name}'")
        return matched

    def search_by_artist_and_date(self, artist_name: str, day: date) -> list[EventCandidate]:
        items = self.search_pages({'artistName': artist_name, 'date': format_event_date(day)})
        return [parse_candidate(item) for item in items]

    def has_events(self, venue_name: str, city: str) -> bool:
        data = self._get('/search/setlists', {'venueName': venue_name, 'cityName': city, 'p': 1})
        return bool((data or {}).get('setlist'))

    def validate_venue(self, venue_name: str, city: str) -> bool:
        """True when the event database lists at least one event at this venue in this city"""
        if self.has_events(venue_name, city):
            return True

        simplified = simplify_venue_name(venue_name)
        if simplified and simplified != venue_name:
            logger.debug(f"Retrying validation with simplified name '{simplified}'")
            return self.has_events(simplified, city)
        return False
