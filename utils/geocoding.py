import json
import logging
import ssl
from config import (
    CACHE_DIR,
    GEOCODING_CACHE_EXPIRATION_DAYS,
    GEOCODING_CACHE_FILE,
    GEOCODING_MIN_INTERVAL_SECONDS,
    NOMINATIM_USER_AGENT,
)
from datetime import UTC, datetime
from dateutil.parser import parse as parse_date
from geopy.exc import GeocoderServiceError, GeocoderTimedOut, GeocoderUnavailable
from geopy.geocoders import Nominatim
from pathlib import Path
from utils.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

# Unincorporated places that event listings file under a neighbouring city
CITY_CORRECTIONS = {
    ('Paradise', 'Nevada'): 'Las Vegas',
}


class GeocodingCache:
    """File-based cache of reverse geocoding results with expiration and hit statistics"""

    def __init__(
        self, cache_file: Path = CACHE_DIR / GEOCODING_CACHE_FILE, expiration_days: int = GEOCODING_CACHE_EXPIRATION_DAYS
    ):
        self.cache_file = cache_file
        self.expiration_days = expiration_days
        self.cache_data = self._load_cache()
        self.session_hits = 0
        self.session_misses = 0

    def _empty_cache(self) -> dict:
        return {
            'metadata': {
                'version': '2.0',
                'created': datetime.now(UTC).isoformat(),
                'last_updated': datetime.now(UTC).isoformat(),
                'total_entries': 0,
                'cache_hits': 0,
                'cache_misses': 0,
                'expiration_days': self.expiration_days,
            },
            'entries': {},
        }

    def _load_cache(self) -> dict:
        """Load cache from file, starting fresh when it is missing or unreadable"""
        if self.cache_file.exists():
            try:
                with open(self.cache_file) as f:
                    data = json.load(f)
                if 'metadata' in data and 'entries' in data:
                    return data
                logger.warning("Geocoding cache has an unknown layout, starting fresh")
            except (json.JSONDecodeError, OSError):
                logger.warning("Could not load geocoding cache, starting fresh")

        return self._empty_cache()

    @staticmethod
    def _generate_cache_key(latitude: float, longitude: float) -> str:
        return f"reverse_{latitude:.4f}_{longitude:.4f}"

    def _is_expired(self, entry: dict) -> bool:
        try:
            entry_time = parse_date(entry['timestamp'])
            age_days = (datetime.now(UTC) - entry_time).days
            return age_days > self.expiration_days
        except (KeyError, TypeError, ValueError):
            return True

    def get(self, coordinates: tuple[float, float]) -> dict | None:
        """Cached location dict (city/state/country) for coordinates, or None"""
        key = self._generate_cache_key(*coordinates)
        entry = self.cache_data['entries'].get(key)

        if entry and not self._is_expired(entry):
            self.session_hits += 1
            self.cache_data['metadata']['cache_hits'] += 1
            return entry.get('response')

        self.session_misses += 1
        self.cache_data['metadata']['cache_misses'] += 1

        if entry:
            del self.cache_data['entries'][key]
            self.cache_data['metadata']['total_entries'] -= 1

        return None

    def set(self, coordinates: tuple[float, float], location: dict):
        key = self._generate_cache_key(*coordinates)

        if key not in self.cache_data['entries']:
            self.cache_data['metadata']['total_entries'] += 1

        self.cache_data['entries'][key] = {
            'timestamp': datetime.now(UTC).isoformat(),
            'query': {'latitude': coordinates[0], 'longitude': coordinates[1]},
            'response': location,
        }
        self.cache_data['metadata']['last_updated'] = datetime.now(UTC).isoformat()
        self._save_cache()

    def clean_expired(self) -> int:
        """Remove expired entries from cache"""
        expired_keys = [key for key, entry in self.cache_data['entries'].items() if self._is_expired(entry)]

        for key in expired_keys:
            del self.cache_data['entries'][key]

        if expired_keys:
            self.cache_data['metadata']['total_entries'] -= len(expired_keys)
            self.cache_data['metadata']['last_updated'] = datetime.now(UTC).isoformat()
            self._save_cache()
            logger.info(f"Cleaned {len(expired_keys)} expired cache entries")

        return len(expired_keys)

    def clear(self):
        entry_count = len(self.cache_data['entries'])
        self.cache_data['entries'] = {}
        self.cache_data['metadata']['total_entries'] = 0
        self.cache_data['metadata']['last_updated'] = datetime.now(UTC).isoformat()
        self._save_cache()
        logger.info(f"Cleared {entry_count} cache entries")

    def get_stats(self) -> dict:
        total_hits = self.cache_data['metadata']['cache_hits']
        total_misses = self.cache_data['metadata']['cache_misses']
        total_requests = total_hits + total_misses

        hit_ratio = (total_hits / total_requests * 100) if total_requests > 0 else 0

        return {
            'total_entries': self.cache_data['metadata']['total_entries'],
            'cache_hits': total_hits,
            'cache_misses': total_misses,
            'hit_ratio_percent': round(hit_ratio, 1),
            'session_hits': self.session_hits,
            'session_misses': self.session_misses,
            'expiration_days': self.expiration_days,
            'created': self.cache_data['metadata']['created'],
            'last_updated': self.cache_data['metadata']['last_updated'],
        }

    def _save_cache(self):
        self.cache_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.cache_file, 'w') as f:
            json.dump(self.cache_data, f, indent=2)


class ReverseGeocoder:
    """Coordinates to city/state/country through Nominatim, cached on disk"""

    def __init__(self, cache: GeocodingCache | None = None, geocoder=None, rate_limiter: RateLimiter | None = None):
        if geocoder is None:
            ssl_context = ssl.create_default_context()
            geocoder = Nominatim(user_agent=NOMINATIM_USER_AGENT, ssl_context=ssl_context)
        self.geocoder = geocoder
        self.cache = cache or GeocodingCache()
        self.rate_limiter = rate_limiter or RateLimiter(GEOCODING_MIN_INTERVAL_SECONDS, name='nominatim')

    @staticmethod
    def location_from_address(address: dict) -> dict | None:
        city = (
            address.get('city')
            or address.get('town')
            or address.get('village')
            or address.get('municipality')
            or address.get('county')
        )
        if not city:
            return None

        state = address.get('state')
        city = CITY_CORRECTIONS.get((city, state), city)
        country = (address.get('country_code') or '').upper() or address.get('country') or 'Unknown'
        return {'city': city, 'state': state, 'country': country}

    def reverse(self, lat: float, lon: float) -> dict | None:
        cached = self.cache.get((lat, lon))
        if cached:
            return cached

        try:
            self.rate_limiter.wait()
            result = self.geocoder.reverse((lat, lon), exactly_one=True, language='en')
        except (GeocoderTimedOut, GeocoderUnavailable, GeocoderServiceError) as e:
            logger.warning(f"Reverse geocoding failed for {lat}, {lon}: {e}")
            return None

        if not result or not result.raw.get('address'):
            logger.info(f"No address found for {lat}, {lon}")
            return None

        location = self.location_from_address(result.raw['address'])
        if location:
            self.cache.set((lat, lon), location)
        return location
