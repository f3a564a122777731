from decouple import config
from pathlib import Path

# Directory paths
PHOTOS_DIR = Path(config('PHOTOS_DIR', default='takeout/photos'))
CACHE_DIR = Path(config('CACHE_DIR', default='data'))

# File names
GEOCODING_CACHE_FILE = 'geocoding_cache.json'
CATALOG_DB_FILE = 'catalog.json'
LAST_SCAN_FILE = 'last_scan.json'
CATALOG_DB_PATH = Path(config('CATALOG_DB_PATH', default=str(CACHE_DIR / CATALOG_DB_FILE)))

# Sidecar and media file conventions
SIDECAR_SUFFIXES = ('.supplemental-metadata.json', '.json')
IGNORED_MEDIA_EXTENSIONS = ('.mp4', '.mov', '.json')

# External services
SETLISTFM_API_KEY = config('SETLISTFM_API_KEY', default='')
SETLISTFM_API_URL = config('SETLISTFM_API_URL', default='https://api.setlist.fm/rest/1.0')
SETLISTFM_TIMEOUT_SECONDS = config('SETLISTFM_TIMEOUT_SECONDS', default=15.0, cast=float)
SETLISTFM_MIN_INTERVAL_SECONDS = config('SETLISTFM_MIN_INTERVAL_SECONDS', default=0.5, cast=float)
SETLISTFM_MAX_PAGES = 3

OVERPASS_URL = config('OVERPASS_URL', default='https://overpass-api.de/api/interpreter')
OVERPASS_TIMEOUT_SECONDS = config('OVERPASS_TIMEOUT_SECONDS', default=15.0, cast=float)
OVERPASS_MAX_RETRIES = config('OVERPASS_MAX_RETRIES', default=2, cast=int)
OVERPASS_BACKOFF_SECONDS = config('OVERPASS_BACKOFF_SECONDS', default=2.0, cast=float)

OPENWEATHER_API_KEY = config('OPENWEATHER_API_KEY', default='')
OPENWEATHER_URL = config('OPENWEATHER_URL', default='https://api.openweathermap.org/data/2.5/weather')
OPENWEATHER_TIMEOUT_SECONDS = 10.0

NOMINATIM_USER_AGENT = config('NOMINATIM_USER_AGENT', default='oh-my-gigs/1.0')
GEOCODING_CACHE_EXPIRATION_DAYS = 30
GEOCODING_MIN_INTERVAL_SECONDS = 1.0

# Time handling
LOCAL_TIMEZONE = config('LOCAL_TIMEZONE', default='America/Los_Angeles')
MIDNIGHT_CUTOFF_HOUR = 4                    # 00:00-03:59 belongs to the previous evening's show
CONCERT_DATE_NORMALIZED_HOUR = 12           # concert dates are stored at noon UTC
MANUAL_SEARCH_UTC_OFFSET_HOURS = 8          # fixed UTC offset used by the manual review search
CONCERT_MATCH_WINDOW_HOURS = 18
OPENER_CUTOFF = (20, 30)                    # photos before 20:30 local document the opener

# Geographic constants
LOCATION_KEY_PRECISION = 3                  # ~100 m
EARTH_RADIUS_METERS = 6_371_000
METERS_PER_MILE = 1609.344
VENUE_CACHE_RADIUS_METERS = 600
VENUE_SEARCH_RADIUS_METERS = 600
VENUE_DEDUP_RADIUS_METERS = 100
VENUE_VALIDATION_CANDIDATES = 5
VENUE_CLOSE_FALLBACK_METERS = 50
VENUE_HIGH_CONFIDENCE_METERS = 50
VENUE_MEDIUM_CONFIDENCE_METERS = 200
CATALOG_VENUE_RADIUS_METERS = 2000
NEARBY_PHOTO_RADIUS_METERS = 500
SAME_EVENT_SKIP_RADIUS_METERS = 200

# Fuzzy matching
FUZZY_MATCH_THRESHOLD = 70
WORD_SIMILARITY_THRESHOLD = 80
MIN_SUBSTRING_LENGTH = 4

# Validation constants
MIN_VALID_LATITUDE = -90.0
MAX_VALID_LATITUDE = 90.0
MIN_VALID_LONGITUDE = -180.0
MAX_VALID_LONGITUDE = 180.0
