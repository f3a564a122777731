from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from utils.geo import has_usable_gps


class VenueMethod(str, Enum):
    OSM_TAG = 'osm_tag'
    OSM_SCAN_VALIDATED = 'osm_scan_validated'
    MANUAL_OVERRIDE = 'manual_override'


class Confidence(str, Enum):
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'


class ReviewStatus(str, Enum):
    PENDING = 'pending'
    SKIPPED = 'skipped'
    LINKED = 'linked'


@dataclass
class PhotoFile:
    """A media file listed by a photo source, before its metadata is read"""

    file_id: str
    file_name: str
    sidecar_id: str | None = None
    created_at: datetime | None = None


@dataclass
class EmbeddedMetadata:
    taken_at: datetime | None = None
    latitude: float | None = None
    longitude: float | None = None


@dataclass
class NormalizedPhoto:
    file_id: str
    file_name: str
    taken_at: datetime | None
    latitude: float | None = None
    longitude: float | None = None
    timestamp_source: str | None = None

    @property
    def has_gps(self) -> bool:
        return has_usable_gps(self.latitude, self.longitude)


@dataclass
class Location:
    city: str
    state: str | None = None
    country: str = 'Unknown'

    @classmethod
    def from_dict(cls, data: dict | None) -> 'Location | None':
        if not data or not data.get('city'):
            return None
        return cls(city=data['city'], state=data.get('state'), country=data.get('country') or 'Unknown')

    @property
    def is_county(self) -> bool:
        return 'county' in self.city.lower()


@dataclass
class ResolvedVenue:
    name: str
    method: VenueMethod
    confidence: Confidence
    distance_meters: float
    alt_name: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    matched_tag: str | None = None


@dataclass
class OSMVenue:
    name: str
    latitude: float
    longitude: float
    tags: dict
    matched_tag: str
    distance_meters: float
    alt_name: str | None = None

    @property
    def is_park(self) -> bool:
        return self.matched_tag == 'leisure=park'


@dataclass
class EventGroup:
    date_key: str
    location_key: str
    photos: list[NormalizedPhoto] = field(default_factory=list)
    location: Location | None = None
    venue: ResolvedVenue | None = None

    @property
    def key(self) -> str:
        return f"{self.date_key}|{self.location_key}"

    @property
    def first_photo(self) -> NormalizedPhoto:
        return self.photos[0]

    @property
    def has_gps(self) -> bool:
        return bool(self.photos) and self.first_photo.has_gps

    @property
    def latitude(self) -> float | None:
        return self.first_photo.latitude if self.has_gps else None

    @property
    def longitude(self) -> float | None:
        return self.first_photo.longitude if self.has_gps else None

    @property
    def taken_at(self) -> datetime:
        return self.first_photo.taken_at

    @property
    def event_date(self) -> date:
        return date.fromisoformat(self.date_key)


@dataclass
class SongEntry:
    name: str
    info: str | None = None
    tape: bool = False

    @property
    def notes(self) -> str | None:
        parts = [self.info or '', 'tape' if self.tape else '']
        text = ' '.join(p for p in parts if p).strip()
        return text or None


@dataclass
class EventCandidate:
    """One event returned by the event database"""

    external_id: str | None
    artist_name: str | None
    venue_name: str | None
    city: str | None = None
    state: str | None = None
    country_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    event_date: date | None = None
    artist_mbid: str | None = None
    url: str | None = None
    tour: str | None = None
    sets: list[list[SongEntry]] = field(default_factory=list)

    @property
    def song_count(self) -> int:
        return sum(len(songs) for songs in self.sets)


@dataclass
class MatchResult:
    concert_id: int
    is_new: bool
    strategy: str


@dataclass
class ScanStats:
    processed: int = 0
    linked: int = 0
    skipped: int = 0
    new_concerts: int = 0
    unmatched: int = 0

    def as_dict(self) -> dict:
        return {
            'processed': self.processed,
            'linked': self.linked,
            'skipped': self.skipped,
            'new_concerts': self.new_concerts,
            'unmatched': self.unmatched,
        }


@dataclass
class ConcertSummary:
    concert_id: int
    artist_name: str
    venue_name: str
    photo_count: int
    is_new: bool


@dataclass
class ScanResult:
    stats: ScanStats
    concerts_summary: list[ConcertSummary] = field(default_factory=list)
    groups: int = 0

    def as_dict(self) -> dict:
        return {
            **self.stats.as_dict(),
            'groups': self.groups,
            'concerts_summary': [vars(summary) for summary in self.concerts_summary],
        }
