import logging
from config import CATALOG_DB_PATH, CONCERT_MATCH_WINDOW_HOURS, NEARBY_PHOTO_RADIUS_METERS, VENUE_DEDUP_RADIUS_METERS
from core.models import Location, ReviewStatus
from datetime import UTC, date, datetime
from pathlib import Path
from tinydb import Query, TinyDB
from tinydb.storages import MemoryStorage
from tinydb.table import Document
from utils.dates import date_key, normalize_concert_date, parse_timestamp
from utils.fuzzy import similarity
from utils.geo import distance_meters, has_usable_gps

logger = logging.getLogger(__name__)

ARTIST_NAME_SIMILARITY = 90


def _record(doc: Document | None) -> dict | None:
    if doc is None:
        return None
    return {**doc, 'id': doc.doc_id}


def _iso(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment else None


class CatalogStore:
    """TinyDB-backed catalog of artists, venues, concerts, setlists, photos and scan bookkeeping"""

    def __init__(self, db_path: Path = CATALOG_DB_PATH, db: TinyDB | None = None):
        if db is None:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            db = TinyDB(db_path, indent=2)
        self.db = db
        self.artists = db.table('artists')
        self.venues = db.table('venues')
        self.concerts = db.table('concerts')
        self.songs = db.table('songs')
        self.setlists = db.table('setlists')
        self.photos = db.table('photos')
        self.unmatched_photos = db.table('unmatched_photos')
        self.processed_files = db.table('processed_files')

    @classmethod
    def in_memory(cls) -> 'CatalogStore':
        return cls(db=TinyDB(storage=MemoryStorage))

    def close(self):
        self.db.close()

    # --- Artists ---

    def get_artist(self, artist_id: int) -> dict | None:
        return _record(self.artists.get(doc_id=artist_id))

    def find_artist_by_name(self, name: str) -> dict | None:
        """Exact case-insensitive name first, then a near-identical spelling"""
        wanted = name.strip().lower()
        best, best_score = None, 0
        for doc in self.artists.all():
            existing = doc['name'].strip().lower()
            if existing == wanted:
                return _record(doc)
            score = similarity(existing, wanted)
            if score >= ARTIST_NAME_SIMILARITY and score > best_score:
                best, best_score = doc, score
        return _record(best)

    def find_or_create_artist(self, name: str, mbid: str | None = None) -> dict:
        artist = self.find_artist_by_name(name)
        if artist:
            return artist
        artist_id = self.artists.insert({'name': name, 'mbid': mbid})
        logger.info(f"Created artist '{name}' (ID: {artist_id})")
        return self.get_artist(artist_id)

    # --- Venues ---

    def get_venue(self, venue_id: int) -> dict | None:
        return _record(self.venues.get(doc_id=venue_id))

    def find_venue_by_name_and_city(self, name: str, city: str) -> dict | None:
        Venue = Query()
        return _record(self.venues.get((Venue.name == name) & (Venue.city == city)))

    def create_venue(
        self,
        name: str,
        city: str,
        country: str = 'Unknown',
        state: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
        alt_name: str | None = None,
    ) -> dict:
        venue_id = self.venues.insert(
            {
                'name': name,
                'alt_name': alt_name,
                'city': city,
                'state': state,
                'country': country,
                'latitude': latitude,
                'longitude': longitude,
            }
        )
        logger.info(f"Created venue '{name}' in {city} (ID: {venue_id})")
        return self.get_venue(venue_id)

    def find_or_create_venue(
        self,
        name: str,
        city: str,
        country: str = 'Unknown',
        state: str | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> dict:
        venue = self.find_venue_by_name_and_city(name, city)
        if venue:
            if not has_usable_gps(venue.get('latitude'), venue.get('longitude')) and has_usable_gps(latitude, longitude):
                self.venues.update({'latitude': latitude, 'longitude': longitude}, doc_ids=[venue['id']])
                venue = self.get_venue(venue['id'])
            return venue
        return self.create_venue(name, city, country=country, state=state, latitude=latitude, longitude=longitude)

    def find_venues_near(self, lat: float, lon: float, radius_meters: float) -> list[dict]:
        """Venues with coordinates within radius, closest first, each with a 'distance' in meters"""
        nearby = []
        for doc in self.venues.all():
            v_lat, v_lon = doc.get('latitude'), doc.get('longitude')
            if not has_usable_gps(v_lat, v_lon):
                continue
            distance = distance_meters(lat, lon, v_lat, v_lon)
            if distance <= radius_meters:
                nearby.append({**_record(doc), 'distance': distance})

        nearby.sort(key=lambda v: v['distance'])
        logger.debug(f"Found {len(nearby)} venues within {radius_meters:.0f}m of {lat}, {lon}")
        return nearby

    def cache_venue(
        self,
        name: str,
        lat: float,
        lon: float,
        location: Location | None = None,
        alt_name: str | None = None,
    ) -> dict:
        """Find-or-create a detected venue, matching by name or alt name within the dedup radius"""
        wanted = {name.strip().lower()}
        if alt_name:
            wanted.add(alt_name.strip().lower())

        for venue in self.find_venues_near(lat, lon, VENUE_DEDUP_RADIUS_METERS):
            names = {venue['name'].strip().lower()}
            if venue.get('alt_name'):
                names.add(venue['alt_name'].strip().lower())
            if names & wanted:
                logger.debug(f"Venue '{name}' already cached (ID: {venue['id']})")
                return venue

        location = location or Location(city='Unknown')
        return self.create_venue(
            name,
            location.city,
            country=location.country,
            state=location.state,
            latitude=lat,
            longitude=lon,
            alt_name=alt_name,
        )

    # --- Concerts ---

    def get_concert(self, concert_id: int) -> dict | None:
        return _record(self.concerts.get(doc_id=concert_id))

    def user_concerts(self, user_id: int) -> list[dict]:
        Concert = Query()
        return [_record(doc) for doc in self.concerts.search(Concert.user_id == user_id)]

    def find_concert(self, user_id: int, venue_id: int, day: date) -> dict | None:
        """Concert on the (user, venue, date) dedup key"""
        Concert = Query()
        concert_date = _iso(normalize_concert_date(day))
        return _record(
            self.concerts.get(
                (Concert.user_id == user_id) & (Concert.venue_id == venue_id) & (Concert.concert_date == concert_date)
            )
        )

    def find_concert_near_time(
        self, user_id: int, venue_id: int, moment: datetime, window_hours: float = CONCERT_MATCH_WINDOW_HOURS
    ) -> dict | None:
        """Closest concert at a venue whose stored date lies within window_hours of moment"""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=UTC)
        Concert = Query()
        best, best_gap = None, None
        for doc in self.concerts.search((Concert.user_id == user_id) & (Concert.venue_id == venue_id)):
            concert_date = parse_timestamp(doc['concert_date'])
            gap = abs((moment - concert_date).total_seconds()) / 3600
            if gap <= window_hours and (best_gap is None or gap < best_gap):
                best, best_gap = doc, gap
        return _record(best)

    def concerts_on_date(self, user_id: int, day: date) -> list[dict]:
        return [c for c in self.user_concerts(user_id) if parse_timestamp(c['concert_date']).date() == day]

    def create_concert(
        self,
        user_id: int,
        artist_id: int,
        venue_id: int,
        day: date,
        weather: dict | None = None,
        external_event_id: str | None = None,
        external_url: str | None = None,
    ) -> tuple[dict, bool]:
        """Insert a concert unless one already holds the dedup key; returns (concert, created)"""
        existing = self.find_concert(user_id, venue_id, day)
        if existing:
            logger.info(f"Concert already exists for venue {venue_id} on {day} (ID: {existing['id']})")
            return existing, False

        weather = weather or {}
        concert_id = self.concerts.insert(
            {
                'user_id': user_id,
                'artist_id': artist_id,
                'venue_id': venue_id,
                'concert_date': _iso(normalize_concert_date(day)),
                'weather_condition': weather.get('condition'),
                'temperature': weather.get('temperature'),
                'external_event_id': external_event_id,
                'external_url': external_url,
            }
        )
        logger.info(f"Created concert {concert_id}: artist {artist_id} at venue {venue_id} on {day}")
        return self.get_concert(concert_id), True

    def record_weather(self, concert_id: int, weather: dict):
        self.concerts.update(
            {'weather_condition': weather.get('condition'), 'temperature': weather.get('temperature')},
            doc_ids=[concert_id],
        )

    # --- Songs and setlists ---

    def find_or_create_song(self, title: str, artist_id: int) -> dict:
        Song = Query()
        doc = self.songs.get((Song.title == title) & (Song.artist_id == artist_id))
        if doc:
            return _record(doc)
        song_id = self.songs.insert({'title': title, 'artist_id': artist_id})
        return _record(self.songs.get(doc_id=song_id))

    def create_setlist_entry(
        self, concert_id: int, song_id: int, set_number: int, position: int, notes: str | None = None
    ) -> int:
        return self.setlists.insert(
            {'concert_id': concert_id, 'song_id': song_id, 'set_number': set_number, 'position': position, 'notes': notes}
        )

    def get_setlist(self, concert_id: int) -> list[dict]:
        Entry = Query()
        entries = [_record(doc) for doc in self.setlists.search(Entry.concert_id == concert_id)]
        return sorted(entries, key=lambda e: (e['set_number'], e['position']))

    # --- Photos ---

    def create_photo(
        self,
        user_id: int,
        concert_id: int,
        file_id: str,
        file_name: str,
        taken_at: datetime | None,
        latitude: float | None,
        longitude: float | None,
    ) -> int:
        return self.photos.insert(
            {
                'user_id': user_id,
                'concert_id': concert_id,
                'file_id': file_id,
                'file_name': file_name,
                'taken_at': _iso(taken_at),
                'latitude': latitude,
                'longitude': longitude,
            }
        )

    def concert_photos(self, concert_id: int) -> list[dict]:
        Photo = Query()
        return [_record(doc) for doc in self.photos.search(Photo.concert_id == concert_id)]

    def find_nearby_photo_on_same_date(
        self, user_id: int, taken_at: datetime, lat: float, lon: float, radius_meters: float = NEARBY_PHOTO_RADIUS_METERS
    ) -> int | None:
        """Concert id of an already-matched photo within radius on the same midnight-adjusted date"""
        target_date = date_key(taken_at)
        Photo = Query()

        for doc in self.photos.search(Photo.user_id == user_id):
            photo_taken = parse_timestamp(doc.get('taken_at'))
            if not photo_taken or not doc.get('concert_id'):
                continue
            if not has_usable_gps(doc.get('latitude'), doc.get('longitude')):
                continue
            if date_key(photo_taken) != target_date:
                continue
            distance = distance_meters(lat, lon, doc['latitude'], doc['longitude'])
            if distance <= radius_meters:
                logger.debug(f"Matched photo {doc['file_name']} is {distance:.0f}m away on {target_date}")
                return doc['concert_id']

        return None

    # --- Unmatched photos ---

    def create_unmatched_photo(self, user_id: int, photo, location: Location | None = None, venue=None) -> int:
        return self.unmatched_photos.insert(
            {
                'user_id': user_id,
                'file_id': photo.file_id,
                'file_name': photo.file_name,
                'taken_at': _iso(photo.taken_at),
                'latitude': photo.latitude if photo.has_gps else None,
                'longitude': photo.longitude if photo.has_gps else None,
                'city': location.city if location else None,
                'state': location.state if location else None,
                'country': location.country if location else None,
                'venue_name': venue.name if venue else None,
                'venue_detection_method': venue.method.value if venue else None,
                'venue_confidence': venue.confidence.value if venue else None,
                'no_gps': not photo.has_gps,
                'reviewed': ReviewStatus.PENDING.value,
                'linked_concert_id': None,
            }
        )

    def get_unmatched_photo(self, photo_id: int) -> dict | None:
        return _record(self.unmatched_photos.get(doc_id=photo_id))

    def list_unmatched_photos(
        self, user_id: int, status: ReviewStatus | None = None, no_gps: bool | None = None
    ) -> list[dict]:
        Unmatched = Query()
        condition = Unmatched.user_id == user_id
        if status is not None:
            condition &= Unmatched.reviewed == status.value
        if no_gps is not None:
            condition &= Unmatched.no_gps == no_gps
        return [_record(doc) for doc in self.unmatched_photos.search(condition)]

    def update_unmatched_photo(self, photo_id: int, **fields):
        self.unmatched_photos.update(fields, doc_ids=[photo_id])

    # --- Processed files ---

    def processed_file_ids(self, user_id: int) -> set[str]:
        Processed = Query()
        return {doc['file_id'] for doc in self.processed_files.search(Processed.user_id == user_id)}

    def mark_processed(self, user_id: int, file_id: str, file_name: str) -> bool:
        """Record a file as processed; False when it already was"""
        Processed = Query()
        if self.processed_files.contains((Processed.user_id == user_id) & (Processed.file_id == file_id)):
            logger.warning(f"File {file_name} was already marked processed")
            return False
        self.processed_files.insert(
            {
                'user_id': user_id,
                'file_id': file_id,
                'file_name': file_name,
                'processed_at': datetime.now(UTC).isoformat(),
            }
        )
        return True
