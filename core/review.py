import logging
from config import CONCERT_MATCH_WINDOW_HOURS, SAME_EVENT_SKIP_RADIUS_METERS
from core.catalog import CatalogStore
from core.concert_matcher import (
    ConcertMatcher,
    ExistingCatalogStrategy,
    ExternalSearchStrategy,
    MatchRequest,
    NearbyMatchedPhotoStrategy,
    SameDateNoGpsStrategy,
)
from core.exceptions import InvalidTransitionError
from core.models import (
    Confidence,
    EventCandidate,
    EventGroup,
    Location,
    NormalizedPhoto,
    ResolvedVenue,
    ReviewStatus,
    VenueMethod,
)
from core.setlistfm import SetlistFmClient
from utils.dates import date_key, manual_search_date, parse_timestamp
from utils.geo import distance_meters, has_usable_gps, location_key

logger = logging.getLogger(__name__)

SIMILAR_COORDINATE_DELTA = 0.001

ALLOWED_TRANSITIONS = {
    (ReviewStatus.PENDING, ReviewStatus.SKIPPED),
    (ReviewStatus.SKIPPED, ReviewStatus.PENDING),
    (ReviewStatus.PENDING, ReviewStatus.LINKED),
}


class ReviewService:
    """Manual review of photos the pipeline could not match"""

    def __init__(self, catalog: CatalogStore, setlistfm: SetlistFmClient | None = None):
        self.catalog = catalog
        self.setlistfm = setlistfm

    def _get(self, photo_id: int) -> dict:
        photo = self.catalog.get_unmatched_photo(photo_id)
        if photo is None:
            raise KeyError(f"Unmatched photo {photo_id} not found")
        return photo

    def _transition(self, photo: dict, target: ReviewStatus, **fields):
        current = ReviewStatus(photo['reviewed'])
        if (current, target) not in ALLOWED_TRANSITIONS:
            raise InvalidTransitionError(f"Photo {photo['id']} cannot go from {current.value} to {target.value}")
        self.catalog.update_unmatched_photo(photo['id'], reviewed=target.value, **fields)

    def pending(self, user_id: int) -> list[dict]:
        return self.catalog.list_unmatched_photos(user_id, status=ReviewStatus.PENDING)

    def skipped(self, user_id: int) -> list[dict]:
        return self.catalog.list_unmatched_photos(user_id, status=ReviewStatus.SKIPPED)

    def no_gps(self, user_id: int) -> list[dict]:
        return self.catalog.list_unmatched_photos(user_id, status=ReviewStatus.PENDING, no_gps=True)

    def skip(self, photo_id: int):
        self._transition(self._get(photo_id), ReviewStatus.SKIPPED)

    def restore(self, photo_id: int):
        self._transition(self._get(photo_id), ReviewStatus.PENDING)

    def link(self, photo_id: int, concert_id: int) -> int:
        """Attach an unmatched photo to a concert; returns the new photo record id"""
        photo = self._get(photo_id)
        if self.catalog.get_concert(concert_id) is None:
            raise KeyError(f"Concert {concert_id} not found")

        self._transition(photo, ReviewStatus.LINKED, linked_concert_id=concert_id)
        record_id = self.catalog.create_photo(
            photo['user_id'],
            concert_id,
            photo['file_id'],
            photo['file_name'],
            parse_timestamp(photo.get('taken_at')),
            photo.get('latitude'),
            photo.get('longitude'),
        )
        logger.info(f"Linked {photo['file_name']} to concert {concert_id}")
        return record_id

    def skip_same_event(self, photo_id: int) -> int:
        """Skip every pending photo taken within the match window of this one"""
        photo = self._get(photo_id)
        taken_at = parse_timestamp(photo.get('taken_at'))
        if taken_at is None:
            self.skip(photo_id)
            return 1

        count = 0
        for other in self.pending(photo['user_id']):
            other_taken = parse_timestamp(other.get('taken_at'))
            if other_taken and abs((other_taken - taken_at).total_seconds()) <= CONCERT_MATCH_WINDOW_HOURS * 3600:
                self._transition(other, ReviewStatus.SKIPPED)
                count += 1
        logger.info(f"Skipped {count} photos from the same event as {photo['file_name']}")
        return count

    def skip_by_date_and_location(self, photo_id: int) -> int:
        """Skip pending photos from the same night taken close to this one"""
        photo = self._get(photo_id)
        taken_at = parse_timestamp(photo.get('taken_at'))
        if taken_at is None or not has_usable_gps(photo.get('latitude'), photo.get('longitude')):
            self.skip(photo_id)
            return 1

        target_date = date_key(taken_at)
        count = 0
        for other in self.pending(photo['user_id']):
            other_taken = parse_timestamp(other.get('taken_at'))
            if not other_taken or date_key(other_taken) != target_date:
                continue
            if not has_usable_gps(other.get('latitude'), other.get('longitude')):
                continue
            distance = distance_meters(photo['latitude'], photo['longitude'], other['latitude'], other['longitude'])
            if distance <= SAME_EVENT_SKIP_RADIUS_METERS:
                self._transition(other, ReviewStatus.SKIPPED)
                count += 1
        return count

    def find_similar(self, photo_id: int) -> list[dict]:
        """Other pending photos from the same date at practically the same spot"""
        photo = self._get(photo_id)
        taken_at = parse_timestamp(photo.get('taken_at'))
        if taken_at is None or not has_usable_gps(photo.get('latitude'), photo.get('longitude')):
            return []

        target_date = date_key(taken_at)
        similar = []
        for other in self.pending(photo['user_id']):
            if other['id'] == photo_id or not has_usable_gps(other.get('latitude'), other.get('longitude')):
                continue
            other_taken = parse_timestamp(other.get('taken_at'))
            if not other_taken or date_key(other_taken) != target_date:
                continue
            if (
                abs(other['latitude'] - photo['latitude']) < SIMILAR_COORDINATE_DELTA
                and abs(other['longitude'] - photo['longitude']) < SIMILAR_COORDINATE_DELTA
            ):
                similar.append(other)
        return similar

    def search_concerts(
        self, photo_id: int, artist_name: str | None = None, venue_name: str | None = None
    ) -> list[EventCandidate]:
        """
        Event database suggestions for an unmatched photo

        The search date is the photo's UTC time shifted by the fixed manual
        search offset. With an artist the search is artist + date; otherwise
        the venue (given, or the one guessed during the scan) + city + date.
        """
        if self.setlistfm is None:
            raise RuntimeError("Concert search needs an event database client")

        photo = self._get(photo_id)
        taken_at = parse_timestamp(photo.get('taken_at'))
        if taken_at is None:
            return []
        day = manual_search_date(taken_at)

        if artist_name:
            return self.setlistfm.search_by_artist_and_date(artist_name, day)

        venue_name = venue_name or photo.get('venue_name')
        if not venue_name:
            logger.info(f"No venue known for {photo['file_name']}; search by artist instead")
            return []
        return self.setlistfm.search_setlists(day, venue_name, photo.get('city'))

    @staticmethod
    def _as_group(photo: dict, taken_at, day_key: str, venue: ResolvedVenue | None = None) -> EventGroup:
        """A one-photo EventGroup built from an unmatched photo record"""
        normalized = NormalizedPhoto(
            file_id=photo['file_id'],
            file_name=photo['file_name'],
            taken_at=taken_at,
            latitude=photo.get('latitude'),
            longitude=photo.get('longitude'),
        )
        return EventGroup(
            date_key=day_key,
            location_key=location_key(normalized.latitude, normalized.longitude),
            photos=[normalized],
            location=Location.from_dict(photo),
            venue=venue,
        )

    def link_candidate(self, photo_id: int, candidate: EventCandidate) -> int:
        """Create (or reuse) the concert for a search suggestion and link the photo to it"""
        photo = self._get(photo_id)
        taken_at = parse_timestamp(photo.get('taken_at'))
        venue = ResolvedVenue(
            name=candidate.venue_name,
            method=VenueMethod.MANUAL_OVERRIDE,
            confidence=Confidence.HIGH,
            distance_meters=0.0,
        )
        day_key = date_key(taken_at) if taken_at else candidate.event_date.isoformat()
        group = self._as_group(photo, taken_at, day_key, venue)

        materializer = ExternalSearchStrategy(self.catalog, self.setlistfm)
        result = materializer.materialize(MatchRequest(user_id=photo['user_id'], group=group), candidate)
        return self.link(photo_id, result.concert_id)

    def bulk_link_similar(self, photo_id: int, concert_id: int) -> int:
        """Link every pending photo similar to this one to the same concert"""
        if self.catalog.get_concert(concert_id) is None:
            raise KeyError(f"Concert {concert_id} not found")

        similar = self.find_similar(photo_id)
        for other in similar:
            self.link(other['id'], concert_id)
        logger.info(f"Linked {len(similar)} similar photos to concert {concert_id}")
        return len(similar)

    def override_venue(self, photo_id: int, venue_name: str):
        """Replace the scan's venue guess; later searches use the given name"""
        venue_name = (venue_name or '').strip()
        if not venue_name:
            raise ValueError("Venue name must not be empty")

        photo = self._get(photo_id)
        self.catalog.update_unmatched_photo(
            photo['id'],
            venue_name=venue_name,
            venue_detection_method=VenueMethod.MANUAL_OVERRIDE.value,
            venue_confidence=Confidence.HIGH.value,
        )
        logger.info(f"Venue for {photo['file_name']} set to '{venue_name}'")

    def rescan_unmatched(self, user_id: int, limit: int | None = None) -> int:
        """
        Retry pending photos against the current catalog

        Concerts added since a photo was parked (by later scans or manual
        links) can now claim it. Only catalog-side strategies run, so no
        external service is called. Returns the number of photos linked.
        """
        matcher = ConcertMatcher(
            self.catalog,
            self.setlistfm,
            strategies=[
                ExistingCatalogStrategy(self.catalog),
                NearbyMatchedPhotoStrategy(self.catalog),
                SameDateNoGpsStrategy(self.catalog),
            ],
        )

        pending = self.pending(user_id)
        if limit is not None:
            pending = pending[:limit]

        linked = 0
        for photo in pending:
            taken_at = parse_timestamp(photo.get('taken_at'))
            if taken_at is None:
                continue
            result = matcher.match_concert(user_id, self._as_group(photo, taken_at, date_key(taken_at)))
            if result:
                self.link(photo['id'], result.concert_id)
                linked += 1

        logger.info(f"Rescan linked {linked} of {len(pending)} pending photos")
        return linked
