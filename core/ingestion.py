import logging
import time
from config import CATALOG_DB_PATH, OPENWEATHER_API_KEY, PHOTOS_DIR, SETLISTFM_API_KEY
from core.catalog import CatalogStore
from core.concert_matcher import ConcertMatcher
from core.exceptions import ConfigurationError
from core.file_source import LocalPhotoSource
from core.grouping import EventGrouper
from core.metadata import MetadataNormalizer
from core.models import ConcertSummary, EventGroup, Location, MatchResult, NormalizedPhoto, ScanResult, ScanStats
from core.overpass import OverpassClient
from core.progress import ScanContext
from core.setlistfm import SetlistFmClient
from core.venue_resolver import VenueResolver
from core.weather import WeatherClient
from pathlib import Path
from utils.geocoding import ReverseGeocoder

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """
    Scan a photo export into the concert catalog

    Phases:
        1. normalize metadata for every unprocessed file
        2. group normalized photos into events
        3. per group: geocode, resolve the venue and match a concert once,
           then link or park every photo in the group

    Every file is marked processed exactly once, so rerunning a scan only
    considers files added since.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        source: LocalPhotoSource,
        resolver: VenueResolver,
        matcher: ConcertMatcher,
        geocoder: ReverseGeocoder | None,
        context: ScanContext,
        normalizer: MetadataNormalizer | None = None,
        grouper: EventGrouper | None = None,
    ):
        self.catalog = catalog
        self.source = source
        self.resolver = resolver
        self.matcher = matcher
        self.geocoder = geocoder
        self.context = context
        self.normalizer = normalizer or MetadataNormalizer()
        self.grouper = grouper or EventGrouper()

    @property
    def registry(self):
        return self.context.registry

    def pending_files(self, user_id: int, limit: int | None = None) -> list:
        processed = self.catalog.processed_file_ids(user_id)
        files = [f for f in self.source.list_files() if f.file_id not in processed]
        if limit is not None:
            files = files[:limit]
        logger.info(f"{len(files)} unprocessed files ({len(processed)} already processed)")
        return files

    def normalize_files(self, user_id: int, files: list, stats: ScanStats) -> list[NormalizedPhoto]:
        """Phase 1: one NormalizedPhoto per file that carries a usable timestamp"""
        photos = []
        for photo_file in files:
            sidecar = self.source.read_sidecar(photo_file)
            embedded = None
            if not sidecar or not self.normalizer.read_sidecar_timestamp(sidecar, 'photoTakenTime') or not (
                self.normalizer.read_sidecar_gps(sidecar)
            ):
                embedded = self.source.read_embedded(photo_file)

            photo = self.normalizer.normalize(photo_file, sidecar, embedded)
            if photo.taken_at is None:
                logger.warning(f"Skipping {photo_file.file_name}: no timestamp in any metadata source")
                self.catalog.mark_processed(user_id, photo_file.file_id, photo_file.file_name)
                stats.skipped += 1
                stats.processed += 1
                self.registry.update(user_id, current_photo=stats.processed, processed=stats.processed, skipped=stats.skipped)
                continue
            photos.append(photo)
        return photos

    def locate_group(self, group: EventGroup):
        """Reverse geocode and resolve the venue once for the whole group"""
        if not group.has_gps:
            return
        if self.geocoder:
            group.location = Location.from_dict(self.geocoder.reverse(group.latitude, group.longitude))
        group.venue = self.resolver.resolve_venue(group.latitude, group.longitude, group.location)

    def match_group(self, user_id: int, group: EventGroup) -> MatchResult | None:
        self.registry.update(user_id, current_status='Matching concert', current_file_name=group.first_photo.file_name)
        try:
            self.locate_group(group)
            self.registry.update(
                user_id,
                current_city=group.location.city if group.location else None,
                current_venue=group.venue.name if group.venue else None,
            )
            return self.matcher.match_concert(user_id, group)
        except Exception as e:
            logger.error(f"Matching failed for group {group.key}: {e}")
            return None

    def apply_result(self, user_id: int, group: EventGroup, match: MatchResult | None, stats: ScanStats):
        """Link or park every photo of a group and mark each one processed"""
        for photo in group.photos:
            if match:
                self.catalog.create_photo(
                    user_id, match.concert_id, photo.file_id, photo.file_name, photo.taken_at, photo.latitude, photo.longitude
                )
                stats.linked += 1
            else:
                self.catalog.create_unmatched_photo(user_id, photo, location=group.location, venue=group.venue)
                stats.unmatched += 1

            self.catalog.mark_processed(user_id, photo.file_id, photo.file_name)
            stats.processed += 1
            self.registry.update(
                user_id,
                current_photo=stats.processed,
                current_file_name=photo.file_name,
                current_status='Linked' if match else 'Unmatched',
                processed=stats.processed,
                linked=stats.linked,
                unmatched=stats.unmatched,
                new_concerts=stats.new_concerts,
            )

    def summarize(self, matches: dict[int, list]) -> list[ConcertSummary]:
        summaries = []
        for concert_id, (photo_count, is_new) in matches.items():
            concert = self.catalog.get_concert(concert_id) or {}
            artist = self.catalog.get_artist(concert.get('artist_id')) if concert.get('artist_id') else None
            venue = self.catalog.get_venue(concert.get('venue_id')) if concert.get('venue_id') else None
            summaries.append(
                ConcertSummary(
                    concert_id=concert_id,
                    artist_name=artist['name'] if artist else 'Unknown Artist',
                    venue_name=venue['name'] if venue else 'Unknown Venue',
                    photo_count=photo_count,
                    is_new=is_new,
                )
            )
        return summaries

    def scan(self, user_id: int, limit: int | None = None) -> ScanResult:
        files = self.pending_files(user_id, limit)
        self.registry.start(user_id, len(files))
        started = time.monotonic()
        stats = ScanStats()
        matches: dict[int, list] = {}
        groups = []

        try:
            self.registry.update(user_id, current_status='Extracting metadata')
            photos = self.normalize_files(user_id, files, stats)
            groups = self.grouper.group(photos)

            for index, group in enumerate(groups, start=1):
                logger.info(f"Group {index}/{len(groups)}: {group.key} ({len(group.photos)} photos)")
                match = self.match_group(user_id, group)
                if match:
                    seen = matches.setdefault(match.concert_id, [0, False])
                    seen[0] += len(group.photos)
                    if match.is_new and not seen[1]:
                        seen[1] = True
                        stats.new_concerts += 1
                self.apply_result(user_id, group, match, stats)
        finally:
            self.registry.complete(user_id)

        result = ScanResult(stats=stats, concerts_summary=self.summarize(matches), groups=len(groups))
        duration = time.monotonic() - started
        self.registry.save_last_result(
            user_id, {**result.as_dict(), 'total_photos': len(files), 'duration_seconds': round(duration, 1)}
        )
        logger.info(
            f"Scan complete: {stats.processed} processed, {stats.linked} linked, {stats.unmatched} unmatched, "
            f"{stats.skipped} skipped, {stats.new_concerts} new concerts in {duration:.1f}s"
        )
        return result


def build_pipeline(
    photos_dir: Path = PHOTOS_DIR,
    catalog: CatalogStore | None = None,
    api_key: str = SETLISTFM_API_KEY,
    context: ScanContext | None = None,
) -> IngestionPipeline:
    """Wire a pipeline from configuration; missing credentials or directories fail here"""
    if not api_key:
        raise ConfigurationError("SETLISTFM_API_KEY is not set")
    if not photos_dir.exists():
        raise ConfigurationError(f"Photos directory not found: {photos_dir}")

    context = context or ScanContext()
    catalog = catalog or CatalogStore(CATALOG_DB_PATH)
    setlistfm = SetlistFmClient(api_key=api_key, rate_limiter=context.rate_limiter)
    resolver = VenueResolver(catalog, OverpassClient(), setlistfm)
    weather = WeatherClient(api_key=OPENWEATHER_API_KEY) if OPENWEATHER_API_KEY else None
    matcher = ConcertMatcher(catalog, setlistfm, weather)

    return IngestionPipeline(
        catalog=catalog,
        source=LocalPhotoSource(photos_dir),
        resolver=resolver,
        matcher=matcher,
        geocoder=ReverseGeocoder(),
        context=context,
    )
