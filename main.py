#!/usr/bin/env python

"""
Oh My Gigs - Concert Photo Catalog

Matches photos from a Google Photos / Takeout export to the concerts they were
taken at, building a catalog of artists, venues, concerts and setlists.

Usage:
    main.py [command] [photo_id] [options]

    Default command is 'scan' if none specified.

Commands:
    scan: Ingest unprocessed photos and match them to concerts (default)
    progress: Show the result of the last scan
    unmatched: List unmatched photos awaiting review
    skip: Skip an unmatched photo (--same-event / --same-location to skip its neighbours too)
    restore: Return a skipped photo to the review queue
    link: Link an unmatched photo to an existing concert (--concert-id, --with-similar)
    override-venue: Replace the venue guessed for an unmatched photo (--venue)
    rescan: Retry pending photos against concerts now in the catalog
    search: Search the event database for an unmatched photo's concert (--artist, --venue, --select)
    cache-stats: Display geocoding cache statistics and clean expired entries
    cache-clear: Clear all geocoding cache entries

Options:
    --dry-run: Show what would be done without making changes
    --verbose: Enable verbose logging output
    --photos-dir: Path to the photo export (default: takeout/photos)
    --user-id: Catalog owner (default: 1)
    --limit: Maximum number of files to scan
"""

import argparse
import logging
import sys
from config import PHOTOS_DIR, SETLISTFM_API_KEY
from core.catalog import CatalogStore
from core.exceptions import ConfigurationError, InvalidTransitionError, ScanInProgressError
from core.file_source import LocalPhotoSource
from core.ingestion import build_pipeline
from core.models import ReviewStatus
from core.progress import ProgressRegistry, ScanContext
from core.review import ReviewService
from core.setlistfm import SetlistFmClient
from pathlib import Path
from utils.geocoding import GeocodingCache

logger = logging.getLogger(__name__)


def parse_arguments():
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="Oh My Gigs - Concert Photo Catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument('command', nargs='?', default='scan', help='Command to execute (default: scan)')
    parser.add_argument('photo_id', nargs='?', type=int, help='Unmatched photo id for review commands')
    parser.add_argument('--dry-run', action='store_true', help='Show what would be done without making changes')
    parser.add_argument('--verbose', action='store_true', help='Enable verbose logging output')
    parser.add_argument('--photos-dir', type=Path, default=PHOTOS_DIR, help='Path to the photo export directory')
    parser.add_argument('--user-id', type=int, default=1, help='Catalog owner')
    parser.add_argument('--limit', type=int, help='Maximum number of files to scan')

    # Review options
    parser.add_argument(
        '--status', choices=['pending', 'skipped', 'no-gps'], default='pending', help='Unmatched photos to list'
    )
    parser.add_argument('--same-event', action='store_true', help='Also skip photos within the match window')
    parser.add_argument('--same-location', action='store_true', help='Also skip photos from the same date and place')
    parser.add_argument('--concert-id', type=int, help='Concert to link a photo to')
    parser.add_argument('--with-similar', action='store_true', help='Also link pending photos from the same spot')
    parser.add_argument('--artist', type=str, help='Artist name for concert search')
    parser.add_argument('--venue', type=str, help='Venue name for concert search')
    parser.add_argument('--select', type=int, help='Link the photo to the Nth search result (1-based)')

    return parser.parse_args()


def setup_logging(verbose: bool = False):
    """Configure logging based on verbosity level"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format='%(asctime)s - %(levelname)s - %(message)s', force=True)


def print_scan_result(result: dict):
    print("\n=== Scan Results ===")
    print(f"Processed: {result['processed']}")
    print(f"Linked: {result['linked']}")
    print(f"Unmatched: {result['unmatched']}")
    print(f"Skipped: {result['skipped']}")
    print(f"New concerts: {result['new_concerts']}")
    if result.get('duration_seconds') is not None:
        print(f"Duration: {result['duration_seconds']}s")
    for summary in result.get('concerts_summary', []):
        marker = ' (new)' if summary['is_new'] else ''
        print(f"  {summary['artist_name']} @ {summary['venue_name']}: {summary['photo_count']} photos{marker}")


def run_scan(args) -> bool:
    if args.dry_run:
        processed = CatalogStore().processed_file_ids(args.user_id)
        files = [f for f in LocalPhotoSource(args.photos_dir).list_files() if f.file_id not in processed]
        logger.info(f"DRY RUN: would scan {len(files[: args.limit] if args.limit else files)} files")
        return True

    try:
        pipeline = build_pipeline(photos_dir=args.photos_dir, context=ScanContext())
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return False

    try:
        result = pipeline.scan(args.user_id, limit=args.limit)
    except ScanInProgressError as e:
        logger.error(str(e))
        return False

    print_scan_result(result.as_dict())
    return True


def print_unmatched(photos: list[dict]):
    print(f"\n=== Unmatched Photos ({len(photos)}) ===")
    for photo in photos:
        place = ', '.join(p for p in (photo.get('venue_name'), photo.get('city'), photo.get('state')) if p)
        print(f"[{photo['id']}] {photo['file_name']}  {photo.get('taken_at') or '-'}  {place or 'no location'}")


def run_review(args) -> bool:
    catalog = CatalogStore()
    setlistfm = SetlistFmClient(api_key=SETLISTFM_API_KEY) if SETLISTFM_API_KEY else None
    review = ReviewService(catalog, setlistfm)
    command = args.command

    if command == 'unmatched':
        if args.status == 'no-gps':
            photos = review.no_gps(args.user_id)
        else:
            photos = catalog.list_unmatched_photos(args.user_id, status=ReviewStatus(args.status))
        print_unmatched(photos)
        return True

    if command == 'rescan':
        count = review.rescan_unmatched(args.user_id, limit=args.limit)
        print(f"Linked {count} pending photos to catalog concerts")
        return True

    if args.photo_id is None:
        logger.error(f"'{command}' needs an unmatched photo id")
        return False

    try:
        if command == 'skip':
            if args.same_event:
                count = review.skip_same_event(args.photo_id)
            elif args.same_location:
                count = review.skip_by_date_and_location(args.photo_id)
            else:
                review.skip(args.photo_id)
                count = 1
            print(f"Skipped {count} photos")

        elif command == 'restore':
            review.restore(args.photo_id)
            print(f"Photo {args.photo_id} restored to review")

        elif command == 'link':
            if args.concert_id is None:
                logger.error("link needs --concert-id")
                return False
            review.link(args.photo_id, args.concert_id)
            print(f"Photo {args.photo_id} linked to concert {args.concert_id}")
            if args.with_similar:
                count = review.bulk_link_similar(args.photo_id, args.concert_id)
                print(f"Linked {count} similar photos")
            else:
                similar = review.find_similar(args.photo_id)
                if similar:
                    print(f"{len(similar)} similar pending photos: {', '.join(str(p['id']) for p in similar)}")

        elif command == 'override-venue':
            if not args.venue:
                logger.error("override-venue needs --venue")
                return False
            review.override_venue(args.photo_id, args.venue)
            print(f"Photo {args.photo_id} venue set to '{args.venue.strip()}'")

        elif command == 'search':
            if setlistfm is None:
                logger.error("SETLISTFM_API_KEY is not set")
                return False
            candidates = review.search_concerts(args.photo_id, artist_name=args.artist, venue_name=args.venue)
            print(f"\n=== Suggestions ({len(candidates)}) ===")
            for index, candidate in enumerate(candidates, start=1):
                print(
                    f"{index}. {candidate.artist_name} @ {candidate.venue_name}, {candidate.city} "
                    f"({candidate.event_date}, {candidate.song_count} songs)"
                )
            if args.select:
                if not 1 <= args.select <= len(candidates):
                    logger.error(f"No suggestion number {args.select}")
                    return False
                review.link_candidate(args.photo_id, candidates[args.select - 1])
                print(f"Photo {args.photo_id} linked to suggestion {args.select}")

    except (KeyError, ValueError, InvalidTransitionError) as e:
        logger.error(str(e))
        return False

    return True


def main():
    args = parse_arguments()

    # Setup logging
    setup_logging(args.verbose)

    command = args.command

    if command == "scan":
        success = run_scan(args)
        sys.exit(0 if success else 1)

    elif command == "progress":
        result = ProgressRegistry().last_result(args.user_id)
        if not result:
            print("No scan has completed yet")
            sys.exit(0)
        print(f"Last scan completed {result['completed_at']}")
        print_scan_result(result)
        sys.exit(0)

    elif command in ("unmatched", "skip", "restore", "link", "override-venue", "search", "rescan"):
        success = run_review(args)
        sys.exit(0 if success else 1)

    elif command == "cache-stats":
        cache = GeocodingCache()
        stats = cache.get_stats()

        print("\n=== Geocoding Cache Statistics ===")
        print(f"Total entries: {stats['total_entries']}")
        print(f"Cache hits: {stats['cache_hits']}")
        print(f"Cache misses: {stats['cache_misses']}")
        print(f"Hit ratio: {stats['hit_ratio_percent']}%")
        print(f"Expiration: {stats['expiration_days']} days")
        print(f"Last updated: {stats['last_updated']}")

        expired_count = cache.clean_expired()
        if expired_count > 0:
            print(f"Cleaned {expired_count} expired entries")

        sys.exit(0)

    elif command == "cache-clear":
        cache = GeocodingCache()
        cache.clear()
        print("Cache cleared successfully")
        sys.exit(0)

    else:
        print(__doc__.strip())


if __name__ == "__main__":
    main()
