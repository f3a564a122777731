import pytest
from core.catalog import CatalogStore
from core.models import Confidence, Location, NormalizedPhoto, ResolvedVenue, VenueMethod
from core.review import ReviewService
from datetime import date
from tests.fixtures import GORGE_LAT, GORGE_LON, SHOWBOX_LAT, SHOWBOX_LON, pacific
from unittest.mock import Mock

GEORGE = Location('George', 'Washington', 'US')
GORGE = ResolvedVenue('Gorge Amphitheatre', VenueMethod.OSM_TAG, Confidence.HIGH, 12.0)


class TestReviewCatalogActions:
    """Test suite for review actions that work against the existing catalog"""

    @pytest.fixture
    def catalog(self):
        return CatalogStore.in_memory()

    @pytest.fixture
    def setlistfm(self):
        client = Mock()
        client.search_setlists.return_value = []
        return client

    @pytest.fixture
    def review(self, catalog, setlistfm):
        return ReviewService(catalog, setlistfm)

    @pytest.fixture
    def photos(self, catalog):
        def add(name, taken_at, lat=None, lon=None, location=GEORGE, venue=GORGE):
            photo = NormalizedPhoto(file_id=name, file_name=name, taken_at=taken_at, latitude=lat, longitude=lon)
            return catalog.create_unmatched_photo(1, photo, location=location, venue=venue)

        return {
            'gorge': add('gorge.jpg', pacific(2024, 8, 31, 21), GORGE_LAT, GORGE_LON),
            'gorge_pit': add('gorge_pit.jpg', pacific(2024, 8, 31, 22), GORGE_LAT + 0.0005, GORGE_LON),
            'encore': add('encore.jpg', pacific(2024, 9, 1, 1), GORGE_LAT, GORGE_LON + 0.0005),
            'seattle': add('seattle.jpg', pacific(2024, 8, 31, 21, 30), SHOWBOX_LAT, SHOWBOX_LON, Location('Seattle')),
            'later': add('later.jpg', pacific(2024, 9, 14, 21), SHOWBOX_LAT, SHOWBOX_LON, Location('Seattle')),
            'no_gps': add('no_gps.jpg', pacific(2024, 8, 31, 23), location=None, venue=None),
        }

    @pytest.fixture
    def concert_id(self, catalog):
        venue = catalog.create_venue('Gorge Amphitheatre', 'George', latitude=GORGE_LAT, longitude=GORGE_LON)
        artist = catalog.find_or_create_artist('Dave Matthews Band')
        concert, _ = catalog.create_concert(1, artist['id'], venue['id'], date(2024, 8, 31))
        return concert['id']

    def status(self, catalog, photo_id):
        return catalog.get_unmatched_photo(photo_id)['reviewed']

    def test_rescan_links_photos_to_catalog_concert(self, review, catalog, setlistfm, photos, concert_id):
        assert review.rescan_unmatched(1) == 4

        for label in ('gorge', 'gorge_pit', 'encore', 'no_gps'):
            record = catalog.get_unmatched_photo(photos[label])
            assert record['reviewed'] == 'linked'
            assert record['linked_concert_id'] == concert_id
        assert [p['file_name'] for p in review.pending(1)] == ['seattle.jpg', 'later.jpg']
        assert len(catalog.photos) == 4
        setlistfm.search_setlists.assert_not_called()

    def test_rescan_with_empty_catalog(self, review, photos):
        assert review.rescan_unmatched(1) == 0
        assert len(review.pending(1)) == 6

    def test_rescan_limit(self, review, photos, concert_id):
        assert review.rescan_unmatched(1, limit=0) == 0
        assert len(review.pending(1)) == 6

    def test_rescan_leaves_skipped_photos_alone(self, review, catalog, photos, concert_id):
        review.skip(photos['gorge'])

        assert review.rescan_unmatched(1) == 3
        assert self.status(catalog, photos['gorge']) == 'skipped'

    def test_override_venue(self, review, catalog, setlistfm, photos):
        review.override_venue(photos['gorge'], '  The Gorge  ')

        record = catalog.get_unmatched_photo(photos['gorge'])
        assert record['venue_name'] == 'The Gorge'
        assert record['venue_detection_method'] == VenueMethod.MANUAL_OVERRIDE.value
        assert record['venue_confidence'] == Confidence.HIGH.value

        review.search_concerts(photos['gorge'])
        setlistfm.search_setlists.assert_called_once_with(date(2024, 8, 31), 'The Gorge', 'George')

    def test_override_venue_rejects_blank_name(self, review, catalog, photos):
        with pytest.raises(ValueError):
            review.override_venue(photos['gorge'], '   ')
        assert catalog.get_unmatched_photo(photos['gorge'])['venue_name'] == 'Gorge Amphitheatre'

    def test_override_venue_unknown_photo(self, review):
        with pytest.raises(KeyError):
            review.override_venue(999, 'The Gorge')

    def test_bulk_link_similar(self, review, catalog, photos, concert_id):
        review.link(photos['gorge'], concert_id)

        assert review.bulk_link_similar(photos['gorge'], concert_id) == 2
        assert catalog.get_unmatched_photo(photos['gorge_pit'])['linked_concert_id'] == concert_id
        assert catalog.get_unmatched_photo(photos['encore'])['linked_concert_id'] == concert_id
        assert self.status(catalog, photos['seattle']) == 'pending'

    def test_bulk_link_similar_unknown_concert(self, review, catalog, photos):
        with pytest.raises(KeyError):
            review.bulk_link_similar(photos['gorge'], 42)
        assert self.status(catalog, photos['gorge_pit']) == 'pending'
