import pytest
from core.catalog import CatalogStore
from core.models import Confidence, Location, NormalizedPhoto, ResolvedVenue, ReviewStatus, VenueMethod
from datetime import UTC, date, datetime
from tests.fixtures import GORGE_LAT, GORGE_LON, SHOWBOX_LAT, SHOWBOX_LON, pacific


class TestCatalogStore:
    """Test suite for CatalogStore"""

    @pytest.fixture
    def catalog(self):
        return CatalogStore.in_memory()

    @pytest.fixture
    def gorge(self, catalog):
        return catalog.create_venue(
            'Gorge Amphitheatre', 'George', country='US', state='Washington', latitude=GORGE_LAT, longitude=GORGE_LON
        )

    @pytest.fixture
    def artist(self, catalog):
        return catalog.find_or_create_artist('Dave Matthews Band')

    def test_persists_to_file(self, tmp_path):
        db_path = tmp_path / 'db' / 'catalog.json'
        catalog = CatalogStore(db_path)
        catalog.find_or_create_artist('Pearl Jam')
        catalog.close()

        reopened = CatalogStore(db_path)
        assert reopened.find_artist_by_name('pearl jam')['name'] == 'Pearl Jam'

    def test_find_or_create_artist_is_idempotent(self, catalog, artist):
        again = catalog.find_or_create_artist('dave matthews band')
        assert again['id'] == artist['id']
        assert len(catalog.artists) == 1

    def test_artist_near_identical_spelling(self, catalog, artist):
        assert catalog.find_artist_by_name('Dave Mathews Band')['id'] == artist['id']
        assert catalog.find_artist_by_name('Pearl Jam') is None

    def test_find_venue_by_name_and_city(self, catalog, gorge):
        assert catalog.find_venue_by_name_and_city('Gorge Amphitheatre', 'George')['id'] == gorge['id']
        assert catalog.find_venue_by_name_and_city('Gorge Amphitheatre', 'Seattle') is None

    def test_find_or_create_venue_fills_missing_coordinates(self, catalog):
        venue = catalog.create_venue('Neumos', 'Seattle')
        updated = catalog.find_or_create_venue('Neumos', 'Seattle', latitude=47.6138, longitude=-122.3197)
        assert updated['id'] == venue['id']
        assert updated['latitude'] == 47.6138

    def test_find_venues_near_sorted_by_distance(self, catalog, gorge):
        near = catalog.create_venue('Gorge Campground', 'George', latitude=GORGE_LAT + 0.005, longitude=GORGE_LON)
        catalog.create_venue('The Showbox', 'Seattle', latitude=SHOWBOX_LAT, longitude=SHOWBOX_LON)
        catalog.create_venue('No Coordinates', 'George')

        venues = catalog.find_venues_near(GORGE_LAT, GORGE_LON, 2000)

        assert [v['id'] for v in venues] == [gorge['id'], near['id']]
        assert venues[0]['distance'] == 0

    def test_cache_venue_reuses_by_alt_name(self, catalog):
        first = catalog.cache_venue('WAMU Theater', SHOWBOX_LAT, SHOWBOX_LON, Location('Seattle', 'Washington', 'US'))
        catalog.venues.update({'alt_name': 'Lumen Field Event Center'}, doc_ids=[first['id']])

        again = catalog.cache_venue('Lumen Field Event Center', SHOWBOX_LAT + 0.0003, SHOWBOX_LON)

        assert again['id'] == first['id']
        assert len(catalog.venues) == 1

    def test_cache_venue_creates_distinct_places(self, catalog):
        catalog.cache_venue('WAMU Theater', SHOWBOX_LAT, SHOWBOX_LON)
        catalog.cache_venue('The Showbox', SHOWBOX_LAT + 0.0003, SHOWBOX_LON)
        catalog.cache_venue('WAMU Theater', SHOWBOX_LAT + 0.01, SHOWBOX_LON)
        assert len(catalog.venues) == 3

    def test_create_concert_never_duplicates(self, catalog, gorge, artist):
        first, created = catalog.create_concert(1, artist['id'], gorge['id'], date(2024, 8, 31))
        second, created_again = catalog.create_concert(1, artist['id'], gorge['id'], date(2024, 8, 31))

        assert created and not created_again
        assert first['id'] == second['id']
        assert len(catalog.concerts) == 1
        assert first['concert_date'] == '2024-08-31T12:00:00+00:00'

    def test_concerts_are_per_user(self, catalog, gorge, artist):
        catalog.create_concert(1, artist['id'], gorge['id'], date(2024, 8, 31))
        _, created = catalog.create_concert(2, artist['id'], gorge['id'], date(2024, 8, 31))
        assert created
        assert catalog.find_concert(2, gorge['id'], date(2024, 8, 31)) is not None

    def test_find_concert_near_time(self, catalog, gorge, artist):
        concert, _ = catalog.create_concert(1, artist['id'], gorge['id'], date(2024, 8, 31))

        # 23:30 PDT is 06:30 UTC the next day, 18.5 hours after noon UTC
        late_photo = pacific(2024, 8, 31, 23, 30)
        evening_photo = pacific(2024, 8, 31, 21)

        assert catalog.find_concert_near_time(1, gorge['id'], evening_photo)['id'] == concert['id']
        assert catalog.find_concert_near_time(1, gorge['id'], late_photo) is None
        assert catalog.find_concert_near_time(1, gorge['id'], late_photo, window_hours=24)['id'] == concert['id']
        assert catalog.find_concert_near_time(1, gorge['id'], datetime(2024, 9, 5, tzinfo=UTC)) is None

    def test_record_weather(self, catalog, gorge, artist):
        concert, _ = catalog.create_concert(1, artist['id'], gorge['id'], date(2024, 8, 31))

        catalog.record_weather(concert['id'], {'condition': 'clear sky', 'temperature': 72.5})

        stored = catalog.get_concert(concert['id'])
        assert stored['weather_condition'] == 'clear sky'
        assert stored['temperature'] == 72.5

    def test_concerts_on_date(self, catalog, gorge, artist):
        catalog.create_concert(1, artist['id'], gorge['id'], date(2024, 8, 31))
        assert len(catalog.concerts_on_date(1, date(2024, 8, 31))) == 1
        assert catalog.concerts_on_date(1, date(2024, 9, 1)) == []

    def test_setlist_is_ordered(self, catalog, gorge, artist):
        concert, _ = catalog.create_concert(1, artist['id'], gorge['id'], date(2024, 8, 31))
        for set_number, position, title in [(2, 1, 'Ants Marching'), (1, 2, 'Warehouse'), (1, 1, 'Crush')]:
            song = catalog.find_or_create_song(title, artist['id'])
            catalog.create_setlist_entry(concert['id'], song['id'], set_number, position)

        titles = [catalog.songs.get(doc_id=e['song_id'])['title'] for e in catalog.get_setlist(concert['id'])]
        assert titles == ['Crush', 'Warehouse', 'Ants Marching']

    def test_find_nearby_photo_on_same_date(self, catalog, gorge, artist):
        concert, _ = catalog.create_concert(1, artist['id'], gorge['id'], date(2024, 8, 31))
        catalog.create_photo(1, concert['id'], 'a.jpg', 'a.jpg', pacific(2024, 8, 31, 21), GORGE_LAT, GORGE_LON)

        # 01:00 the next morning still counts as the same night
        after_midnight = pacific(2024, 9, 1, 1)
        assert catalog.find_nearby_photo_on_same_date(1, after_midnight, GORGE_LAT + 0.002, GORGE_LON) == concert['id']
        assert catalog.find_nearby_photo_on_same_date(1, after_midnight, GORGE_LAT + 0.01, GORGE_LON) is None
        assert catalog.find_nearby_photo_on_same_date(1, pacific(2024, 9, 1, 20), GORGE_LAT, GORGE_LON) is None
        assert catalog.find_nearby_photo_on_same_date(2, after_midnight, GORGE_LAT, GORGE_LON) is None

    def test_unmatched_photo_lifecycle_fields(self, catalog):
        photo = NormalizedPhoto('x.jpg', 'x.jpg', pacific(2024, 8, 31, 21), GORGE_LAT, GORGE_LON)
        venue = ResolvedVenue('Gorge Amphitheatre', VenueMethod.OSM_TAG, Confidence.HIGH, 12.0)
        photo_id = catalog.create_unmatched_photo(1, photo, Location('George', 'Washington', 'US'), venue)

        record = catalog.get_unmatched_photo(photo_id)
        assert record['reviewed'] == 'pending'
        assert record['venue_detection_method'] == 'osm_tag'
        assert record['city'] == 'George'
        assert record['no_gps'] is False

        catalog.update_unmatched_photo(photo_id, reviewed=ReviewStatus.SKIPPED.value)
        assert catalog.list_unmatched_photos(1, status=ReviewStatus.PENDING) == []
        assert len(catalog.list_unmatched_photos(1, status=ReviewStatus.SKIPPED)) == 1

    def test_no_gps_unmatched_photo(self, catalog):
        photo = NormalizedPhoto('y.jpg', 'y.jpg', pacific(2024, 8, 31, 21))
        catalog.create_unmatched_photo(1, photo)
        assert len(catalog.list_unmatched_photos(1, no_gps=True)) == 1

    def test_mark_processed_is_idempotent(self, catalog):
        assert catalog.mark_processed(1, 'a.jpg', 'a.jpg')
        assert not catalog.mark_processed(1, 'a.jpg', 'a.jpg')
        assert catalog.processed_file_ids(1) == {'a.jpg'}
        assert catalog.processed_file_ids(2) == set()
