import json
import pytest
from core.file_source import LocalPhotoSource
from core.metadata import MetadataNormalizer
from core.models import EmbeddedMetadata, PhotoFile
from datetime import UTC, datetime
from PIL import Image
from tests.fixtures import GORGE_LAT, GORGE_LON, TestDataFixtures, pacific


class TestMetadataNormalizer:
    """Test suite for MetadataNormalizer"""

    @pytest.fixture
    def normalizer(self):
        return MetadataNormalizer()

    @pytest.fixture
    def photo(self):
        return PhotoFile(file_id='2024/IMG_0001.jpg', file_name='IMG_0001.jpg', created_at=datetime(2024, 9, 3, tzinfo=UTC))

    def test_sidecar_timestamp_wins(self, normalizer, photo):
        taken = pacific(2024, 8, 31, 21)
        sidecar = TestDataFixtures.get_test_sidecar(taken_at=taken, lat=GORGE_LAT, lon=GORGE_LON)
        embedded = EmbeddedMetadata(taken_at=datetime(2020, 1, 1, 12))

        result = normalizer.normalize(photo, sidecar, embedded)

        assert result.taken_at == taken
        assert result.timestamp_source == 'sidecar'
        assert (result.latitude, result.longitude) == (GORGE_LAT, GORGE_LON)
        assert result.has_gps

    def test_embedded_time_when_sidecar_has_none(self, normalizer, photo):
        sidecar = TestDataFixtures.get_test_sidecar()
        embedded = EmbeddedMetadata(taken_at=datetime(2024, 8, 31, 21, 15))

        result = normalizer.normalize(photo, sidecar, embedded)

        assert result.taken_at == datetime(2024, 8, 31, 21, 15)
        assert result.timestamp_source == 'embedded'

    def test_sidecar_creation_time_fallback(self, normalizer, photo):
        created = pacific(2024, 9, 1, 10)
        sidecar = TestDataFixtures.get_test_sidecar(created_at=created)

        result = normalizer.normalize(photo, sidecar)

        assert result.taken_at == created
        assert result.timestamp_source == 'file_created'

    def test_file_creation_time_fallback(self, normalizer, photo):
        result = normalizer.normalize(photo)
        assert result.taken_at == photo.created_at
        assert result.timestamp_source == 'file_created'

    def test_no_timestamp_anywhere(self, normalizer):
        bare = PhotoFile(file_id='IMG_0002.jpg', file_name='IMG_0002.jpg')
        result = normalizer.normalize(bare, {})
        assert result.taken_at is None
        assert result.timestamp_source is None

    def test_malformed_timestamp_is_ignored(self, normalizer, photo):
        sidecar = {'photoTakenTime': {'timestamp': 'garbage'}}
        result = normalizer.normalize(photo, sidecar)
        assert result.timestamp_source == 'file_created'

    def test_placeholder_gps_falls_through_to_exif_block(self, normalizer, photo):
        sidecar = {
            'geoData': {'latitude': 0.0, 'longitude': 0.0},
            'geoDataExif': {'latitude': GORGE_LAT, 'longitude': GORGE_LON},
        }
        result = normalizer.normalize(photo, sidecar)
        assert (result.latitude, result.longitude) == (GORGE_LAT, GORGE_LON)

    def test_embedded_gps_fallback(self, normalizer, photo):
        embedded = EmbeddedMetadata(latitude=GORGE_LAT, longitude=GORGE_LON)
        result = normalizer.normalize(photo, TestDataFixtures.get_test_sidecar(), embedded)
        assert (result.latitude, result.longitude) == (GORGE_LAT, GORGE_LON)

    def test_no_gps(self, normalizer, photo):
        result = normalizer.normalize(photo, TestDataFixtures.get_test_sidecar())
        assert result.latitude is None
        assert not result.has_gps


class TestLocalPhotoSource:
    """Test suite for LocalPhotoSource"""

    @pytest.fixture
    def export_dir(self, tmp_path):
        sidecar = TestDataFixtures.get_test_sidecar(taken_at=pacific(2024, 8, 31, 21), lat=GORGE_LAT, lon=GORGE_LON)
        export = TestDataFixtures.create_photo_export(tmp_path / 'photos', {'IMG_0001.jpg': sidecar, 'IMG_0002.jpg': None})
        (export / 'VID_0003.mp4').write_bytes(b'video')
        return export

    def test_list_files_pairs_sidecars(self, export_dir):
        files = LocalPhotoSource(export_dir).list_files()

        assert [f.file_name for f in files] == ['IMG_0001.jpg', 'IMG_0002.jpg']
        assert files[0].sidecar_id == 'IMG_0001.jpg.supplemental-metadata.json'
        assert files[1].sidecar_id is None
        assert files[0].created_at is not None

    def test_missing_directory(self, tmp_path):
        assert LocalPhotoSource(tmp_path / 'nope').list_files() == []

    def test_read_sidecar(self, export_dir):
        source = LocalPhotoSource(export_dir)
        photo = source.list_files()[0]
        assert source.read_sidecar(photo)['geoData']['latitude'] == GORGE_LAT

    def test_read_malformed_sidecar(self, export_dir):
        (export_dir / 'IMG_0001.jpg.supplemental-metadata.json').write_text('{not json')
        source = LocalPhotoSource(export_dir)
        assert source.read_sidecar(source.list_files()[0]) is None

    def test_read_embedded_from_non_image(self, export_dir):
        source = LocalPhotoSource(export_dir)
        assert source.read_embedded(source.list_files()[0]) is None

    def test_read_embedded_datetime(self, tmp_path):
        image = Image.new('RGB', (8, 8))
        exif = Image.Exif()
        exif[306] = '2024:08:31 21:15:00'
        image.save(tmp_path / 'IMG_0100.jpg', exif=exif)

        source = LocalPhotoSource(tmp_path)
        metadata = source.read_embedded(source.list_files()[0])

        assert metadata.taken_at == datetime(2024, 8, 31, 21, 15)
        assert metadata.latitude is None

    def test_sidecar_json_is_not_listed_as_media(self, export_dir):
        with open(export_dir / 'metadata.json', 'w') as f:
            json.dump({'title': 'album'}, f)
        names = [f.file_name for f in LocalPhotoSource(export_dir).list_files()]
        assert 'metadata.json' not in names
