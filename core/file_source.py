import json
import logging
from config import IGNORED_MEDIA_EXTENSIONS, SIDECAR_SUFFIXES
from core.models import EmbeddedMetadata, PhotoFile
from datetime import UTC, datetime
from pathlib import Path
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

EXIF_IFD_POINTER = 0x8769
GPS_IFD_POINTER = 0x8825
TAG_DATETIME = 306
TAG_DATETIME_ORIGINAL = 36867
GPS_LATITUDE_REF = 1
GPS_LATITUDE = 2
GPS_LONGITUDE_REF = 3
GPS_LONGITUDE = 4


def _dms_to_decimal(dms, ref) -> float | None:
    try:
        degrees, minutes, seconds = (float(part) for part in dms)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    value = degrees + minutes / 60 + seconds / 3600
    if str(ref).upper() in ('S', 'W'):
        value = -value
    return value


def _parse_exif_datetime(value) -> datetime | None:
    text = str(value).strip().rstrip('\x00')
    try:
        return datetime.strptime(text[:19], '%Y:%m:%d %H:%M:%S')
    except ValueError:
        logger.debug(f"Unrecognised EXIF datetime '{text}'")
        return None


class LocalPhotoSource:
    """Photo export on disk: media files, each optionally paired with a JSON sidecar"""

    def __init__(self, photos_dir: Path):
        self.photos_dir = photos_dir

    def _is_media(self, path: Path) -> bool:
        return path.is_file() and not path.name.lower().endswith(IGNORED_MEDIA_EXTENSIONS)

    def _find_sidecar(self, path: Path) -> Path | None:
        for suffix in SIDECAR_SUFFIXES:
            candidate = path.with_name(path.name + suffix)
            if candidate.exists():
                return candidate
        return None

    def _file_created_at(self, path: Path) -> datetime | None:
        try:
            stat = path.stat()
        except OSError as e:
            logger.debug(f"stat failed for {path}: {e}")
            return None
        created = getattr(stat, 'st_birthtime', None) or stat.st_ctime
        return datetime.fromtimestamp(created, tz=UTC)

    def list_files(self) -> list[PhotoFile]:
        """All media files under the export directory, sorted by path"""
        if not self.photos_dir.exists():
            logger.error(f"Photos directory not found: {self.photos_dir}")
            return []

        files = []
        for path in sorted(self.photos_dir.rglob('*')):
            if not self._is_media(path):
                continue
            sidecar = self._find_sidecar(path)
            files.append(
                PhotoFile(
                    file_id=path.relative_to(self.photos_dir).as_posix(),
                    file_name=path.name,
                    sidecar_id=sidecar.relative_to(self.photos_dir).as_posix() if sidecar else None,
                    created_at=self._file_created_at(path),
                )
            )
        return files

    def read_sidecar(self, photo: PhotoFile) -> dict | None:
        if not photo.sidecar_id:
            return None
        try:
            with open(self.photos_dir / photo.sidecar_id) as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to parse sidecar metadata for {photo.file_name}: {e}")
            return None

    def read_embedded(self, photo: PhotoFile) -> EmbeddedMetadata | None:
        """Capture time and GPS from the file's own EXIF block"""
        try:
            with Image.open(self.photos_dir / photo.file_id) as image:
                exif = image.getexif()
                exif_ifd = exif.get_ifd(EXIF_IFD_POINTER)
                gps_ifd = exif.get_ifd(GPS_IFD_POINTER)
        except (OSError, UnidentifiedImageError, ValueError) as e:
            logger.debug(f"EXIF read failed for {photo.file_name}: {e}")
            return None

        raw_time = exif_ifd.get(TAG_DATETIME_ORIGINAL) or exif.get(TAG_DATETIME)
        metadata = EmbeddedMetadata(taken_at=_parse_exif_datetime(raw_time) if raw_time else None)

        if GPS_LATITUDE in gps_ifd and GPS_LONGITUDE in gps_ifd:
            metadata.latitude = _dms_to_decimal(gps_ifd[GPS_LATITUDE], gps_ifd.get(GPS_LATITUDE_REF, 'N'))
            metadata.longitude = _dms_to_decimal(gps_ifd[GPS_LONGITUDE], gps_ifd.get(GPS_LONGITUDE_REF, 'E'))

        return metadata
