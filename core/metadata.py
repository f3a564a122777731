import logging
from core.models import EmbeddedMetadata, NormalizedPhoto, PhotoFile
from utils.dates import parse_epoch
from utils.geo import has_usable_gps

logger = logging.getLogger(__name__)

SIDECAR_GEO_FIELDS = ('geoData', 'geoDataExif')


class MetadataNormalizer:
    """Reduce sidecar and embedded photo metadata to one (taken_at, latitude, longitude) triple"""

    def read_sidecar_timestamp(self, sidecar: dict, field: str):
        value = sidecar.get(field)
        if not isinstance(value, dict):
            return None
        timestamp = value.get('timestamp')
        if timestamp in (None, ''):
            return None
        return parse_epoch(timestamp)

    def read_sidecar_gps(self, sidecar: dict) -> tuple[float, float] | None:
        """First usable coordinate pair among the sidecar's geo fields"""
        for field in SIDECAR_GEO_FIELDS:
            geo = sidecar.get(field)
            if not isinstance(geo, dict):
                continue
            try:
                lat = float(geo.get('latitude'))
                lon = float(geo.get('longitude'))
            except (TypeError, ValueError):
                continue
            if has_usable_gps(lat, lon):
                return lat, lon
        return None

    def normalize(
        self, photo: PhotoFile, sidecar: dict | None = None, embedded: EmbeddedMetadata | None = None
    ) -> NormalizedPhoto:
        """
        Build the canonical view of one photo

        Timestamp precedence: sidecar capture time, embedded capture time,
        file creation time. GPS precedence: sidecar geo fields, embedded GPS.
        taken_at stays None when no source has a time.
        """
        sidecar = sidecar or {}
        taken_at = None
        source = None

        sidecar_taken = self.read_sidecar_timestamp(sidecar, 'photoTakenTime')
        if sidecar_taken:
            taken_at, source = sidecar_taken, 'sidecar'
        elif embedded and embedded.taken_at:
            taken_at, source = embedded.taken_at, 'embedded'
        else:
            created = self.read_sidecar_timestamp(sidecar, 'creationTime') or photo.created_at
            if created:
                taken_at, source = created, 'file_created'

        latitude = longitude = None
        sidecar_gps = self.read_sidecar_gps(sidecar)
        if sidecar_gps:
            latitude, longitude = sidecar_gps
        elif embedded and has_usable_gps(embedded.latitude, embedded.longitude):
            latitude, longitude = embedded.latitude, embedded.longitude

        if taken_at is None:
            logger.debug(f"No timestamp found for {photo.file_name}")

        return NormalizedPhoto(
            file_id=photo.file_id,
            file_name=photo.file_name,
            taken_at=taken_at,
            latitude=latitude,
            longitude=longitude,
            timestamp_source=source,
        )
