import logging
from config import LOCAL_TIMEZONE
from core.models import EventGroup, NormalizedPhoto
from utils.dates import date_key
from utils.geo import NO_GPS_LOCATION_KEY, location_key

logger = logging.getLogger(__name__)


class EventGrouper:
    """Partition photos into one group per (midnight-adjusted date, ~100 m location)"""

    def __init__(self, tz_name: str = LOCAL_TIMEZONE):
        self.tz_name = tz_name

    def location_key_for(self, photo: NormalizedPhoto) -> str:
        key = location_key(photo.latitude, photo.longitude)
        if key == NO_GPS_LOCATION_KEY:
            # GPS-less photos stay alone so unrelated shots are never merged
            return f"{NO_GPS_LOCATION_KEY}:{photo.file_id}"
        return key

    def group(self, photos: list[NormalizedPhoto]) -> list[EventGroup]:
        groups: dict[str, EventGroup] = {}

        for photo in photos:
            if photo.taken_at is None:
                continue
            group = EventGroup(date_key=date_key(photo.taken_at, self.tz_name), location_key=self.location_key_for(photo))
            groups.setdefault(group.key, group).photos.append(photo)

        for group in groups.values():
            group.photos.sort(key=lambda p: (p.taken_at.timestamp(), p.file_id))

        ordered = [groups[key] for key in sorted(groups)]
        logger.info(f"Grouped {sum(len(g.photos) for g in ordered)} photos into {len(ordered)} events")
        return ordered
