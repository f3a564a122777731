import logging
from config import (
    CONCERT_DATE_NORMALIZED_HOUR,
    LOCAL_TIMEZONE,
    MANUAL_SEARCH_UTC_OFFSET_HOURS,
    MIDNIGHT_CUTOFF_HOUR,
    OPENER_CUTOFF,
)
from datetime import UTC, date, datetime, timedelta
from dateutil import tz
from dateutil.parser import parse as parse_date

logger = logging.getLogger(__name__)


def local_zone(tz_name: str = LOCAL_TIMEZONE):
    zone = tz.gettz(tz_name)
    if zone is None:
        logger.warning(f"Unknown timezone '{tz_name}', falling back to UTC")
        return UTC
    return zone


def to_local(moment: datetime, tz_name: str = LOCAL_TIMEZONE) -> datetime:
    """Convert to local wall time; naive values (camera EXIF) are already local"""
    zone = local_zone(tz_name)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=zone)
    return moment.astimezone(zone)


def adjust_for_midnight(local_moment: datetime) -> datetime:
    """Photos taken between midnight and the cutoff belong to the previous evening's show"""
    if 0 <= local_moment.hour < MIDNIGHT_CUTOFF_HOUR:
        return local_moment - timedelta(days=1)
    return local_moment


def event_date(moment: datetime, tz_name: str = LOCAL_TIMEZONE) -> date:
    return adjust_for_midnight(to_local(moment, tz_name)).date()


def date_key(moment: datetime, tz_name: str = LOCAL_TIMEZONE) -> str:
    """YYYY-MM-DD of the midnight-adjusted local date"""
    return event_date(moment, tz_name).isoformat()


def normalize_concert_date(day: date) -> datetime:
    """Concert dates are stored at a fixed time of day in UTC so they never drift across timezones"""
    return datetime(day.year, day.month, day.day, CONCERT_DATE_NORMALIZED_HOUR, tzinfo=UTC)


def manual_search_date(moment: datetime) -> date:
    """Calendar date used by the manual review search: UTC shifted by a fixed offset"""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    shifted = moment.astimezone(UTC) - timedelta(hours=MANUAL_SEARCH_UTC_OFFSET_HOURS)
    return shifted.date()


def is_opener_time(moment: datetime, tz_name: str = LOCAL_TIMEZONE) -> bool:
    local_moment = to_local(moment, tz_name)
    return (local_moment.hour, local_moment.minute) < OPENER_CUTOFF


def parse_epoch(timestamp) -> datetime | None:
    """Epoch seconds (string or number) to an aware UTC datetime"""
    try:
        return datetime.fromtimestamp(int(timestamp), tz=UTC)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        logger.warning(f"Failed to parse epoch timestamp '{timestamp}': {e}")
        return None


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a stored ISO timestamp; naive values are taken as UTC"""
    if not value:
        return None
    try:
        parsed = parse_date(value)
    except (ValueError, OverflowError) as e:
        logger.warning(f"Failed to parse timestamp '{value}': {e}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_event_date(value: str | None) -> date | None:
    """Event dates from the event database come as DD-MM-YYYY"""
    if not value:
        return None
    try:
        return datetime.strptime(value, '%d-%m-%Y').date()
    except ValueError:
        logger.warning(f"Unexpected event date format: '{value}'")
        return None


def format_event_date(day: date) -> str:
    return day.strftime('%d-%m-%Y')
