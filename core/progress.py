import json
import logging
import threading
from config import CACHE_DIR, LAST_SCAN_FILE, SETLISTFM_MIN_INTERVAL_SECONDS
from core.exceptions import ScanInProgressError
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from utils.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


@dataclass
class ScanProgress:
    user_id: int
    total_photos: int
    is_scanning: bool = True
    current_photo: int = 0
    processed: int = 0
    linked: int = 0
    skipped: int = 0
    new_concerts: int = 0
    unmatched: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    current_file_name: str | None = None
    current_city: str | None = None
    current_venue: str | None = None
    current_artist: str | None = None
    current_status: str | None = None


class ProgressRegistry:
    """Per-user scan progress, plus the last completed scan result persisted to disk"""

    def __init__(self, results_file: Path | None = CACHE_DIR / LAST_SCAN_FILE):
        self.results_file = results_file
        self._progress: dict[int, ScanProgress] = {}
        self._last_results: dict[int, dict] = self._load_results()
        self._lock = threading.Lock()

    def _load_results(self) -> dict[int, dict]:
        if not self.results_file or not self.results_file.exists():
            return {}
        try:
            with open(self.results_file) as f:
                return {int(user_id): result for user_id, result in json.load(f).items()}
        except (json.JSONDecodeError, OSError, ValueError, AttributeError):
            logger.warning(f"Could not load last scan results from {self.results_file}")
            return {}

    def _save_results(self):
        if not self.results_file:
            return
        self.results_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.results_file, 'w') as f:
            json.dump({str(user_id): result for user_id, result in self._last_results.items()}, f, indent=2)

    def start(self, user_id: int, total_photos: int) -> ScanProgress:
        """Begin tracking a scan; a second concurrent scan for the same user is refused"""
        with self._lock:
            current = self._progress.get(user_id)
            if current and current.is_scanning:
                raise ScanInProgressError(f"A scan is already running for user {user_id}")
            progress = ScanProgress(user_id=user_id, total_photos=total_photos)
            self._progress[user_id] = progress
            return progress

    def update(self, user_id: int, **fields):
        with self._lock:
            progress = self._progress.get(user_id)
            if progress is None:
                return
            for name, value in fields.items():
                setattr(progress, name, value)

    def complete(self, user_id: int):
        self.update(user_id, is_scanning=False, current_status='Complete')

    def get(self, user_id: int) -> ScanProgress | None:
        return self._progress.get(user_id)

    def clear(self, user_id: int):
        with self._lock:
            self._progress.pop(user_id, None)

    def save_last_result(self, user_id: int, result: dict):
        with self._lock:
            self._last_results[user_id] = {**result, 'completed_at': datetime.now(UTC).isoformat()}
            self._save_results()

    def last_result(self, user_id: int) -> dict | None:
        return self._last_results.get(user_id)

    @staticmethod
    def describe(progress: ScanProgress) -> dict:
        data = asdict(progress)
        data['started_at'] = progress.started_at.isoformat()
        return data


@dataclass
class ScanContext:
    """Services shared by every external call in one scan"""

    rate_limiter: RateLimiter = field(
        default_factory=lambda: RateLimiter(SETLISTFM_MIN_INTERVAL_SECONDS, name='setlist.fm')
    )
    registry: ProgressRegistry = field(default_factory=ProgressRegistry)
