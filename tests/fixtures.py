"""Test data fixtures for oh_my_gigs tests"""

import json
from datetime import datetime
from dateutil import tz
from pathlib import Path

PACIFIC = tz.gettz('America/Los_Angeles')

# The Gorge Amphitheatre, George WA
GORGE_LAT = 47.1016
GORGE_LON = -119.9934

# The Showbox, Seattle WA
SHOWBOX_LAT = 47.6086
SHOWBOX_LON = -122.3398


def pacific(year, month, day, hour, minute=0) -> datetime:
    """Aware datetime in Pacific time"""
    return datetime(year, month, day, hour, minute, tzinfo=PACIFIC)


def epoch(moment: datetime) -> str:
    return str(int(moment.timestamp()))


class TestDataFixtures:
    """Centralized test data fixtures"""

    @staticmethod
    def get_test_sidecar(taken_at: datetime | None = None, lat: float = 0.0, lon: float = 0.0, created_at: datetime | None = None):
        """Google Photos supplemental metadata sidecar"""
        sidecar = {
            "title": "PXL_20240713_041500.jpg",
            "geoData": {"latitude": lat, "longitude": lon, "altitude": 0.0},
            "geoDataExif": {"latitude": 0.0, "longitude": 0.0, "altitude": 0.0},
        }
        if taken_at:
            sidecar["photoTakenTime"] = {"timestamp": epoch(taken_at), "formatted": taken_at.isoformat()}
        if created_at:
            sidecar["creationTime"] = {"timestamp": epoch(created_at), "formatted": created_at.isoformat()}
        return sidecar

    @staticmethod
    def get_test_setlist(
        setlist_id: str = "63a7b6f1",
        artist: str = "Dave Matthews Band",
        venue: str = "Gorge Amphitheatre",
        city: str = "George",
        state: str = "Washington",
        event_date: str = "31-08-2024",
        songs: int = 3,
        lat: float = GORGE_LAT,
        lon: float = GORGE_LON,
    ):
        """One setlist.fm setlist object"""
        return {
            "id": setlist_id,
            "eventDate": event_date,
            "url": f"https://www.setlist.fm/setlist/{setlist_id}.html",
            "artist": {"mbid": f"mbid-{artist.lower().replace(' ', '-')}", "name": artist},
            "venue": {
                "id": "venue-1",
                "name": venue,
                "city": {
                    "name": city,
                    "state": state,
                    "coords": {"lat": lat, "long": lon},
                    "country": {"code": "US", "name": "United States"},
                },
            },
            "tour": {"name": "Summer Tour"},
            "sets": {"set": [{"song": [{"name": f"Song {i}"} for i in range(1, songs + 1)]}] if songs else []},
        }

    @staticmethod
    def get_test_setlist_page(items: list, total: int | None = None, page: int = 1):
        return {
            "type": "setlists",
            "itemsPerPage": 20,
            "page": page,
            "total": len(items) if total is None else total,
            "setlist": items,
        }

    @staticmethod
    def get_test_overpass_element(name: str | None, lat: float, lon: float, key: str = "amenity", value: str = "theatre", **tags):
        element_tags = {key: value, **tags}
        if name:
            element_tags["name"] = name
        return {"type": "node", "id": abs(hash((name, lat, lon))) % 10**9, "lat": lat, "lon": lon, "tags": element_tags}

    @classmethod
    def create_photo_export(cls, export_dir: Path, photos: dict[str, dict | None]) -> Path:
        """Write placeholder media files with optional sidecars; returns the export directory"""
        export_dir.mkdir(parents=True, exist_ok=True)
        for file_name, sidecar in photos.items():
            (export_dir / file_name).write_bytes(b"not really a jpeg")
            if sidecar is not None:
                with open(export_dir / f"{file_name}.supplemental-metadata.json", 'w') as f:
                    json.dump(sidecar, f)
        return export_dir


class FakeClock:
    """Monotonic clock that only moves when something sleeps or the test advances it"""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float):
        self.now += seconds
