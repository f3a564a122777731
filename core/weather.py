import httpx
import logging
from config import OPENWEATHER_API_KEY, OPENWEATHER_TIMEOUT_SECONDS, OPENWEATHER_URL

logger = logging.getLogger(__name__)


class WeatherClient:
    """Current conditions from OpenWeather; failures are logged and yield None"""

    def __init__(
        self, api_key: str = OPENWEATHER_API_KEY, client: httpx.Client | None = None, url: str = OPENWEATHER_URL
    ):
        self.api_key = api_key
        self.client = client or httpx.Client(timeout=OPENWEATHER_TIMEOUT_SECONDS)
        self.url = url

    def current(self, lat: float, lon: float) -> dict | None:
        if not self.api_key:
            return None

        try:
            response = self.client.get(
                self.url, params={'lat': lat, 'lon': lon, 'appid': self.api_key, 'units': 'imperial'}
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Weather lookup failed for {lat}, {lon}: {e}")
            return None

        weather = data.get('weather') or [{}]
        return {
            'condition': weather[0].get('description'),
            'temperature': (data.get('main') or {}).get('temp'),
        }
