"""City directory client.

Cities are managed by the portal backend and listed at ``GET {api}/cidades``.
Each item carries at least ``nome``; ``id`` is optional and falls back to
the name, which is also the key the schedule documents use.
"""

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.dojo.config import DojoConfig
from src.dojo.errors import PermanentError, TransientError
from src.dojo.logging import get_logger
from src.dojo.models import City

logger = get_logger(__name__)


class CityDirectory:
    """Reads the list of cities from the portal API."""

    PATH = "/cidades"

    def __init__(
        self,
        api_base_url: str,
        *,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: DojoConfig) -> "CityDirectory":
        return cls(config.api_base_url, timeout=config.request_timeout_seconds)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, max=5),
        retry=retry_if_exception_type(TransientError),
        reraise=True,
    )
    def list_cities(self) -> list[City]:
        """Fetch all cities, sorted by name.

        Raises:
            TransientError: Network failure or 5xx after all retries.
            PermanentError: 4xx response or a payload that is not a list.
        """
        url = f"{self.api_base_url}{self.PATH}"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.warning("city_list_unreachable", url=url, error=str(e))
            raise TransientError(f"GET {url} failed: {e}") from e

        if response.status_code >= 500:
            logger.warning("city_list_server_error", status=response.status_code)
            raise TransientError(f"GET {url} returned {response.status_code}")
        if response.status_code >= 400:
            raise PermanentError(f"GET {url} returned {response.status_code}")

        items = response.json()
        if not isinstance(items, list):
            raise PermanentError(f"GET {url} returned {type(items).__name__}, expected list")

        cities = [
            City(id=str(item.get("id") or item["nome"]), name=item["nome"])
            for item in items
            if item.get("nome")
        ]
        cities.sort(key=lambda c: c.name.lower())
        logger.info("city_list_fetched", count=len(cities))
        return cities

    def get_city(self, city_id: str) -> City | None:
        for city in self.list_cities():
            if city.id == city_id:
                return city
        return None
