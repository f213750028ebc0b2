"""Push notification client for the school's messaging API.

Delivery is best-effort and fire-and-forget: a failed request is logged and
reported as ``False``, never raised into the schedule or attendance
operation that triggered it, and never retried.

Endpoints:
    POST {api}/messaging/aviso-cidade   broadcast to every student of a city
    POST {api}/messaging/aviso          message to one student (uid)
"""

from typing import Protocol

import requests

from src.dojo.config import DojoConfig
from src.dojo.errors import NotificationDeliveryError
from src.dojo.logging import get_logger

logger = get_logger(__name__)


class Notifier(Protocol):
    def notify_city(self, city_id: str, title: str, body: str) -> bool: ...

    def notify_student(
        self, student_id: str, title: str, body: str, deep_link: str | None = None
    ) -> bool: ...


class NotificationDispatcher:
    """Sends city broadcasts and student messages over HTTP."""

    CITY_PATH = "/messaging/aviso-cidade"
    STUDENT_PATH = "/messaging/aviso"

    def __init__(
        self,
        api_base_url: str,
        *,
        timeout: float = 10.0,
        enabled: bool = True,
        session: requests.Session | None = None,
    ) -> None:
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout
        self.enabled = enabled
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: DojoConfig) -> "NotificationDispatcher":
        return cls(
            config.api_base_url,
            timeout=config.request_timeout_seconds,
            enabled=config.notifications_enabled,
        )

    def notify_city(self, city_id: str, title: str, body: str) -> bool:
        payload = {"cidade": city_id, "mensagem": {"title": title, "body": body}}
        return self._deliver(self.CITY_PATH, payload, target=city_id)

    def notify_student(
        self, student_id: str, title: str, body: str, deep_link: str | None = None
    ) -> bool:
        message = {"title": title, "body": body}
        if deep_link:
            message["link"] = deep_link
        payload = {"uid": student_id, "mensagem": message}
        return self._deliver(self.STUDENT_PATH, payload, target=student_id)

    def _deliver(self, path: str, payload: dict, *, target: str) -> bool:
        if not self.enabled:
            logger.debug("notification_skipped", path=path, target=target)
            return False
        try:
            self._post(path, payload)
        except NotificationDeliveryError as e:
            logger.warning(
                "notification_failed", path=path, target=target, error=str(e)
            )
            return False
        logger.info("notification_sent", path=path, target=target)
        return True

    def _post(self, path: str, payload: dict) -> None:
        url = f"{self.api_base_url}{path}"
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise NotificationDeliveryError(f"POST {url} failed: {e}") from e
        if response.status_code >= 400:
            raise NotificationDeliveryError(
                f"POST {url} returned {response.status_code}: {response.text[:200]}"
            )
