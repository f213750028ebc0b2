"""Shared fixtures: a data directory on tmp_path, a settable clock and a
notifier that records messages instead of calling the messaging API.

The clock starts on Monday 2026-10-19 at 10:00 school time.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from src.dojo.config import DojoConfig
from src.dojo.models import City, Student
from src.dojo.services import build_services

TZ = ZoneInfo("America/Sao_Paulo")
CITY = "Springfield"


class FakeNotifier:
    def __init__(self) -> None:
        self.city_messages: list[tuple[str, str, str]] = []
        self.student_messages: list[tuple[str, str, str, str | None]] = []
        self.fail = False

    def notify_city(self, city_id: str, title: str, body: str) -> bool:
        if self.fail:
            raise RuntimeError("messaging API down")
        self.city_messages.append((city_id, title, body))
        return True

    def notify_student(self, student_id, title, body, deep_link=None) -> bool:
        if self.fail:
            raise RuntimeError("messaging API down")
        self.student_messages.append((student_id, title, body, deep_link))
        return True


class FakeCityDirectory:
    def __init__(self, *names: str) -> None:
        self.cities = [City(id=name, name=name) for name in names]

    def list_cities(self) -> list[City]:
        return list(self.cities)

    def get_city(self, city_id: str) -> City | None:
        return next((c for c in self.cities if c.id == city_id), None)


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, *args: int) -> None:
        self.now = datetime(*args, tzinfo=TZ)


@pytest.fixture
def clock():
    return Clock(datetime(2026, 10, 19, 10, 0, tzinfo=TZ))


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def config(tmp_path):
    return DojoConfig(
        _env_file=None,
        data_dir=str(tmp_path / "data"),
        school_timezone="America/Sao_Paulo",
        portal_url="https://portal.example.com",
        notifications_enabled=False,
    )


@pytest.fixture
def services(config, notifier, clock):
    return build_services(
        config,
        notifier=notifier,
        clock=clock,
        cities=FakeCityDirectory(CITY, "Shelbyville"),
    )


@pytest.fixture
def students(services):
    """Three Springfield students (one blocked) and one from another city."""
    directory = services.students
    directory.upsert(Student(id="s1", name="Ana", city_id=CITY))
    directory.upsert(Student(id="s2", name="Bruno", city_id=CITY, current_belt="Amarela"))
    directory.upsert(Student(id="s3", name="Caio", city_id=CITY, status="Bloqueado"))
    directory.upsert(Student(id="s4", name="Duda", city_id="Shelbyville"))
    return directory


@pytest.fixture
def monday_class(services):
    """Weekly Monday 18:00 class, 60 minutes."""
    return services.schedule.add_fixed_class(CITY, 1, "18:00", 60, "Aula Normal")
