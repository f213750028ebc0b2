"""Wiring of the engine components from a DojoConfig.

Scripts and tests build everything through build_services() so the store,
resolver, finder, register and tracker share one data directory, one clock
and one notifier. The city directory reads the same API settings.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from functools import partial

from src.dojo.attendance import AttendanceRegister
from src.dojo.config import DojoConfig, get_config
from src.dojo.directory import CityDirectory
from src.dojo.logging import get_logger
from src.dojo.next_class import NextClassFinder
from src.dojo.notifications import NotificationDispatcher, Notifier
from src.dojo.progression import AchievementTracker, ProgressionEngine
from src.dojo.resolver import OccurrenceResolver
from src.dojo.schedule import ScheduleStore
from src.dojo.storage import (
    AchievementLedger,
    AttendanceRepository,
    JsonDocumentStore,
    ScheduleRepository,
    StudentDirectory,
)
from src.dojo.timeutils import local_now

logger = get_logger(__name__)


@dataclass
class Services:
    config: DojoConfig
    cities: CityDirectory
    students: StudentDirectory
    schedule: ScheduleStore
    resolver: OccurrenceResolver
    next_class: NextClassFinder
    attendance: AttendanceRegister
    progression: ProgressionEngine
    achievements: AchievementTracker


def build_services(
    config: DojoConfig | None = None,
    *,
    notifier: Notifier | None = None,
    clock: Callable[[], datetime] | None = None,
    engine: ProgressionEngine | None = None,
    cities: CityDirectory | None = None,
) -> Services:
    config = config or get_config()
    tz = config.tz
    clock = clock or partial(local_now, tz)
    notifier = notifier or NotificationDispatcher.from_config(config)
    engine = engine or ProgressionEngine()
    cities = cities or CityDirectory.from_config(config)

    store = JsonDocumentStore(config.data_dir)
    schedules = ScheduleRepository(store)
    students = StudentDirectory(store)
    resolver = OccurrenceResolver(schedules)
    tracker = AchievementTracker(
        engine,
        AchievementLedger(store),
        students,
        notifier,
        portal_url=config.portal_url,
        clock=clock,
    )

    logger.debug("services_built", data_dir=config.data_dir, timezone=config.school_timezone)
    return Services(
        config=config,
        cities=cities,
        students=students,
        schedule=ScheduleStore(schedules, notifier, tz=tz, clock=clock),
        resolver=resolver,
        next_class=NextClassFinder(
            resolver, students, tz=tz, horizon_days=config.next_class_horizon_days
        ),
        attendance=AttendanceRegister(
            AttendanceRepository(store), students, resolver, tracker, tz=tz, clock=clock
        ),
        progression=engine,
        achievements=tracker,
    )
