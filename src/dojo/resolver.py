"""Resolve which classes actually happen on each date.

Precedence for one date:
  1. a cancellation suppresses every class of the day;
  2. flexible classes of that date are always emitted;
  3. fixed classes of that weekday are emitted unless a flexible class
     starts at exactly the same time (the flexible one replaces it).

Nothing is cached; callers resolve again after any schedule change.
"""

from datetime import date

from src.dojo.logging import get_logger
from src.dojo.models import CitySchedule, Occurrence, SourceKind
from src.dojo.storage import ScheduleRepository
from src.dojo.timeutils import iter_dates, minutes_of_day, weekday_of

log = get_logger(__name__)


def occurrences_on(schedule: CitySchedule, day: date) -> list[Occurrence]:
    """Occurrences for a single date, sorted by start time."""
    if schedule.cancellation_on(day) is not None:
        return []

    emitted: list[Occurrence] = []
    flexible_starts: set[str] = set()
    for flexible in schedule.flexible_classes:
        if flexible.date != day:
            continue
        flexible_starts.add(flexible.start_time)
        emitted.append(
            Occurrence(
                date=day,
                start_time=flexible.start_time,
                duration_minutes=flexible.duration_minutes,
                class_type=flexible.class_type,
                source_kind=SourceKind.FLEXIBLE,
                source_id=flexible.id,
            )
        )

    weekday = weekday_of(day)
    for fixed in schedule.fixed_classes:
        if fixed.weekday != weekday or fixed.start_time in flexible_starts:
            continue
        emitted.append(
            Occurrence(
                date=day,
                start_time=fixed.start_time,
                duration_minutes=fixed.duration_minutes,
                class_type=fixed.class_type,
                source_kind=SourceKind.FIXED,
                source_id=fixed.id,
            )
        )

    emitted.sort(key=lambda o: minutes_of_day(o.start_time))
    return emitted


def resolve_occurrences(
    schedule: CitySchedule, from_date: date, to_date: date
) -> list[Occurrence]:
    """All occurrences in ``[from_date, to_date]``, in date then time order."""
    result: list[Occurrence] = []
    for day in iter_dates(from_date, to_date):
        result.extend(occurrences_on(schedule, day))
    return result


class OccurrenceResolver:
    """Loads a city's schedule and resolves it for a date range."""

    def __init__(self, schedules: ScheduleRepository) -> None:
        self.schedules = schedules

    def resolve(self, city_id: str, from_date: date, to_date: date) -> list[Occurrence]:
        schedule = self.schedules.load(city_id)
        occurrences = resolve_occurrences(schedule, from_date, to_date)
        log.debug(
            "occurrences_resolved",
            city_id=city_id,
            from_date=from_date.isoformat(),
            to_date=to_date.isoformat(),
            count=len(occurrences),
        )
        return occurrences

    def on(self, city_id: str, day: date) -> list[Occurrence]:
        return occurrences_on(self.schedules.load(city_id), day)

    def find(self, city_id: str, day: date, start_time: str) -> Occurrence | None:
        """The occurrence starting at ``start_time`` on ``day``, if it happens."""
        for occurrence in self.on(city_id, day):
            if occurrence.start_time == start_time:
                return occurrence
        return None
