"""Next upcoming class for a student's city.

Walks a bounded horizon (60 days by default) of resolved occurrences rather
than jumping to the next matching weekday: flexible classes and
cancellations can replace or remove the nearest weekly class.
"""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from src.dojo.logging import get_logger
from src.dojo.models import Occurrence
from src.dojo.resolver import OccurrenceResolver
from src.dojo.storage import StudentDirectory
from src.dojo.timeutils import minutes_of_day

log = get_logger(__name__)

DEFAULT_HORIZON_DAYS = 60


class NextClassFinder:
    def __init__(
        self,
        resolver: OccurrenceResolver,
        students: StudentDirectory,
        *,
        tz: ZoneInfo,
        horizon_days: int = DEFAULT_HORIZON_DAYS,
    ) -> None:
        self.resolver = resolver
        self.students = students
        self.tz = tz
        self.horizon_days = horizon_days

    def find_next_class(self, city_id: str, now: datetime) -> Occurrence | None:
        """Earliest occurrence not already started, or None within the horizon.

        ``now`` is converted to the school's zone; naive datetimes are taken
        as local school time.
        """
        local = now.astimezone(self.tz) if now.tzinfo else now.replace(tzinfo=self.tz)
        today = local.date()
        now_minutes = local.hour * 60 + local.minute
        horizon_end = today + timedelta(days=self.horizon_days)

        for occurrence in self.resolver.resolve(city_id, today, horizon_end):
            if occurrence.date == today and minutes_of_day(occurrence.start_time) < now_minutes:
                continue
            log.debug(
                "next_class_found",
                city_id=city_id,
                date=occurrence.date.isoformat(),
                start_time=occurrence.start_time,
            )
            return occurrence

        log.info("next_class_not_found", city_id=city_id, horizon_days=self.horizon_days)
        return None

    def find_next_class_for_student(
        self, student_id: str, now: datetime
    ) -> Occurrence | None:
        student = self.students.get(student_id)
        return self.find_next_class(student.city_id, now)
