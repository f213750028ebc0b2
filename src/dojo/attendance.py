"""AttendanceRegister - roll calls per class and the attended-classes counters.

A roll call is stored as one AttendanceRecord per session key
(``YYYY-MM-DD-HHMM``) and replaced whole each time attendance is saved.
Counters move only on transitions between the previous and the new roll
call, so saving the same roll call twice changes nothing.
"""

from collections.abc import Callable
from datetime import date, datetime
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from src.dojo.errors import NotFoundError
from src.dojo.logging import get_logger
from src.dojo.models import AttendanceRecord, Occurrence
from src.dojo.progression import AchievementTracker
from src.dojo.resolver import OccurrenceResolver
from src.dojo.storage import AttendanceRepository, StudentDirectory
from src.dojo.timeutils import as_date, month_bounds, session_key

log = get_logger(__name__)


class MarkResult(BaseModel):
    record: AttendanceRecord
    incremented: list[str]  # absent -> present
    decremented: list[str]  # present -> absent
    unlocked: dict[str, list[str]]  # student_id -> achievement ids


class SessionSlot(BaseModel):
    occurrence: Occurrence
    already_taken: bool


class AttendanceSummary(BaseModel):
    present: int
    total: int
    percentage: int


class AttendanceRegister:
    def __init__(
        self,
        records: AttendanceRepository,
        students: StudentDirectory,
        resolver: OccurrenceResolver,
        tracker: AchievementTracker,
        *,
        tz: ZoneInfo,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.records = records
        self.students = students
        self.resolver = resolver
        self.tracker = tracker
        self.tz = tz
        self._clock = clock or (lambda: datetime.now(self.tz))

    def mark_attendance(
        self,
        city_id: str,
        day: date | str,
        start_time: str,
        present_by_student_id: dict[str, bool],
    ) -> MarkResult:
        """Save the roll call of one class and move the counters.

        Students present in the previous roll call but missing from
        ``present_by_student_id`` are treated as absent.

        A roll call that was already stored can always be corrected, even
        if the day has since been cancelled or the class moved.

        Raises:
            NotFoundError: If no class of the city happens at that date and
                time and no roll call is stored for it, or a student whose
                presence changes does not exist.
        """
        day = as_date(day)
        key = session_key(day, start_time)
        new_map = {sid: bool(present) for sid, present in present_by_student_id.items()}

        with self.records.locked(city_id):
            previous = self.records.get(city_id, key)
            if previous is not None:
                class_type = previous.class_type
            else:
                occurrence = self.resolver.find(city_id, day, start_time)
                if occurrence is None:
                    raise NotFoundError(f"No class in {city_id} on {day} at {start_time}")
                class_type = occurrence.class_type
            previous_map = previous.present_by_student_id if previous else {}

            incremented: list[str] = []
            decremented: list[str] = []
            for student_id in sorted(set(previous_map) | set(new_map)):
                was_present = previous_map.get(student_id, False)
                is_present = new_map.get(student_id, False)
                if is_present and not was_present:
                    incremented.append(student_id)
                elif was_present and not is_present:
                    decremented.append(student_id)

            missing = [
                sid for sid in incremented + decremented if not self.students.exists(sid)
            ]
            if missing:
                raise NotFoundError(f"Unknown students: {', '.join(missing)}")

            record = AttendanceRecord(
                city_id=city_id,
                date=day,
                start_time=start_time,
                class_type=class_type,
                present_by_student_id=new_map,
                updated_at=self._clock(),
            )
            self.records.put(record)

            new_counts = {
                sid: self.students.add_to_attended(sid, 1) for sid in incremented
            }
            for student_id in decremented:
                self.students.add_to_attended(student_id, -1)

        log.info(
            "attendance_marked",
            city_id=city_id,
            session_key=key,
            present=record.present_count,
            incremented=len(incremented),
            decremented=len(decremented),
        )

        # Milestones are never revoked on the decrement path
        unlocked: dict[str, list[str]] = {}
        for student_id, count in new_counts.items():
            inserted = self.tracker.on_attendance(student_id, count)
            if inserted:
                unlocked[student_id] = inserted

        return MarkResult(
            record=record,
            incremented=incremented,
            decremented=decremented,
            unlocked=unlocked,
        )

    def roll_call(self, city_id: str, day: date | str, start_time: str) -> dict[str, bool]:
        """Presence map to show when taking attendance for a class.

        The stored roll call if there is one, otherwise every active student
        of the city marked absent.
        """
        existing = self.records.get(city_id, session_key(as_date(day), start_time))
        if existing is not None:
            return dict(existing.present_by_student_id)
        students = sorted(
            (s for s in self.students.list_by_city(city_id) if not s.is_blocked),
            key=lambda s: s.name.lower(),
        )
        return {s.id: False for s in students}

    def sessions_for_day(self, city_id: str, day: date | str) -> list[SessionSlot]:
        """Classes happening on ``day`` and whether their roll call was taken."""
        day = as_date(day)
        taken = {r.session_key for r in self.records.list(city_id) if r.date == day}
        return [
            SessionSlot(occurrence=o, already_taken=o.session_key in taken)
            for o in self.resolver.on(city_id, day)
        ]

    def history(self, city_id: str) -> list[AttendanceRecord]:
        """Stored roll calls, newest class first."""
        return sorted(
            self.records.list(city_id),
            key=lambda r: (r.date, r.start_time),
            reverse=True,
        )

    def student_marks(self, student_id: str, year: int, month: int) -> dict[date, bool]:
        """Per-day presence of a student in a month (present wins on busy days)."""
        student = self.students.get(student_id)
        first, last = month_bounds(year, month)
        marks: dict[date, bool] = {}
        for record in self.records.list(student.city_id):
            if not first <= record.date <= last:
                continue
            if student_id in record.present_by_student_id:
                present = record.present_by_student_id[student_id]
                marks[record.date] = marks.get(record.date, False) or present
        return dict(sorted(marks.items()))

    def student_month_summary(self, student_id: str, year: int, month: int) -> AttendanceSummary:
        """Present / total over the month's roll calls that include the student."""
        student = self.students.get(student_id)
        first, last = month_bounds(year, month)
        present = total = 0
        for record in self.records.list(student.city_id):
            if not first <= record.date <= last:
                continue
            if student_id not in record.present_by_student_id:
                continue
            total += 1
            if record.present_by_student_id[student_id]:
                present += 1
        percentage = round(present / total * 100) if total else 0
        return AttendanceSummary(present=present, total=total, percentage=percentage)
