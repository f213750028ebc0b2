"""ScheduleStore - fixed classes, flexible classes and cancellations per city.

Every mutation validates against the city's current document and writes it
back while holding the city's lock, so two administrators editing the same
city are serialised instead of racing between check and write. A rejected
mutation raises before anything is written.

After a successful write the city's students get a broadcast describing the
change. Broadcast failures are logged and otherwise ignored.
"""

from collections.abc import Callable
from datetime import date, datetime
from uuid import uuid4
from zoneinfo import ZoneInfo

from src.dojo.errors import ConflictError, EmptyDayError, NotFoundError, PastDateError
from src.dojo.logging import get_logger
from src.dojo.models import (
    CalendarDay,
    Cancellation,
    CitySchedule,
    DayStatus,
    FixedClass,
    FlexibleClass,
)
from src.dojo.notifications import Notifier
from src.dojo.storage import ScheduleRepository
from src.dojo.timeutils import (
    as_date,
    format_date_br,
    iter_dates,
    month_bounds,
    slots_overlap,
    weekday_of,
)

log = get_logger(__name__)

DEFAULT_CLASS_TYPES: tuple[str, ...] = ("Aula Normal", "Exame de Faixa")

WEEKDAY_NAMES: tuple[str, ...] = (
    "Domingo",
    "Segunda-feira",
    "Terça-feira",
    "Quarta-feira",
    "Quinta-feira",
    "Sexta-feira",
    "Sábado",
)


def _new_id(prefix: str, start_time: str | None = None) -> str:
    parts = [prefix]
    if start_time:
        parts.append(start_time.replace(":", ""))
    parts.append(uuid4().hex[:8])
    return "-".join(parts)


def has_class_on(schedule: CitySchedule, day: date) -> bool:
    """True if any fixed (by weekday) or flexible (by date) class falls on ``day``."""
    if any(f.date == day for f in schedule.flexible_classes):
        return True
    weekday = weekday_of(day)
    return any(f.weekday == weekday for f in schedule.fixed_classes)


def day_status_of(schedule: CitySchedule, day: date) -> DayStatus:
    if schedule.cancellation_on(day) is not None:
        return DayStatus.CANCELLED
    if any(f.date == day for f in schedule.flexible_classes):
        return DayStatus.FLEXIBLE
    weekday = weekday_of(day)
    if any(f.weekday == weekday for f in schedule.fixed_classes):
        return DayStatus.FIXED
    return DayStatus.NONE


class ScheduleStore:
    """Create, edit and delete a city's classes and cancellations."""

    def __init__(
        self,
        schedules: ScheduleRepository,
        notifier: Notifier,
        *,
        tz: ZoneInfo,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.schedules = schedules
        self.notifier = notifier
        self.tz = tz
        self._clock = clock or (lambda: datetime.now(self.tz))

    def today(self) -> date:
        return self._clock().astimezone(self.tz).date()

    def get_schedule(self, city_id: str) -> CitySchedule:
        return self.schedules.load(city_id)

    # ------------------------------------------------------------------
    # Fixed classes
    # ------------------------------------------------------------------
    def add_fixed_class(
        self,
        city_id: str,
        weekday: int,
        start_time: str,
        duration_minutes: int,
        class_type: str,
    ) -> FixedClass:
        """Add a weekly class.

        Raises:
            ConflictError: If it overlaps a fixed class on the same weekday.
        """
        fixed = FixedClass(
            id=_new_id(str(weekday), start_time),
            city_id=city_id,
            weekday=weekday,
            start_time=start_time,
            duration_minutes=duration_minutes,
            class_type=class_type,
        )
        with self.schedules.locked(city_id):
            schedule = self.schedules.load(city_id)
            self._check_fixed_conflict(schedule, fixed)
            schedule.fixed_classes.append(fixed)
            schedule.fixed_classes.sort(key=lambda f: (f.weekday, f.start_time))
            self.schedules.save(schedule)

        log.info(
            "fixed_class_added",
            city_id=city_id,
            class_id=fixed.id,
            weekday=weekday,
            start_time=start_time,
        )
        self._broadcast(
            city_id,
            "Nova Aula Cadastrada",
            f"{class_type} às {start_time} toda {WEEKDAY_NAMES[weekday]}",
        )
        return fixed

    def update_fixed_class(
        self,
        city_id: str,
        class_id: str,
        *,
        weekday: int | None = None,
        start_time: str | None = None,
        duration_minutes: int | None = None,
        class_type: str | None = None,
    ) -> FixedClass:
        """Edit a weekly class; fields left as None keep their value.

        Raises:
            NotFoundError: If ``class_id`` does not exist in the city.
            ConflictError: If the edited slot overlaps another fixed class.
        """
        changes = {
            key: value
            for key, value in {
                "weekday": weekday,
                "start_time": start_time,
                "duration_minutes": duration_minutes,
                "class_type": class_type,
            }.items()
            if value is not None
        }
        with self.schedules.locked(city_id):
            schedule = self.schedules.load(city_id)
            index = self._index_of(schedule.fixed_classes, class_id)
            current = schedule.fixed_classes[index]
            updated = FixedClass.model_validate({**current.model_dump(), **changes})
            self._check_fixed_conflict(schedule, updated, exclude_id=class_id)
            schedule.fixed_classes[index] = updated
            schedule.fixed_classes.sort(key=lambda f: (f.weekday, f.start_time))
            self.schedules.save(schedule)

        log.info("fixed_class_updated", city_id=city_id, class_id=class_id, **changes)
        self._broadcast(
            city_id,
            "Horário de Aula Alterado",
            f"{updated.class_type} agora é às {updated.start_time} "
            f"toda {WEEKDAY_NAMES[updated.weekday]}",
        )
        return updated

    def delete_fixed_class(self, city_id: str, class_id: str) -> None:
        with self.schedules.locked(city_id):
            schedule = self.schedules.load(city_id)
            index = self._index_of(schedule.fixed_classes, class_id)
            removed = schedule.fixed_classes.pop(index)
            self.schedules.save(schedule)

        log.info("fixed_class_deleted", city_id=city_id, class_id=class_id)
        self._broadcast(
            city_id,
            "Aula Removida",
            f"Aula de {WEEKDAY_NAMES[removed.weekday]} às {removed.start_time} foi removida",
        )

    # ------------------------------------------------------------------
    # Flexible classes
    # ------------------------------------------------------------------
    def add_flexible_class(
        self,
        city_id: str,
        day: date | str,
        start_time: str,
        duration_minutes: int,
        class_type: str,
    ) -> FlexibleClass:
        """Add a one-off class.

        Raises:
            PastDateError: If ``day`` is before today.
            ConflictError: If it overlaps a flexible class on the same date or
                a fixed class on the same weekday. A fixed class starting at
                exactly ``start_time`` is not a conflict: the flexible class
                takes its place on that date. The portal's admin screen
                rejected this case; the replacement is deliberate here.
        """
        day = as_date(day)
        self._reject_past(day, "schedule")
        flexible = FlexibleClass(
            id=_new_id(day.isoformat(), start_time),
            city_id=city_id,
            date=day,
            start_time=start_time,
            duration_minutes=duration_minutes,
            class_type=class_type,
        )
        with self.schedules.locked(city_id):
            schedule = self.schedules.load(city_id)
            for other in schedule.flexible_classes:
                if other.date == day and slots_overlap(
                    start_time, duration_minutes, other.start_time, other.duration_minutes
                ):
                    raise ConflictError(
                        f"Overlaps flexible class {other.id} ({other.start_time}) on {day}"
                    )
            weekday = weekday_of(day)
            for fixed in schedule.fixed_classes:
                # Same start time replaces the weekly class on that date
                if fixed.start_time == start_time:
                    continue
                if fixed.weekday == weekday and slots_overlap(
                    start_time, duration_minutes, fixed.start_time, fixed.duration_minutes
                ):
                    raise ConflictError(
                        f"Overlaps fixed class {fixed.id} ({fixed.start_time}) on {day}"
                    )
            schedule.flexible_classes.append(flexible)
            schedule.flexible_classes.sort(key=lambda f: (f.date, f.start_time))
            self.schedules.save(schedule)

        log.info(
            "flexible_class_added",
            city_id=city_id,
            class_id=flexible.id,
            date=day.isoformat(),
            start_time=start_time,
        )
        self._broadcast(
            city_id,
            "Aula Especial Agendada",
            f"{class_type} em {format_date_br(day)} às {start_time}",
        )
        return flexible

    def delete_flexible_class(self, city_id: str, class_id: str) -> None:
        with self.schedules.locked(city_id):
            schedule = self.schedules.load(city_id)
            index = self._index_of(schedule.flexible_classes, class_id)
            removed = schedule.flexible_classes.pop(index)
            self.schedules.save(schedule)

        log.info("flexible_class_deleted", city_id=city_id, class_id=class_id)
        self._broadcast(
            city_id,
            "Aula Especial Removida",
            f"Aula do dia {format_date_br(removed.date)} às {removed.start_time} foi removida",
        )

    # ------------------------------------------------------------------
    # Cancellations
    # ------------------------------------------------------------------
    def add_cancellation(
        self, city_id: str, day: date | str, reason: str | None = None
    ) -> Cancellation:
        """Cancel every class of the city on ``day``.

        Raises:
            PastDateError: If ``day`` is before today.
            EmptyDayError: If no class is scheduled on ``day``.
            ConflictError: If ``day`` is already cancelled.
        """
        day = as_date(day)
        self._reject_past(day, "cancel")
        reason = (reason or "").strip() or None
        with self.schedules.locked(city_id):
            schedule = self.schedules.load(city_id)
            if not has_class_on(schedule, day):
                raise EmptyDayError(f"No class scheduled on {day} in {city_id}")
            if schedule.cancellation_on(day) is not None:
                raise ConflictError(f"{day} is already cancelled in {city_id}")
            cancellation = Cancellation(
                id=_new_id(day.isoformat()), city_id=city_id, date=day, reason=reason
            )
            schedule.cancellations.append(cancellation)
            schedule.cancellations.sort(key=lambda c: c.date)
            self.schedules.save(schedule)

        log.info("day_cancelled", city_id=city_id, date=day.isoformat(), reason=reason)
        suffix = f" - {reason}" if reason else ""
        self._broadcast(
            city_id,
            "Aula Cancelada",
            f"Aula do dia {format_date_br(day)} foi cancelada{suffix}",
        )
        return cancellation

    def delete_cancellation(self, city_id: str, cancellation_id: str) -> None:
        """Restore a cancelled day."""
        with self.schedules.locked(city_id):
            schedule = self.schedules.load(city_id)
            index = self._index_of(schedule.cancellations, cancellation_id)
            removed = schedule.cancellations.pop(index)
            self.schedules.save(schedule)

        log.info("day_restored", city_id=city_id, date=removed.date.isoformat())
        self._broadcast(
            city_id,
            "Aula Restabelecida",
            f"Aula do dia {format_date_br(removed.date)} foi restabelecida",
        )

    # ------------------------------------------------------------------
    # Class types
    # ------------------------------------------------------------------
    def list_class_types(self, city_id: str) -> list[str]:
        return [*DEFAULT_CLASS_TYPES, *self.schedules.load(city_id).class_types]

    def add_class_type(self, city_id: str, name: str) -> str:
        """Register a custom class type for the city.

        Raises:
            ValueError: If the name is blank.
            ConflictError: If the type already exists (default or custom).
        """
        name = name.strip()
        if not name:
            raise ValueError("Class type name must not be blank")
        with self.schedules.locked(city_id):
            schedule = self.schedules.load(city_id)
            if name in DEFAULT_CLASS_TYPES or name in schedule.class_types:
                raise ConflictError(f"Class type {name!r} already exists")
            schedule.class_types.append(name)
            self.schedules.save(schedule)
        log.info("class_type_added", city_id=city_id, name=name)
        return name

    # ------------------------------------------------------------------
    # Calendar views
    # ------------------------------------------------------------------
    def day_status(self, city_id: str, day: date | str) -> DayStatus:
        return day_status_of(self.schedules.load(city_id), as_date(day))

    def month_calendar(self, city_id: str, year: int, month: int) -> list[CalendarDay]:
        schedule = self.schedules.load(city_id)
        first, last = month_bounds(year, month)
        return [
            CalendarDay(date=day, weekday=weekday_of(day), status=day_status_of(schedule, day))
            for day in iter_dates(first, last)
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _reject_past(self, day: date, action: str) -> None:
        today = self.today()
        if day < today:
            raise PastDateError(f"Cannot {action} {day}: date is before {today}")

    @staticmethod
    def _index_of(items: list, item_id: str) -> int:
        for index, item in enumerate(items):
            if item.id == item_id:
                return index
        raise NotFoundError(f"{item_id!r} not found")

    @staticmethod
    def _check_fixed_conflict(
        schedule: CitySchedule, candidate: FixedClass, exclude_id: str | None = None
    ) -> None:
        for other in schedule.fixed_classes:
            if other.id == exclude_id or other.weekday != candidate.weekday:
                continue
            if slots_overlap(
                candidate.start_time,
                candidate.duration_minutes,
                other.start_time,
                other.duration_minutes,
            ):
                raise ConflictError(
                    f"Overlaps fixed class {other.id} "
                    f"({WEEKDAY_NAMES[other.weekday]} {other.start_time})"
                )

    def _broadcast(self, city_id: str, title: str, body: str) -> None:
        try:
            self.notifier.notify_city(city_id, title, body)
        except Exception as e:
            # Delivery is best-effort; the schedule change is already committed
            log.warning("broadcast_failed", city_id=city_id, title=title, error=str(e))
