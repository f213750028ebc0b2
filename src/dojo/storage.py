"""JSON document persistence for schedules, attendance, students and achievements.

Layout under the configured data directory:

    schedules/<city>.json     CitySchedule document
    attendance/<city>.json    {session_key: AttendanceRecord}
    students.json             {student_id: Student}
    achievements.json         {student_id: [AchievementUnlock, ...]}

Every document is rewritten whole through a temp file + os.replace, so a
reader never sees a half-written file. Writers for the same document are
serialised with a re-entrant lock per key; callers hold ``locked()`` across
a check-then-write so validation and write see the same state.
"""

import json
import os
import tempfile
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import quote

from src.dojo.errors import NotFoundError
from src.dojo.logging import get_logger
from src.dojo.models import AchievementUnlock, AttendanceRecord, CitySchedule, Student

logger = get_logger(__name__)


class KeyedLocks:
    """Lazily created re-entrant locks, one per key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def get(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock


class JsonDocumentStore:
    """Reads and atomically writes JSON documents below a root directory."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.locks = KeyedLocks()

    def path_for(self, *parts: str) -> Path:
        return self.root.joinpath(*parts)

    def read(self, *parts: str) -> Any | None:
        """Parsed JSON, or None if the document does not exist yet."""
        path = self.path_for(*parts)
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    def write(self, payload: Any, *parts: str) -> Path:
        path = self.path_for(*parts)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("document_written", path=str(path))
        return path

    @contextmanager
    def locked(self, key: str) -> Iterator[None]:
        with self.locks.get(key):
            yield


def _filename(city_id: str) -> str:
    # City ids are display names ("São José"); keep them filesystem safe.
    return f"{quote(city_id, safe='')}.json"


class ScheduleRepository:
    """Per-city CitySchedule documents."""

    def __init__(self, store: JsonDocumentStore) -> None:
        self.store = store

    def locked(self, city_id: str):
        return self.store.locked(f"schedule:{city_id}")

    def load(self, city_id: str) -> CitySchedule:
        data = self.store.read("schedules", _filename(city_id))
        if data is None:
            return CitySchedule(city_id=city_id)
        return CitySchedule.model_validate(data)

    def save(self, schedule: CitySchedule) -> None:
        self.store.write(
            schedule.model_dump(mode="json"), "schedules", _filename(schedule.city_id)
        )


class AttendanceRepository:
    """Per-city attendance records keyed by session key."""

    def __init__(self, store: JsonDocumentStore) -> None:
        self.store = store

    def locked(self, city_id: str):
        return self.store.locked(f"attendance:{city_id}")

    def _load_all(self, city_id: str) -> dict[str, Any]:
        return self.store.read("attendance", _filename(city_id)) or {}

    def get(self, city_id: str, key: str) -> AttendanceRecord | None:
        raw = self._load_all(city_id).get(key)
        if raw is None:
            return None
        return AttendanceRecord.model_validate(raw)

    def put(self, record: AttendanceRecord) -> None:
        with self.locked(record.city_id):
            records = self._load_all(record.city_id)
            records[record.session_key] = record.model_dump(mode="json")
            self.store.write(records, "attendance", _filename(record.city_id))

    def list(self, city_id: str) -> list[AttendanceRecord]:
        return [
            AttendanceRecord.model_validate(raw)
            for raw in self._load_all(city_id).values()
        ]


class StudentDirectory:
    """Student profiles: city, belt and the attended-classes counter."""

    DOCUMENT = "students.json"

    def __init__(self, store: JsonDocumentStore) -> None:
        self.store = store

    def locked(self):
        return self.store.locked("students")

    def _load_all(self) -> dict[str, Any]:
        return self.store.read(self.DOCUMENT) or {}

    def get(self, student_id: str) -> Student:
        raw = self._load_all().get(student_id)
        if raw is None:
            raise NotFoundError(f"Student {student_id!r} not found")
        return Student.model_validate(raw)

    def exists(self, student_id: str) -> bool:
        return student_id in self._load_all()

    def list_by_city(self, city_id: str) -> list[Student]:
        students = [Student.model_validate(raw) for raw in self._load_all().values()]
        return [s for s in students if s.city_id == city_id]

    def upsert(self, student: Student) -> Student:
        with self.locked():
            students = self._load_all()
            students[student.id] = student.model_dump(mode="json")
            self.store.write(students, self.DOCUMENT)
        return student

    def add_to_attended(self, student_id: str, delta: int) -> int:
        """Atomically add ``delta`` to ``classes_attended``; returns the new value.

        The counter never goes below zero.
        """
        with self.locked():
            students = self._load_all()
            raw = students.get(student_id)
            if raw is None:
                raise NotFoundError(f"Student {student_id!r} not found")
            student = Student.model_validate(raw)
            new_value = student.classes_attended + delta
            if new_value < 0:
                logger.warning(
                    "attendance_counter_clamped",
                    student_id=student_id,
                    value=new_value,
                )
                new_value = 0
            student.classes_attended = new_value
            students[student_id] = student.model_dump(mode="json")
            self.store.write(students, self.DOCUMENT)
        return new_value

    def set_belt(self, student_id: str, belt: str) -> tuple[str, Student]:
        """Store a new belt; returns (previous belt, updated student)."""
        with self.locked():
            students = self._load_all()
            raw = students.get(student_id)
            if raw is None:
                raise NotFoundError(f"Student {student_id!r} not found")
            student = Student.model_validate(raw)
            previous = student.current_belt
            student.current_belt = belt
            students[student_id] = student.model_dump(mode="json")
            self.store.write(students, self.DOCUMENT)
        return previous, student


class AchievementLedger:
    """Durable record of unlocked achievements (insert-if-absent)."""

    DOCUMENT = "achievements.json"

    def __init__(self, store: JsonDocumentStore) -> None:
        self.store = store

    def _load_all(self) -> dict[str, list[dict[str, Any]]]:
        return self.store.read(self.DOCUMENT) or {}

    def entries(self, student_id: str) -> list[AchievementUnlock]:
        return [
            AchievementUnlock.model_validate(raw)
            for raw in self._load_all().get(student_id, [])
        ]

    def unlocked(self, student_id: str) -> frozenset[str]:
        return frozenset(e.achievement_id for e in self.entries(student_id))

    def record(
        self, student_id: str, achievement_ids: set[str] | frozenset[str], at: datetime
    ) -> list[str]:
        """Insert the ids not yet in the ledger; returns the ones inserted."""
        with self.store.locked("achievements"):
            ledger = self._load_all()
            rows = ledger.setdefault(student_id, [])
            known = {row["achievement_id"] for row in rows}
            inserted = sorted(set(achievement_ids) - known)
            if not inserted:
                return []
            for achievement_id in inserted:
                unlock = AchievementUnlock(
                    student_id=student_id,
                    achievement_id=achievement_id,
                    unlocked_at=at,
                )
                rows.append(unlock.model_dump(mode="json"))
            self.store.write(ledger, self.DOCUMENT)
        logger.info("achievements_recorded", student_id=student_id, ids=inserted)
        return inserted
