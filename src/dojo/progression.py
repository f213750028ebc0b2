"""Progression engine - milestone achievements from attendance and belt rank.

Whether an achievement is unlocked is a pure function of the student's
current belt and ``classes_attended`` (ProgressionEngine.evaluate). What has
already been *announced* lives in the AchievementLedger: a newly unlocked
achievement is inserted once, notified once, and never revoked, even if the
attendance counter later drops back below the threshold.
"""

from collections.abc import Callable
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

from src.dojo.logging import get_logger
from src.dojo.notifications import Notifier
from src.dojo.storage import AchievementLedger, StudentDirectory

log = get_logger(__name__)


class BeltCatalog(BaseModel):
    """Ordered belt ranks, lowest first."""

    model_config = ConfigDict(frozen=True)

    belts: tuple[str, ...]

    def index_of(self, belt: str | None) -> int:
        """Rank index (case-insensitive), -1 for unknown or missing belts."""
        if not belt:
            return -1
        wanted = belt.strip().lower()
        for index, name in enumerate(self.belts):
            if name.lower() == wanted:
                return index
        return -1

    def canonical(self, belt: str) -> str | None:
        index = self.index_of(belt)
        return self.belts[index] if index >= 0 else None


DEFAULT_BELTS = BeltCatalog(
    belts=(
        "Branca",
        "Amarela",
        "Vermelha",
        "Laranja",
        "Verde",
        "Azul",
        "Roxa",
        "Marrom",
        "Preta",
    )
)


class RuleKind(str, Enum):
    BELT_REACHED = "belt_reached"
    CLASS_COUNT = "class_count"
    FIRST_EXAM = "first_exam"


class Achievement(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    message: str  # body of the push notification
    kind: RuleKind
    belt: str | None = None  # BELT_REACHED target
    threshold: int | None = None  # CLASS_COUNT target


def _belt(achievement_id: str, belt: str) -> Achievement:
    return Achievement(
        id=achievement_id,
        name=f"Faixa {belt}",
        description=f"Conquistou a faixa {belt.lower()}",
        message=f"Você conquistou a faixa {belt}! Toque para ver sua conquista.",
        kind=RuleKind.BELT_REACHED,
        belt=belt,
    )


def _classes(achievement_id: str, name: str, threshold: int, message: str) -> Achievement:
    return Achievement(
        id=achievement_id,
        name=name,
        description=(
            "Participou da primeira aula" if threshold == 1 else f"Completou {threshold} aulas"
        ),
        message=message,
        kind=RuleKind.CLASS_COUNT,
        threshold=threshold,
    )


ACHIEVEMENTS: tuple[Achievement, ...] = (
    _classes("first-class", "Primeira Aula", 1, "Você participou da sua primeira aula! 🥋"),
    _belt("yellow-belt", "Amarela"),
    _belt("orange-belt", "Laranja"),
    _belt("green-belt", "Verde"),
    _belt("blue-belt", "Azul"),
    _belt("purple-belt", "Roxa"),
    _belt("brown-belt", "Marrom"),
    _belt("black-belt", "Preta"),
    _classes("10-classes", "Dedicação", 10, "Você completou 10 aulas! Continue assim! 💪"),
    _classes("50-classes", "Comprometido", 50, "Incrível! Você completou 50 aulas! 🔥"),
    _classes("100-classes", "Guerreiro", 100, "Lendário! Você completou 100 aulas! 🏆"),
    Achievement(
        id="first-exam",
        name="Primeiro Exame",
        description="Passou no primeiro exame de faixa",
        message="Você foi aprovado no seu primeiro exame de faixa!",
        kind=RuleKind.FIRST_EXAM,
    ),
)


class MilestoneProgress(BaseModel):
    achievement_id: str
    target: int
    current: int
    percentage: int  # capped at 100
    remaining: int


class AchievementStatus(BaseModel):
    """One catalog entry as seen on a student's profile."""

    id: str
    name: str
    description: str
    unlocked: bool
    unlocked_at: datetime | None = None


class ProgressionEngine:
    """Evaluates the achievement catalog against a student's current state."""

    def __init__(
        self,
        catalog: tuple[Achievement, ...] = ACHIEVEMENTS,
        belts: BeltCatalog = DEFAULT_BELTS,
    ) -> None:
        self.catalog = catalog
        self.belts = belts
        self._by_id = {a.id: a for a in catalog}

    def get(self, achievement_id: str) -> Achievement:
        return self._by_id[achievement_id]

    def is_unlocked(self, achievement: Achievement, belt_index: int, classes_attended: int) -> bool:
        if achievement.kind is RuleKind.CLASS_COUNT:
            return classes_attended >= (achievement.threshold or 0)
        if achievement.kind is RuleKind.FIRST_EXAM:
            return belt_index > 0
        target = self.belts.index_of(achievement.belt)
        # A belt missing from the catalog can never be reached
        return target >= 0 and belt_index >= target

    def evaluate(
        self, student_id: str, current_belt: str | None, classes_attended: int
    ) -> frozenset[str]:
        """Ids of every achievement the given state satisfies."""
        belt_index = self.belts.index_of(current_belt)
        unlocked = frozenset(
            a.id for a in self.catalog if self.is_unlocked(a, belt_index, classes_attended)
        )
        log.debug(
            "achievements_evaluated",
            student_id=student_id,
            belt=current_belt,
            classes_attended=classes_attended,
            unlocked=sorted(unlocked),
        )
        return unlocked

    def evaluate_class_milestones(self, classes_attended: int) -> frozenset[str]:
        return frozenset(
            a.id
            for a in self.catalog
            if a.kind is RuleKind.CLASS_COUNT and classes_attended >= (a.threshold or 0)
        )

    @staticmethod
    def newly_unlocked(current: frozenset[str], known: frozenset[str]) -> frozenset[str]:
        return current - known

    def is_promotion(self, old_belt: str | None, new_belt: str | None) -> bool:
        return self.belts.index_of(new_belt) > self.belts.index_of(old_belt)

    def belt_achievement(self, belt: str | None) -> Achievement | None:
        canonical = self.belts.canonical(belt or "")
        for achievement in self.catalog:
            if achievement.kind is RuleKind.BELT_REACHED and achievement.belt == canonical:
                return achievement
        return None

    def milestone_progress(self, classes_attended: int) -> list[MilestoneProgress]:
        progress = []
        for achievement in self.catalog:
            if achievement.kind is not RuleKind.CLASS_COUNT:
                continue
            target = achievement.threshold or 1
            progress.append(
                MilestoneProgress(
                    achievement_id=achievement.id,
                    target=target,
                    current=classes_attended,
                    percentage=round(min(classes_attended / target * 100, 100)),
                    remaining=max(target - classes_attended, 0),
                )
            )
        return progress


class BeltChange(BaseModel):
    student_id: str
    previous_belt: str
    current_belt: str
    promoted: bool
    unlocked: list[str]


class AchievementTracker:
    """Records newly unlocked achievements in the ledger and tells the student."""

    def __init__(
        self,
        engine: ProgressionEngine,
        ledger: AchievementLedger,
        students: StudentDirectory,
        notifier: Notifier,
        *,
        portal_url: str,
        clock: Callable[[], datetime],
    ) -> None:
        self.engine = engine
        self.ledger = ledger
        self.students = students
        self.notifier = notifier
        self.portal_url = portal_url.rstrip("/")
        self._clock = clock

    def deep_link(self, achievement_id: str) -> str:
        return f"{self.portal_url}/aluno/perfil?conquista={achievement_id}"

    def on_attendance(self, student_id: str, classes_attended: int) -> list[str]:
        """Record and announce class-count milestones crossed at this count."""
        candidates = self.engine.evaluate_class_milestones(classes_attended)
        inserted = self.ledger.record(student_id, candidates, self._clock())
        for achievement_id in inserted:
            achievement = self.engine.get(achievement_id)
            self._notify(
                student_id,
                f"🏆 Nova Conquista: {achievement.name}",
                achievement.message,
                achievement_id,
            )
        return inserted

    def change_belt(self, student_id: str, new_belt: str) -> BeltChange:
        """Store a new belt and announce a genuine promotion.

        Raises:
            ValueError: If ``new_belt`` is not in the belt catalog.
            NotFoundError: If the student does not exist.
        """
        canonical = self.engine.belts.canonical(new_belt)
        if canonical is None:
            raise ValueError(f"Unknown belt {new_belt!r}")

        previous, student = self.students.set_belt(student_id, canonical)
        promoted = self.engine.is_promotion(previous, canonical)
        evaluated = self.engine.evaluate(student_id, canonical, student.classes_attended)
        inserted = self.ledger.record(student_id, evaluated, self._clock())

        log.info(
            "belt_changed",
            student_id=student_id,
            previous=previous,
            current=canonical,
            promoted=promoted,
            unlocked=inserted,
        )

        # Same-or-lower edits only backfill the ledger; they never notify.
        if promoted:
            belt_achievement = self.engine.belt_achievement(canonical)
            for achievement_id in inserted:
                achievement = self.engine.get(achievement_id)
                if belt_achievement is not None and achievement_id == belt_achievement.id:
                    self._notify(
                        student_id,
                        f"🥋 Parabéns pela Faixa {canonical}!",
                        achievement.message,
                        achievement_id,
                    )
                else:
                    self._notify(
                        student_id,
                        f"🏆 Nova Conquista: {achievement.name}",
                        achievement.message,
                        achievement_id,
                    )

        return BeltChange(
            student_id=student_id,
            previous_belt=previous,
            current_belt=canonical,
            promoted=promoted,
            unlocked=inserted,
        )

    def statuses(self, student_id: str) -> list[AchievementStatus]:
        """Catalog order, unlocked if derivable now or already in the ledger."""
        student = self.students.get(student_id)
        derived = self.engine.evaluate(student_id, student.current_belt, student.classes_attended)
        recorded = {e.achievement_id: e.unlocked_at for e in self.ledger.entries(student_id)}
        return [
            AchievementStatus(
                id=a.id,
                name=a.name,
                description=a.description,
                unlocked=a.id in derived or a.id in recorded,
                unlocked_at=recorded.get(a.id),
            )
            for a in self.engine.catalog
        ]

    def _notify(self, student_id: str, title: str, body: str, achievement_id: str) -> None:
        try:
            self.notifier.notify_student(
                student_id, title, body, deep_link=self.deep_link(achievement_id)
            )
        except Exception as e:
            log.warning(
                "achievement_notification_failed",
                student_id=student_id,
                achievement_id=achievement_id,
                error=str(e),
            )
