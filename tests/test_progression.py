"""Tests for the progression engine and belt-change achievements."""

import pytest

from src.dojo.errors import NotFoundError
from src.dojo.models import Student
from src.dojo.progression import (
    DEFAULT_BELTS,
    Achievement,
    BeltCatalog,
    ProgressionEngine,
    RuleKind,
)

CITY = "Springfield"


@pytest.fixture
def engine():
    return ProgressionEngine()


@pytest.fixture
def white_belt(services):
    return services.students.upsert(Student(id="w1", name="Gabi", city_id=CITY))


class TestBeltCatalog:
    def test_index_is_case_insensitive(self):
        assert DEFAULT_BELTS.index_of("branca") == 0
        assert DEFAULT_BELTS.index_of(" PRETA ") == len(DEFAULT_BELTS.belts) - 1

    @pytest.mark.parametrize("belt", [None, "", "Rosa"])
    def test_unknown_belt(self, belt):
        assert DEFAULT_BELTS.index_of(belt) == -1

    def test_canonical(self):
        assert DEFAULT_BELTS.canonical("verde") == "Verde"
        assert DEFAULT_BELTS.canonical("Rosa") is None


class TestEvaluate:
    def test_new_student(self, engine):
        assert engine.evaluate("s", "Branca", 0) == frozenset()

    def test_first_class(self, engine):
        assert engine.evaluate("s", "Branca", 1) == {"first-class"}

    def test_higher_belt_unlocks_lower_ones(self, engine):
        unlocked = engine.evaluate("s", "Verde", 0)
        assert {"yellow-belt", "orange-belt", "green-belt", "first-exam"} <= unlocked
        assert "blue-belt" not in unlocked

    def test_class_thresholds(self, engine):
        unlocked = engine.evaluate("s", "Branca", 50)
        assert {"first-class", "10-classes", "50-classes"} <= unlocked
        assert "100-classes" not in unlocked

    def test_unknown_belt_unlocks_no_belt_achievement(self, engine):
        assert engine.evaluate("s", "Rosa", 0) == frozenset()

    def test_newly_unlocked_is_a_set_difference(self, engine):
        before = engine.evaluate("s", "Branca", 9)
        after = engine.evaluate("s", "Branca", 10)
        assert engine.newly_unlocked(after, before) == {"10-classes"}
        assert engine.newly_unlocked(before, after) == frozenset()

    def test_injected_catalog(self):
        belts = BeltCatalog(belts=("Branca", "Cinza"))
        catalog = (
            Achievement(
                id="grey",
                name="Cinza",
                description="",
                message="",
                kind=RuleKind.BELT_REACHED,
                belt="Cinza",
            ),
        )
        engine = ProgressionEngine(catalog, belts)

        assert engine.evaluate("s", "Cinza", 0) == {"grey"}
        assert engine.is_promotion("Branca", "Cinza")


def test_is_promotion(engine):
    assert engine.is_promotion("Branca", "Amarela")
    assert not engine.is_promotion("Amarela", "Amarela")
    assert not engine.is_promotion("Verde", "Amarela")


def test_milestone_progress(engine):
    progress = {p.achievement_id: p for p in engine.milestone_progress(25)}

    assert progress["first-class"].percentage == 100
    assert progress["first-class"].remaining == 0
    assert progress["50-classes"].percentage == 50
    assert progress["50-classes"].remaining == 25
    assert progress["100-classes"].percentage == 25


class TestBeltChange:
    def test_promotion_fires_once(self, services, white_belt, notifier):
        change = services.achievements.change_belt("w1", "Amarela")

        assert change.promoted
        assert change.previous_belt == "Branca"
        assert change.unlocked == ["first-exam", "yellow-belt"]
        titles = [m[1] for m in notifier.student_messages]
        assert "🥋 Parabéns pela Faixa Amarela!" in titles
        assert "🏆 Nova Conquista: Primeiro Exame" in titles
        assert notifier.student_messages[0][3].startswith(
            "https://portal.example.com/aluno/perfil?conquista="
        )

        services.achievements.change_belt("w1", "Branca")
        again = services.achievements.change_belt("w1", "Amarela")

        assert again.promoted
        assert again.unlocked == []
        assert len(notifier.student_messages) == 2

    def test_downgrade_never_notifies(self, services, notifier):
        services.students.upsert(
            Student(id="b1", name="Hugo", city_id=CITY, current_belt="Preta")
        )

        change = services.achievements.change_belt("b1", "Verde")

        assert not change.promoted
        assert change.current_belt == "Verde"
        # Ledger backfilled without announcing
        assert "green-belt" in services.achievements.ledger.unlocked("b1")
        assert notifier.student_messages == []

    def test_same_belt_never_notifies(self, services, white_belt, notifier):
        change = services.achievements.change_belt("w1", "branca")

        assert not change.promoted
        assert change.current_belt == "Branca"
        assert notifier.student_messages == []

    def test_belt_is_stored(self, services, white_belt):
        services.achievements.change_belt("w1", "laranja")
        assert services.students.get("w1").current_belt == "Laranja"

    def test_unknown_belt(self, services, white_belt):
        with pytest.raises(ValueError):
            services.achievements.change_belt("w1", "Rosa")
        assert services.students.get("w1").current_belt == "Branca"

    def test_unknown_student(self, services):
        with pytest.raises(NotFoundError):
            services.achievements.change_belt("ghost", "Amarela")

    def test_notification_failure_keeps_the_belt(self, services, white_belt, notifier):
        notifier.fail = True

        change = services.achievements.change_belt("w1", "Amarela")

        assert change.unlocked == ["first-exam", "yellow-belt"]
        assert services.students.get("w1").current_belt == "Amarela"


def test_statuses(services, white_belt, clock):
    services.achievements.change_belt("w1", "Amarela")

    statuses = {s.id: s for s in services.achievements.statuses("w1")}

    assert list(statuses)[0] == "first-class"
    assert statuses["yellow-belt"].unlocked
    assert statuses["yellow-belt"].unlocked_at == clock()
    assert not statuses["first-class"].unlocked
    assert statuses["first-class"].unlocked_at is None
