"""Automatic bonus reconciliation."""

from datetime import timedelta
from decimal import Decimal

from dispatch_payroll.core.errors import PersistenceError
from dispatch_payroll.data.models import Bonus, BonusType
from dispatch_payroll.data.repository import InMemoryRepository
from dispatch_payroll.payroll.reconciler import AutomaticBonusReconciler
from tests.conftest import TODAY, WEEK_START, make_load


def _automatic(repository, week=WEEK_START):
    return {b.driver_id: b for b in repository.list_automatic_bonuses(week)}


def _manual(bonus_id, driver_id, amount, week=WEEK_START):
    return Bonus(
        bonus_id=bonus_id,
        driver_id=driver_id,
        bonus_type=BonusType.MANUAL,
        amount=Decimal(str(amount)),
        week_start=week,
        date=week,
        note="Safety award",
    )


def test_creates_bonus_for_eligible_company_driver_only(repository, reconciler, drivers):
    # Same 11000 gross: company driver earns 50, owner-operator is below 13000.
    loads = [make_load("L1", 11000, driver_id="d1"), make_load("L2", 11000, driver_id="d2")]

    result = reconciler.reconcile(loads, drivers, WEEK_START)

    automatic = _automatic(repository)
    assert set(automatic) == {"d1"}
    bonus = automatic["d1"]
    assert bonus.amount == Decimal("50")
    assert bonus.week_start == WEEK_START
    assert bonus.date == TODAY
    assert bonus.note == "Auto: $11,000.00 gross (Company driver)"
    assert result.created == ["d1"]


def test_second_pass_is_a_no_op(repository, reconciler, drivers):
    loads = [make_load("L1", 12500, driver_id="d1"), make_load("L2", 14000, driver_id="d2")]

    reconciler.reconcile(loads, drivers, WEEK_START)
    first = sorted(repository.list_bonuses(), key=lambda b: b.bonus_id)

    second_result = reconciler.reconcile(loads, drivers, WEEK_START)
    second = sorted(repository.list_bonuses(), key=lambda b: b.bonus_id)

    assert not second_result.changed
    assert sorted(second_result.unchanged) == ["d1", "d2"]
    assert [b.model_dump() for b in first] == [b.model_dump() for b in second]


def test_amount_change_updates_in_place(repository, reconciler, drivers):
    reconciler.reconcile([make_load("L1", 10000, driver_id="d1")], drivers, WEEK_START)
    original = _automatic(repository)["d1"]

    result = reconciler.reconcile(
        [make_load("L1", 10000, driver_id="d1"), make_load("L2", 3000, driver_id="d1")],
        drivers,
        WEEK_START,
    )

    updated = _automatic(repository)["d1"]
    assert result.updated == ["d1"]
    assert updated.bonus_id == original.bonus_id
    assert updated.amount == Decimal("90")
    assert updated.note == "Auto: $13,000.00 gross (Company driver)"


def test_losing_eligibility_deletes_automatic_but_keeps_manual(repository, reconciler, drivers):
    repository.insert_bonus(_manual("m1", "d1", 200))
    reconciler.reconcile([make_load("L1", 10500, driver_id="d1")], drivers, WEEK_START)
    assert "d1" in _automatic(repository)

    result = reconciler.reconcile([], drivers, WEEK_START)

    assert _automatic(repository) == {}
    assert len(result.deleted) == 1
    remaining = repository.list_bonuses()
    assert [b.bonus_id for b in remaining] == ["m1"]
    assert remaining[0].amount == Decimal("200")


def test_other_weeks_are_untouched(repository, reconciler, drivers):
    last_week = WEEK_START - timedelta(days=7)
    repository.insert_bonus(
        Bonus(
            bonus_id="old",
            driver_id="d1",
            bonus_type=BonusType.AUTOMATIC,
            amount=Decimal("30"),
            week_start=last_week,
            date=last_week,
        )
    )

    reconciler.reconcile([], drivers, WEEK_START)

    assert [b.bonus_id for b in repository.list_automatic_bonuses(last_week)] == ["old"]


def test_uses_calendar_week_of_period_start(repository, reconciler, drivers):
    # Period starts mid-week; the load on Monday still counts, the one a
    # week later does not.
    loads = [
        make_load("L1", 10000, driver_id="d1", pickup=WEEK_START),
        make_load("L2", 5000, driver_id="d1", pickup=WEEK_START + timedelta(days=7)),
    ]

    result = reconciler.reconcile(loads, drivers, WEEK_START + timedelta(days=3))

    assert result.week_start == WEEK_START
    assert _automatic(repository)["d1"].amount == Decimal("30")


def test_inactive_driver_gets_no_bonus(repository, reconciler, drivers):
    reconciler.reconcile([make_load("L1", 15000, driver_id="d5")], drivers, WEEK_START)
    assert _automatic(repository) == {}


def test_duplicate_rows_collapse_to_one(drivers):
    dupes = [
        Bonus(
            bonus_id=f"a{i}",
            driver_id="d1",
            bonus_type=BonusType.AUTOMATIC,
            amount=Decimal("30"),
            week_start=WEEK_START,
            date=WEEK_START,
        )
        for i in range(2)
    ]
    # Seeded directly: the store's uniqueness check only guards inserts.
    repository = InMemoryRepository(drivers=drivers, bonuses=dupes)
    reconciler = AutomaticBonusReconciler(repository, clock=lambda: TODAY)

    result = reconciler.reconcile([make_load("L1", 10000, driver_id="d1")], drivers, WEEK_START)

    assert len(repository.list_automatic_bonuses(WEEK_START)) == 1
    assert len(result.deleted) == 1
    assert result.unchanged == ["d1"]


class FlakyRepository(InMemoryRepository):
    """Fails every insert for one driver."""

    def __init__(self, failing_driver: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.failing_driver = failing_driver

    def insert_bonus(self, bonus: Bonus) -> Bonus:
        if bonus.driver_id == self.failing_driver:
            raise PersistenceError("insert", "bonus", "connection reset")
        return super().insert_bonus(bonus)


def test_one_driver_failure_does_not_block_others(drivers):
    repository = FlakyRepository("d1", drivers=drivers)
    reconciler = AutomaticBonusReconciler(repository, clock=lambda: TODAY)
    loads = [make_load("L1", 10000, driver_id="d1"), make_load("L2", 10000, driver_id="d3")]

    result = reconciler.reconcile(loads, drivers, WEEK_START)

    assert set(_automatic(repository)) == {"d3"}
    assert result.created == ["d3"]
    assert len(result.failures) == 1
    failure = result.failures[0]
    assert (failure.driver_id, failure.operation) == ("d1", "create")
