"""DispatcherState: validation, mirrors and reconciliation triggers."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from dispatch_payroll.core.errors import (
    DuplicateLoadIdError,
    InvalidParentLoadError,
    MissingParentLoadError,
    NotFoundError,
    ParentLoadInUseError,
    PersistenceError,
    ValidationError,
)
from dispatch_payroll.data.models import BonusType, Driver, DriverType, Load, LoadType
from dispatch_payroll.data.repository import InMemoryRepository
from dispatch_payroll.payroll.periods import DateRange, week_of
from dispatch_payroll.services.state import DispatcherState
from tests.conftest import TODAY, WEEK_START, make_load


class RecordingRepository(InMemoryRepository):
    """Counts load inserts and can be told to fail them."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.load_inserts = 0
        self.fail_load_writes = False

    def insert_load(self, load: Load) -> Load:
        self.load_inserts += 1
        if self.fail_load_writes:
            raise PersistenceError("insert", "load", "timeout")
        return super().insert_load(load)

    def delete_load(self, load_id: str) -> None:
        if self.fail_load_writes:
            raise PersistenceError("delete", "load", "timeout")
        super().delete_load(load_id)


@pytest.fixture
def recording(drivers) -> RecordingRepository:
    return RecordingRepository(drivers=drivers)


@pytest.fixture
def recording_state(recording) -> DispatcherState:
    s = DispatcherState(recording, clock=lambda: TODAY)
    s.refresh()
    return s


def _automatic(state):
    return {b.driver_id: b for b in state.bonuses if b.bonus_type is BonusType.AUTOMATIC}


def test_initial_week_is_current_week(state):
    assert state.selected_week == week_of(TODAY)
    assert state.active_period.start == WEEK_START


def test_duplicate_load_id_rejected_before_store_call(recording_state, recording):
    recording_state.add_load(make_load("L100", 1000))
    assert recording.load_inserts == 1

    with pytest.raises(DuplicateLoadIdError):
        recording_state.add_load(make_load("L100", 2000))

    assert recording.load_inserts == 1
    assert len(recording_state.loads) == 1


def test_load_id_match_is_case_sensitive(state):
    state.add_load(make_load("L100", 1000))
    assert state.load_id_exists("L100")
    assert not state.load_id_exists("l100")
    state.add_load(make_load("l100", 1000))
    assert len(state.loads) == 2


def test_partial_requires_parent(recording_state, recording):
    with pytest.raises(MissingParentLoadError):
        recording_state.add_load(make_load("P1", 500, load_type=LoadType.PARTIAL))
    assert recording.load_inserts == 0


def test_partial_parent_must_be_existing_full_load(state):
    with pytest.raises(InvalidParentLoadError):
        state.add_load(make_load("P1", 500, load_type=LoadType.PARTIAL, parent_load_id="NOPE"))

    state.add_load(make_load("L1", 2000))
    state.add_load(make_load("P1", 500, load_type=LoadType.PARTIAL, parent_load_id="L1"))
    with pytest.raises(InvalidParentLoadError):
        state.add_load(make_load("P2", 500, load_type=LoadType.PARTIAL, parent_load_id="P1"))

    assert [l.load_id for l in state.full_loads()] == ["L1"]


def test_rename_checks_uniqueness(state):
    state.add_load(make_load("L1", 1000))
    state.add_load(make_load("L2", 1000))

    with pytest.raises(DuplicateLoadIdError):
        state.update_load("L2", {"load_id": "L1"})

    renamed = state.update_load("L2", {"load_id": "L3"})
    assert renamed.load_id == "L3"
    assert sorted(l.load_id for l in state.repository.list_loads()) == ["L1", "L3"]


def test_switching_to_full_with_parent_is_rejected(state):
    state.add_load(make_load("L1", 2000))
    state.add_load(make_load("P1", 500, load_type=LoadType.PARTIAL, parent_load_id="L1"))

    with pytest.raises(InvalidParentLoadError):
        state.update_load("P1", {"load_type": "FULL"})

    state.update_load("P1", {"load_type": "FULL", "parent_load_id": None})
    assert state.get_load("P1").load_type is LoadType.FULL


def test_renaming_full_load_carries_partial_loads(state):
    state.add_load(make_load("L1", 2000))
    state.add_load(make_load("P1", 500, load_type=LoadType.PARTIAL, parent_load_id="L1"))

    state.update_load("L1", {"load_id": "L1-A"})

    assert state.get_load("P1").parent_load_id == "L1-A"
    stored = {l.load_id: l for l in state.repository.list_loads()}
    assert stored["P1"].parent_load_id == "L1-A"

    edited = state.update_load("P1", {"rate": Decimal("600")})
    assert edited.rate == Decimal("600")
    assert edited.parent_load_id == "L1-A"


def test_full_load_with_partials_cannot_be_deleted(recording_state, recording):
    recording_state.add_load(make_load("L1", 2000))
    recording_state.add_load(make_load("P1", 500, load_type=LoadType.PARTIAL, parent_load_id="L1"))
    recording.fail_load_writes = True

    with pytest.raises(ParentLoadInUseError) as exc_info:
        recording_state.delete_load("L1")

    assert exc_info.value.child_ids == ["P1"]
    assert [l.load_id for l in recording_state.loads] == ["L1", "P1"]

    recording.fail_load_writes = False
    recording_state.delete_load("P1")
    recording_state.delete_load("L1")
    assert recording_state.loads == []


def test_full_load_with_partials_cannot_become_partial(state):
    state.add_load(make_load("L1", 2000))
    state.add_load(make_load("L2", 2000))
    state.add_load(make_load("P1", 500, load_type=LoadType.PARTIAL, parent_load_id="L1"))

    with pytest.raises(ParentLoadInUseError):
        state.update_load("L1", {"load_type": "PARTIAL", "parent_load_id": "L2"})

    assert state.get_load("L1").load_type is LoadType.FULL


def test_editing_orphaned_partial_leaves_parent_alone(drivers):
    orphan = make_load("P9", 500, load_type=LoadType.PARTIAL, parent_load_id="GONE")
    s = DispatcherState(InMemoryRepository(drivers=drivers, loads=[orphan]), clock=lambda: TODAY)
    s.refresh()

    edited = s.update_load("P9", {"rate": Decimal("650")})
    assert edited.rate == Decimal("650")

    with pytest.raises(InvalidParentLoadError):
        s.update_load("P9", {"parent_load_id": "STILL-GONE"})


def test_bad_field_values_raise_validation_error(state):
    state.add_load(make_load("L1", 2000))

    with pytest.raises(ValidationError):
        state.update_load("L1", {"load_type": "full"})
    with pytest.raises(ValidationError):
        state.update_load("L1", {"rate": Decimal("1.005")})

    assert state.get_load("L1").rate == Decimal("2000")


def test_update_unknown_load(state):
    with pytest.raises(NotFoundError):
        state.update_load("missing", {"rate": Decimal("1")})


def test_add_load_reconciles_with_new_load(state):
    state.add_load(make_load("L1", 6000, driver_id="d1"))
    assert _automatic(state) == {}

    state.add_load(make_load("L2", 4000, driver_id="d1"))

    bonus = _automatic(state)["d1"]
    assert bonus.amount == Decimal("30")
    assert state.last_reconciliation.created == ["d1"]


def test_update_load_reconciles_with_updated_rate(state):
    state.add_load(make_load("L1", 10000, driver_id="d1"))
    state.update_load("L1", {"rate": Decimal("12000")})
    assert _automatic(state)["d1"].amount == Decimal("70")


def test_deleting_qualifying_load_removes_automatic_keeps_manual(state):
    state.add_load(make_load("L1", 10000, driver_id="d1"))
    manual = state.add_bonus(Decimal("100"), note="Holiday", driver_id="d1", on=WEEK_START)
    assert "d1" in _automatic(state)

    state.delete_load("L1")

    assert _automatic(state) == {}
    assert [b.bonus_id for b in state.bonuses] == [manual.bonus_id]


def test_failed_store_write_leaves_mirror_untouched(recording_state, recording):
    recording_state.add_load(make_load("L1", 10000, driver_id="d1"))
    recording.fail_load_writes = True

    with pytest.raises(PersistenceError):
        recording_state.add_load(make_load("L2", 1000))
    with pytest.raises(PersistenceError):
        recording_state.delete_load("L1")

    assert [l.load_id for l in recording_state.loads] == ["L1"]
    assert "d1" in _automatic(recording_state)


def test_custom_range_drives_metrics_but_not_bonus_week(state):
    state.add_load(make_load("L1", 10000, driver_id="d1", pickup=WEEK_START))
    state.add_load(make_load("L2", 2000, driver_id="d1", pickup=WEEK_START - timedelta(days=3)))

    state.set_custom_range(DateRange(start=WEEK_START - timedelta(days=7), end=WEEK_START + timedelta(days=6)))
    state.reconcile_bonuses()

    assert state.revenue().total_gross == Decimal("12000")
    # Custom range starts the previous week; that week's 2000 earns nothing.
    prior_week = WEEK_START - timedelta(days=7)
    assert state.repository.list_automatic_bonuses(prior_week) == []
    assert _automatic(state)["d1"].week_start == WEEK_START


def test_select_week_turns_custom_range_off(state):
    state.set_custom_range(DateRange(start=date(2025, 1, 1), end=date(2025, 1, 31)))
    assert state.use_custom_range

    state.previous_week()

    assert not state.use_custom_range
    assert state.active_period.start == WEEK_START - timedelta(days=7)
    state.go_to_current_week()
    assert state.active_period.start == WEEK_START


def test_metrics_include_manual_and_automatic_bonuses(state):
    state.add_load(make_load("L1", 2000, driver_id="d2"))
    state.add_load(make_load("L1-P", 500, driver_id="d2", load_type=LoadType.PARTIAL, parent_load_id="L1"))
    state.add_load(make_load("L2", 10000, driver_id="d1"))
    state.add_bonus(Decimal("25"), note="Fuel savings")

    metrics = state.metrics()

    assert metrics.full_loads_gross == Decimal("12000")
    assert metrics.partial_loads_gross == Decimal("500")
    assert metrics.total_bonuses == Decimal("55")
    assert metrics.total_salary == Decimal("120") + Decimal("10") + Decimal("55")
    assert state.snapshot().total_salary == metrics.total_salary


def test_deleting_driver_keeps_their_loads(state):
    state.add_load(make_load("L1", 500, driver_id="d3"))
    state.delete_driver("d3")

    assert state.get_driver("d3") is None
    assert [l.driver_id for l in state.loads] == ["d3"]


def test_driver_edits(state):
    added = state.add_driver(Driver(driver_id="d9", driver_name="Sarah Chen", driver_type=DriverType.OWNER_OPERATOR))
    assert added in state.drivers

    updated = state.update_driver("d9", {"truck_number": "207"})
    assert updated.truck_number == "207"
    assert state.repository.list_drivers()[-1].truck_number == "207"


def test_deleted_automatic_bonus_comes_back_while_eligible(state):
    state.add_load(make_load("L1", 10000, driver_id="d1"))
    bonus_id = _automatic(state)["d1"].bonus_id

    state.delete_bonus(bonus_id)
    assert _automatic(state) == {}

    state.add_load(make_load("L2", 100, driver_id="d3"))
    assert _automatic(state)["d1"].amount == Decimal("30")


def test_clear_drops_mirrors(state):
    state.add_load(make_load("L1", 1000))
    state.clear()
    assert state.loads == [] and state.bonuses == [] and state.drivers == []
    state.refresh()
    assert len(state.loads) == 1
