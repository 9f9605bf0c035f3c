"""Tests for quota-aware slot generation."""

import random
from collections import Counter
from datetime import date, datetime, timedelta
from unittest.mock import patch

import pytest

from outreach_flow.errors import ConfigurationError, NotFoundError
from outreach_flow.models import SlotStatus
from outreach_flow.outreach.sequence_scheduler import SequenceScheduler, get_sequence_status

MONDAY = date(2025, 3, 3)
FRIDAY = date(2025, 3, 7)


def _profiles(n):
    return [f"profile-{i}" for i in range(n)]


@pytest.fixture
def campaign(store):
    return store.create_campaign("Connect blitz", {"steps": [], "edges": []}, linkedin_account_id="acc-1")


@pytest.fixture
def scheduler(store):
    return SequenceScheduler(store, rng=random.Random(42))


class TestDailyLimit:
    def test_clamped_to_platform_cap(self, scheduler):
        assert scheduler.effective_daily_limit(500) == 80

    def test_default_when_missing(self, scheduler):
        assert scheduler.effective_daily_limit(None) == 40

    def test_under_cap_kept(self, scheduler):
        assert scheduler.effective_daily_limit(25) == 25

    def test_explicit_zero_caps_are_rejected(self, store):
        with pytest.raises(ConfigurationError, match="Daily cap"):
            SequenceScheduler(store, daily_cap=0)
        with pytest.raises(ConfigurationError, match="Weekly cap"):
            SequenceScheduler(store, weekly_cap=0)

    def test_explicit_caps_override_settings(self, store):
        scheduler = SequenceScheduler(store, daily_cap=20, weekly_cap=50)
        assert scheduler.effective_daily_limit(500) == 20
        assert scheduler.weekly_cap == 50


class TestCreateSequence:
    def test_estimates(self, scheduler, campaign):
        plan = scheduler.create_sequence(campaign.id, "acc-1", _profiles(200), "Hi", daily_limit=40, start_date=MONDAY)

        assert plan.daily_limit == 40
        assert plan.estimated_days == 5
        assert plan.estimated_weeks == 1
        assert len({s.day for s in plan.slots}) == 5

    def test_clamped_limit_drives_estimates(self, scheduler, campaign):
        plan = scheduler.create_sequence(campaign.id, "acc-1", _profiles(400), daily_limit=500, start_date=MONDAY)

        assert plan.daily_limit == 80
        assert plan.estimated_days == 5
        assert plan.estimated_weeks == 2  # weekly requests capped at 200
        assert max(Counter(s.day for s in plan.slots).values()) <= 80

    def test_persists_every_slot(self, scheduler, store, campaign):
        plan = scheduler.create_sequence(campaign.id, "acc-1", _profiles(30), daily_limit=10, start_date=MONDAY)

        stored = store.get_slots(plan.sequence_id)
        assert len(stored) == 30
        assert all(s.status == SlotStatus.pending for s in stored)
        assert {s.profile_id for s in stored} == set(_profiles(30))

        sequence = store.get_sequence(plan.sequence_id)
        assert sequence.total_profiles == 30
        assert sequence.tenant_id == campaign.tenant_id

    def test_default_start_date_is_utc_today(self, scheduler, campaign):
        # Late Monday evening UTC, whatever the local clock says
        with patch("outreach_flow.outreach.sequence_scheduler.utcnow", return_value=datetime(2025, 3, 3, 23, 30)):
            plan = scheduler.create_sequence(campaign.id, "acc-1", _profiles(3), daily_limit=10)

        assert {s.day for s in plan.slots} == {MONDAY}

    def test_empty_profile_list(self, scheduler, store, campaign):
        plan = scheduler.create_sequence(campaign.id, "acc-1", [], start_date=MONDAY)
        assert plan.slots == []
        assert store.get_slots(plan.sequence_id) == []


class TestSlotPlacement:
    def test_never_on_weekends(self, scheduler):
        slots = scheduler.generate_sending_slots(_profiles(300), 40, FRIDAY)
        assert all(s.scheduled_time.weekday() < 5 for s in slots)
        assert slots[0].day == FRIDAY
        assert slots[40].day == FRIDAY + timedelta(days=3)

    def test_start_on_saturday_moves_to_monday(self, scheduler):
        slots = scheduler.generate_sending_slots(_profiles(5), 40, date(2025, 3, 8))
        assert {s.day for s in slots} == {date(2025, 3, 10)}

    def test_inside_working_hours(self, scheduler):
        slots = scheduler.generate_sending_slots(_profiles(160), 80, MONDAY)
        for s in slots:
            assert 9 <= s.scheduled_time.hour < 18
            assert s.scheduled_time.date() == s.day

    def test_profile_order_preserved(self, scheduler):
        profiles = _profiles(50)
        slots = scheduler.generate_sending_slots(profiles, 20, MONDAY)
        assert [s.profile_id for s in slots] == profiles

    def test_daily_cap_per_day(self, scheduler):
        slots = scheduler.generate_sending_slots(_profiles(95), 20, MONDAY)
        counts = Counter(s.day for s in slots)
        assert max(counts.values()) == 20
        assert len(counts) == 5

    def test_rolling_weekly_cap(self, scheduler):
        slots = scheduler.generate_sending_slots(_profiles(400), 80, MONDAY)
        counts = Counter(s.day for s in slots)
        for day in counts:
            window = sum(c for d, c in counts.items() if day - timedelta(days=6) <= d <= day)
            assert window <= 200

    def test_seeded_placement_is_deterministic(self, store):
        first = SequenceScheduler(store, rng=random.Random(7)).generate_day_slots(MONDAY, 3)
        second = SequenceScheduler(store, rng=random.Random(7)).generate_day_slots(MONDAY, 3)
        assert first == second

    def test_jitter_bounds(self, store):
        scheduler = SequenceScheduler(store, rng=random.Random(1))
        times = scheduler.generate_day_slots(MONDAY, 3)
        # 540-minute window, 3 slots -> 135-minute spacing, each within [-15, +15)
        for i, t in enumerate(times, start=1):
            offset = (t - datetime(2025, 3, 3, 9, 0)).total_seconds() / 60 - 135 * i
            assert -15 <= offset < 15

    def test_no_jitter(self, store):
        scheduler = SequenceScheduler(store, rng=random.Random(1), jitter_minutes=0)
        assert scheduler.generate_day_slots(MONDAY, 1) == [datetime(2025, 3, 3, 13, 30)]

    def test_dense_day_clamped_to_window(self, store):
        scheduler = SequenceScheduler(store, rng=random.Random(3))
        times = scheduler.generate_day_slots(MONDAY, 80)
        assert min(times) >= datetime(2025, 3, 3, 9, 0)
        assert max(times) <= datetime(2025, 3, 3, 17, 59)


class TestExistingAccountLoad:
    def test_respects_other_sequences_on_same_account(self, scheduler, store, campaign):
        scheduler.create_sequence(campaign.id, "acc-1", _profiles(60), daily_limit=60, start_date=MONDAY)
        plan = scheduler.create_sequence(
            campaign.id, "acc-1", [f"other-{i}" for i in range(40)], daily_limit=60, start_date=MONDAY,
        )

        counts = Counter(s.day for s in plan.slots)
        assert counts[MONDAY] == 0
        assert counts[MONDAY + timedelta(days=1)] == 40

    def test_other_accounts_do_not_count(self, scheduler, campaign):
        scheduler.create_sequence(campaign.id, "acc-1", _profiles(40), daily_limit=40, start_date=MONDAY)
        plan = scheduler.create_sequence(campaign.id, "acc-2", _profiles(40), daily_limit=40, start_date=MONDAY)
        assert {s.day for s in plan.slots} == {MONDAY}


class TestSequenceStatus:
    def test_counts_by_status(self, scheduler, store, campaign):
        plan = scheduler.create_sequence(campaign.id, "acc-1", _profiles(4), daily_limit=4, start_date=MONDAY)
        slots = store.get_slots(plan.sequence_id)
        store.update_slot_status(slots[0].id, SlotStatus.sent, {"action_taken": "invitation_sent"})
        store.update_slot_status(slots[1].id, SlotStatus.failed, {"error": "boom"})

        status = get_sequence_status(store, plan.sequence_id)

        assert status["total"] == 4
        assert status["sent"] == 1
        assert status["failed"] == 1
        assert status["pending"] == 2
        assert status["success_rate"] == 25.0
        assert status["account_id"] == "acc-1"

    def test_unknown_sequence(self, store):
        with pytest.raises(NotFoundError):
            get_sequence_status(store, 999)

    def test_other_tenant_cannot_see_sequence(self, scheduler, other_store, campaign):
        plan = scheduler.create_sequence(campaign.id, "acc-1", _profiles(2), start_date=MONDAY)
        with pytest.raises(NotFoundError):
            get_sequence_status(other_store, plan.sequence_id)
