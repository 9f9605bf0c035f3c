"""Quota-aware slot generation for LinkedIn outreach sequences.

Schedule rules:
  - Weekdays only, inside the working-hours window (09:00-18:00 by default)
  - At most min(daily_limit, 80) sends per account per day
  - At most 200 sends per account in any rolling 7-day window
  - Slots within a day are evenly spread and jittered by up to 15 minutes
"""

import logging
import math
import random
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from outreach_flow.config import settings
from outreach_flow.errors import ConfigurationError, NotFoundError
from outreach_flow.models import OutreachSequence, SequenceStatus, utcnow
from outreach_flow.store import EntityStore

logger = logging.getLogger(__name__)

WEEKLY_WORKDAYS = 5


@dataclass
class PlannedSlot:
    profile_id: str
    scheduled_time: datetime
    day: date


@dataclass
class SequencePlan:
    sequence_id: int
    daily_limit: int
    estimated_days: int
    estimated_weeks: int
    slots: list[PlannedSlot] = field(default_factory=list)


class SequenceScheduler:
    def __init__(
        self,
        store: EntityStore,
        rng: random.Random | None = None,
        daily_cap: int | None = None,
        weekly_cap: int | None = None,
        working_hours: tuple[int, int] | None = None,
        jitter_minutes: int | None = None,
    ):
        self.store = store
        self.rng = rng or random.Random()
        self.daily_cap = settings.linkedin_daily_cap if daily_cap is None else daily_cap
        self.weekly_cap = settings.linkedin_weekly_cap if weekly_cap is None else weekly_cap
        self.start_hour, self.end_hour = working_hours or (
            settings.working_hours_start, settings.working_hours_end,
        )
        self.jitter_minutes = settings.slot_jitter_minutes if jitter_minutes is None else jitter_minutes

        if self.end_hour <= self.start_hour:
            raise ConfigurationError(f"Working hours {self.start_hour}-{self.end_hour} are empty")
        if self.daily_cap < 1:
            raise ConfigurationError("Daily cap must be at least 1")
        if self.weekly_cap < 1:
            raise ConfigurationError("Weekly cap must be at least 1")

    def effective_daily_limit(self, requested: int | None) -> int:
        """Clamp a requested daily limit to [1, platform daily cap]."""
        limit = requested or settings.default_daily_limit
        if limit > self.daily_cap:
            logger.warning("Daily limit %d exceeds platform cap, clamping to %d", limit, self.daily_cap)
            limit = self.daily_cap
        return max(1, limit)

    def create_sequence(
        self,
        campaign_id: int,
        account_id: str,
        profile_ids: list[str],
        message: str = "",
        daily_limit: int | None = None,
        start_date: date | None = None,
    ) -> SequencePlan:
        """Plan and persist a sequence with all of its slots in one batch."""
        daily = self.effective_daily_limit(daily_limit)
        start_date = start_date or utcnow().date()
        total = len(profile_ids)

        estimated_days = math.ceil(total / daily)
        weekly_requests = min(daily * WEEKLY_WORKDAYS, self.weekly_cap)
        estimated_weeks = math.ceil(total / weekly_requests)

        # Load already placed on this account by other sequences
        window_start = start_date - timedelta(days=6)
        existing = self.store.get_account_day_counts(account_id, window_start)

        slots = self.generate_sending_slots(profile_ids, daily, start_date, existing)
        sequence = self.store.create_sequence(
            slots=slots,
            campaign_id=campaign_id,
            account_id=account_id,
            total_profiles=total,
            daily_limit=daily,
            estimated_days=estimated_days,
            estimated_weeks=estimated_weeks,
            start_date=start_date,
            message=message,
            status=SequenceStatus.active,
        )

        logger.info(
            "Sequence %d for account %s: %d profiles, %d/day, ~%d days (%d weeks)",
            sequence.id, account_id, total, daily, estimated_days, estimated_weeks,
        )
        return SequencePlan(
            sequence_id=sequence.id,
            daily_limit=daily,
            estimated_days=estimated_days,
            estimated_weeks=estimated_weeks,
            slots=slots,
        )

    def generate_sending_slots(
        self,
        profile_ids: list[str],
        daily_limit: int,
        start_date: date,
        existing: dict[date, int] | None = None,
    ) -> list[PlannedSlot]:
        """Walk weekdays from start_date, filling each up to its remaining quota."""
        load = dict(existing or {})
        slots: list[PlannedSlot] = []
        index = 0
        day = start_date

        while index < len(profile_ids):
            if day.weekday() >= 5:
                day += timedelta(days=1)
                continue

            capacity = min(
                daily_limit - load.get(day, 0),
                self._weekly_headroom(load, day),
                len(profile_ids) - index,
            )
            if capacity > 0:
                for profile_id, scheduled in zip(
                    profile_ids[index:index + capacity], self.generate_day_slots(day, capacity)
                ):
                    slots.append(PlannedSlot(profile_id=profile_id, scheduled_time=scheduled, day=day))
                load[day] = load.get(day, 0) + capacity
                index += capacity

            day += timedelta(days=1)

        return slots

    def generate_day_slots(self, day: date, count: int) -> list[datetime]:
        window = (self.end_hour - self.start_hour) * 60
        interval = window // (count + 1)
        opening = datetime.combine(day, time(self.start_hour))

        times = []
        for i in range(1, count + 1):
            offset = self.rng.randint(-self.jitter_minutes, self.jitter_minutes - 1) if self.jitter_minutes else 0
            minutes = min(max(interval * i + offset, 0), window - 1)
            times.append(opening + timedelta(minutes=minutes))
        return times

    def _weekly_headroom(self, load: dict[date, int], day: date) -> int:
        # Every 7-day window that contains `day` must stay under the cap
        headroom = self.weekly_cap
        for end in range(7):
            window_end = day + timedelta(days=end)
            used = sum(load.get(window_end - timedelta(days=back), 0) for back in range(7))
            headroom = min(headroom, self.weekly_cap - used)
        return headroom


def get_sequence_status(store: EntityStore, sequence_id: int) -> dict:
    """Sequence summary with slot counts by status."""
    sequence: OutreachSequence | None = store.get_sequence(sequence_id)
    if not sequence:
        raise NotFoundError(f"Sequence {sequence_id} not found")

    return {
        "sequence_id": sequence.id,
        "campaign_id": sequence.campaign_id,
        "account_id": sequence.account_id,
        "status": sequence.status.value,
        "daily_limit": sequence.daily_limit,
        "estimated_days": sequence.estimated_days,
        "estimated_weeks": sequence.estimated_weeks,
        "start_date": sequence.start_date.isoformat() if sequence.start_date else None,
        **store.get_sequence_stats(sequence_id),
    }
