"""Tenant-scoped access to campaigns, leads, activities, sequences and slots.

Every method opens its own session and commits before returning, so callers
never hold a transaction across a provider call. Returned rows are refreshed
before the session closes and stay readable after it.
"""

import json
import logging
from datetime import date, datetime
from typing import Callable, Iterable

from sqlmodel import Session, func, select

from outreach_flow.database import get_session
from outreach_flow.models import (
    ActivityStatus,
    Campaign,
    CampaignLead,
    CampaignStatus,
    Channel,
    LeadActivity,
    LeadStatus,
    OutreachSequence,
    SendingSlot,
    SequenceStatus,
    SlotStatus,
    utcnow,
)

logger = logging.getLogger(__name__)


def channel_for_step_type(step_type: str) -> Channel:
    if step_type.startswith("linkedin_"):
        return Channel.linkedin
    if step_type.startswith("email_"):
        return Channel.email
    if step_type == "voice_agent_call":
        return Channel.voice
    return Channel.web


class EntityStore:
    def __init__(
        self,
        tenant_id: str | None = None,
        session_factory: Callable[[], Session] | None = None,
    ):
        self.tenant_id = tenant_id
        self._session_factory = session_factory or get_session

    def _scoped(self, stmt, model):
        if self.tenant_id is not None:
            stmt = stmt.where(model.tenant_id == self.tenant_id)
        return stmt

    def _get(self, session, model, row_id):
        row = session.get(model, row_id)
        if row is None:
            return None
        if self.tenant_id is not None and row.tenant_id != self.tenant_id:
            return None
        return row

    # --- Campaigns ---

    def create_campaign(
        self,
        name: str,
        workflow: dict,
        linkedin_account_id: str | None = None,
        status: CampaignStatus = CampaignStatus.draft,
    ) -> Campaign:
        with self._session_factory() as session:
            campaign = Campaign(
                tenant_id=self.tenant_id or "",
                name=name,
                status=status,
                workflow=json.dumps(workflow),
                linkedin_account_id=linkedin_account_id,
            )
            session.add(campaign)
            session.commit()
            session.refresh(campaign)
        logger.info("Created campaign %d '%s'", campaign.id, name)
        return campaign

    def get_campaign(self, campaign_id: int) -> Campaign | None:
        with self._session_factory() as session:
            return self._get(session, Campaign, campaign_id)

    def update_campaign_workflow(self, campaign_id: int, workflow: dict) -> Campaign | None:
        with self._session_factory() as session:
            campaign = self._get(session, Campaign, campaign_id)
            if not campaign:
                return None
            campaign.workflow = json.dumps(workflow)
            campaign.updated_at = utcnow()
            session.add(campaign)
            session.commit()
            session.refresh(campaign)
            return campaign

    def set_campaign_status(self, campaign_id: int, status: CampaignStatus) -> Campaign | None:
        with self._session_factory() as session:
            campaign = self._get(session, Campaign, campaign_id)
            if not campaign:
                return None
            old_status = campaign.status
            campaign.status = status
            campaign.updated_at = utcnow()
            session.add(campaign)
            session.commit()
            session.refresh(campaign)
        logger.info("Campaign %d status %s -> %s", campaign_id, old_status.value, status.value)
        return campaign

    def list_running_campaigns(self) -> list[Campaign]:
        with self._session_factory() as session:
            stmt = self._scoped(
                select(Campaign).where(Campaign.status == CampaignStatus.running), Campaign
            )
            return list(session.exec(stmt).all())

    # --- Leads ---

    def add_leads(self, campaign_id: int, leads: Iterable[dict]) -> list[CampaignLead]:
        """Attach leads to a campaign, skipping ones already present.

        Duplicates are matched on LinkedIn URL, then email. Each input dict is
        the lead's data; ``custom_fields`` and ``engagement_score`` keys are
        lifted onto their own columns.
        """
        with self._session_factory() as session:
            campaign = self._get(session, Campaign, campaign_id)
            if not campaign:
                return []

            existing = session.exec(
                select(CampaignLead).where(CampaignLead.campaign_id == campaign_id)
            ).all()
            seen = set()
            for lead in existing:
                seen.update(_dedup_keys(lead.data))

            created = []
            for raw in leads:
                payload = dict(raw)
                custom_fields = payload.pop("custom_fields", None) or {}
                engagement = payload.pop("engagement_score", 0) or 0
                keys = _dedup_keys(payload)
                if keys and keys & seen:
                    continue
                seen.update(keys)

                lead = CampaignLead(
                    tenant_id=campaign.tenant_id,
                    campaign_id=campaign_id,
                    lead_data=json.dumps(payload),
                    custom_fields=json.dumps(custom_fields),
                    engagement_score=float(engagement),
                )
                session.add(lead)
                created.append(lead)

            session.commit()
            for lead in created:
                session.refresh(lead)

        logger.info("Attached %d leads to campaign %d", len(created), campaign_id)
        return created

    def get_lead(self, lead_id: int) -> CampaignLead | None:
        with self._session_factory() as session:
            return self._get(session, CampaignLead, lead_id)

    def get_leads_for_campaign(
        self, campaign_id: int, status: LeadStatus | None = None
    ) -> list[CampaignLead]:
        with self._session_factory() as session:
            stmt = select(CampaignLead).where(CampaignLead.campaign_id == campaign_id)
            if status is not None:
                stmt = stmt.where(CampaignLead.status == status)
            stmt = self._scoped(stmt.order_by(CampaignLead.id), CampaignLead)
            return list(session.exec(stmt).all())

    def update_lead_current_step(self, lead_id: int, step_id: str) -> None:
        with self._session_factory() as session:
            lead = self._get(session, CampaignLead, lead_id)
            if not lead:
                logger.error("Lead %d not found", lead_id)
                return
            lead.current_step_id = step_id
            lead.updated_at = utcnow()
            session.add(lead)
            session.commit()

    def mark_lead_completed(self, lead_id: int) -> None:
        with self._session_factory() as session:
            lead = self._get(session, CampaignLead, lead_id)
            if not lead:
                return
            lead.status = LeadStatus.completed
            lead.completed_at = utcnow()
            lead.updated_at = utcnow()
            session.add(lead)
            session.commit()

    def mark_lead_failed(self, lead_id: int, error: str) -> None:
        with self._session_factory() as session:
            lead = self._get(session, CampaignLead, lead_id)
            if not lead:
                return
            lead.status = LeadStatus.failed
            lead.error_message = error
            lead.updated_at = utcnow()
            session.add(lead)
            session.commit()

    def merge_lead_data(self, lead_id: int, updates: dict) -> None:
        with self._session_factory() as session:
            lead = self._get(session, CampaignLead, lead_id)
            if not lead:
                return
            data = lead.data
            data.update(updates)
            lead.lead_data = json.dumps(data)
            lead.updated_at = utcnow()
            session.add(lead)
            session.commit()

    # --- Activities ---

    def create_activity(
        self,
        campaign_id: int,
        lead_id: int,
        step_id: str,
        step_type: str,
        status: ActivityStatus = ActivityStatus.pending,
        error_message: str | None = None,
    ) -> LeadActivity:
        with self._session_factory() as session:
            lead = session.get(CampaignLead, lead_id)
            activity = LeadActivity(
                tenant_id=lead.tenant_id if lead else (self.tenant_id or ""),
                campaign_id=campaign_id,
                lead_id=lead_id,
                step_id=step_id,
                step_type=step_type,
                channel=channel_for_step_type(step_type),
                status=status,
                error_message=error_message,
            )
            session.add(activity)
            session.commit()
            session.refresh(activity)
            return activity

    def get_pending_activity(self, lead_id: int, step_id: str) -> LeadActivity | None:
        with self._session_factory() as session:
            return session.exec(
                select(LeadActivity)
                .where(LeadActivity.lead_id == lead_id)
                .where(LeadActivity.step_id == step_id)
                .where(LeadActivity.status == ActivityStatus.pending)
                .order_by(LeadActivity.id.desc())
            ).first()

    def schedule_activity(self, activity_id: int, scheduled_at: datetime) -> None:
        with self._session_factory() as session:
            activity = session.get(LeadActivity, activity_id)
            if not activity:
                return
            activity.scheduled_at = scheduled_at
            activity.updated_at = utcnow()
            session.add(activity)
            session.commit()

    def update_activity_status(
        self,
        activity_id: int,
        status: ActivityStatus,
        error: str | None = None,
        result: dict | None = None,
    ) -> None:
        """Record the outcome of an activity and touch the lead, in one commit."""
        with self._session_factory() as session:
            activity = session.get(LeadActivity, activity_id)
            if not activity:
                logger.error("Activity %d not found", activity_id)
                return

            now = utcnow()
            activity.status = status
            activity.error_message = error
            if result is not None:
                activity.result = json.dumps(result, default=str)
            activity.updated_at = now
            session.add(activity)

            if status == ActivityStatus.completed:
                lead = session.get(CampaignLead, activity.lead_id)
                if lead:
                    lead.last_activity_at = now
                    lead.updated_at = now
                    session.add(lead)

            session.commit()

    def get_activities(self, campaign_id: int, lead_id: int | None = None) -> list[LeadActivity]:
        with self._session_factory() as session:
            stmt = select(LeadActivity).where(LeadActivity.campaign_id == campaign_id)
            if lead_id is not None:
                stmt = stmt.where(LeadActivity.lead_id == lead_id)
            stmt = self._scoped(stmt.order_by(LeadActivity.id), LeadActivity)
            return list(session.exec(stmt).all())

    def get_last_result(self, lead_id: int) -> dict:
        """Dispatcher data of the lead's most recent completed activity."""
        with self._session_factory() as session:
            activity = session.exec(
                select(LeadActivity)
                .where(LeadActivity.lead_id == lead_id)
                .where(LeadActivity.status == ActivityStatus.completed)
                .where(LeadActivity.result != "")
                .order_by(LeadActivity.id.desc())
            ).first()
            return activity.result_data if activity else {}

    def get_due_delayed_leads(self, now: datetime | None = None) -> list[CampaignLead]:
        """Active leads parked on a delay whose resume time has passed.

        Only leads of running campaigns qualify, and only when the pending
        delay activity belongs to the step the lead currently sits on.
        """
        now = now or utcnow()
        with self._session_factory() as session:
            stmt = (
                select(CampaignLead)
                .join(LeadActivity, LeadActivity.lead_id == CampaignLead.id)
                .join(Campaign, Campaign.id == CampaignLead.campaign_id)
                .where(LeadActivity.status == ActivityStatus.pending)
                .where(LeadActivity.step_type == "delay")
                .where(LeadActivity.step_id == CampaignLead.current_step_id)
                .where(LeadActivity.scheduled_at.is_not(None))
                .where(LeadActivity.scheduled_at <= now)
                .where(Campaign.status == CampaignStatus.running)
                .where(CampaignLead.status == LeadStatus.active)
                .order_by(CampaignLead.id)
                .distinct()
            )
            return list(session.exec(self._scoped(stmt, CampaignLead)).all())

    # --- Sequences and slots ---

    def create_sequence(self, slots: Iterable = (), **fields) -> OutreachSequence:
        """Insert a sequence and its slots in a single commit."""
        with self._session_factory() as session:
            sequence = OutreachSequence(tenant_id=self.tenant_id or "", **fields)
            session.add(sequence)
            session.flush()
            count = 0
            for slot in slots:
                session.add(_slot_row(sequence, slot))
                count += 1
            session.commit()
            session.refresh(sequence)
        logger.info("Stored sequence %d with %d slots", sequence.id, count)
        return sequence

    def create_slots(self, sequence_id: int, slots: Iterable) -> int:
        with self._session_factory() as session:
            sequence = self._get(session, OutreachSequence, sequence_id)
            if not sequence:
                return 0
            count = 0
            for slot in slots:
                session.add(_slot_row(sequence, slot))
                count += 1
            session.commit()
            return count

    def get_sequence(self, sequence_id: int) -> OutreachSequence | None:
        with self._session_factory() as session:
            return self._get(session, OutreachSequence, sequence_id)

    def get_slot(self, slot_id: int) -> SendingSlot | None:
        with self._session_factory() as session:
            return self._get(session, SendingSlot, slot_id)

    def get_slots(self, sequence_id: int) -> list[SendingSlot]:
        with self._session_factory() as session:
            stmt = (
                select(SendingSlot)
                .where(SendingSlot.sequence_id == sequence_id)
                .order_by(SendingSlot.scheduled_time)
            )
            return list(session.exec(self._scoped(stmt, SendingSlot)).all())

    def get_due_slots(
        self, account_id: str, day: date, now: datetime | None = None
    ) -> list[tuple[SendingSlot, OutreachSequence]]:
        """Pending slots for the account on ``day`` whose time has come."""
        now = now or utcnow()
        with self._session_factory() as session:
            stmt = (
                select(SendingSlot, OutreachSequence)
                .join(OutreachSequence, OutreachSequence.id == SendingSlot.sequence_id)
                .where(OutreachSequence.account_id == account_id)
                .where(OutreachSequence.status == SequenceStatus.active)
                .where(SendingSlot.day == day)
                .where(SendingSlot.status == SlotStatus.pending)
                .where(SendingSlot.scheduled_time <= now)
                .order_by(SendingSlot.scheduled_time)
            )
            return [tuple(row) for row in session.exec(self._scoped(stmt, SendingSlot)).all()]

    def update_slot_status(self, slot_id: int, status: SlotStatus, meta: dict | None = None) -> bool:
        """Move a pending slot to sent/failed. Returns False if it already moved."""
        with self._session_factory() as session:
            slot = self._get(session, SendingSlot, slot_id)
            if not slot:
                logger.error("Slot %d not found", slot_id)
                return False
            if slot.status != SlotStatus.pending:
                logger.warning("Slot %d already %s, not moving to %s", slot_id, slot.status.value, status.value)
                return False

            now = utcnow()
            slot.status = status
            slot.details = json.dumps(meta or {}, default=str)
            if status == SlotStatus.sent:
                slot.sent_at = now
            slot.updated_at = now
            session.add(slot)
            session.commit()
            return True

    def get_account_day_counts(self, account_id: str, from_day: date) -> dict[date, int]:
        """Slots already placed per day for an account (failed ones excluded)."""
        with self._session_factory() as session:
            rows = session.exec(
                select(SendingSlot.day, func.count(SendingSlot.id))
                .join(OutreachSequence, OutreachSequence.id == SendingSlot.sequence_id)
                .where(OutreachSequence.account_id == account_id)
                .where(SendingSlot.day >= from_day)
                .where(SendingSlot.status != SlotStatus.failed)
                .group_by(SendingSlot.day)
            ).all()
            return {day: count for day, count in rows}

    def get_sequence_stats(self, sequence_id: int) -> dict:
        with self._session_factory() as session:
            rows = session.exec(
                select(SendingSlot.status, func.count(SendingSlot.id))
                .where(SendingSlot.sequence_id == sequence_id)
                .group_by(SendingSlot.status)
            ).all()

        counts = {status.value: 0 for status in SlotStatus}
        for status, count in rows:
            key = status.value if isinstance(status, SlotStatus) else str(status)
            counts[key] = count
        total = sum(counts.values())
        return {
            "total": total,
            "sent": counts["sent"],
            "failed": counts["failed"],
            "pending": counts["pending"],
            "success_rate": round(counts["sent"] / total * 100, 1) if total else 0.0,
        }


def _dedup_keys(data: dict) -> set[str]:
    keys = set()
    url = (data.get("linkedin_url") or data.get("linkedin_profile_url") or "").strip().lower()
    if url:
        keys.add(f"li:{url.rstrip('/')}")
    email = (data.get("email") or "").strip().lower()
    if email:
        keys.add(f"email:{email}")
    return keys


def _slot_row(sequence: OutreachSequence, slot) -> SendingSlot:
    return SendingSlot(
        tenant_id=sequence.tenant_id,
        sequence_id=sequence.id,
        profile_id=slot.profile_id,
        scheduled_time=slot.scheduled_time,
        day=slot.day,
        status=SlotStatus.pending,
    )
