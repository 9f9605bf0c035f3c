"""Tests for the tenant-scoped entity store."""

from datetime import date, datetime, timedelta

from outreach_flow.models import ActivityStatus, CampaignStatus, LeadStatus, SlotStatus
from outreach_flow.outreach.sequence_scheduler import PlannedSlot

NOW = datetime(2025, 3, 3, 10, 0)


def _campaign(store, status=CampaignStatus.running):
    return store.create_campaign("Test", {"steps": [], "edges": []}, status=status)


class TestTenantScoping:
    def test_campaign_hidden_from_other_tenant(self, store, other_store):
        campaign = _campaign(store)
        assert store.get_campaign(campaign.id) is not None
        assert other_store.get_campaign(campaign.id) is None

    def test_running_campaigns_per_tenant(self, store, other_store):
        _campaign(store)
        _campaign(other_store)
        _campaign(store, status=CampaignStatus.paused)
        assert len(store.list_running_campaigns()) == 1


class TestLeads:
    def test_add_leads_lifts_columns_and_dedups(self, store):
        campaign = _campaign(store)
        created = store.add_leads(campaign.id, [
            {"first_name": "Ada", "linkedin_url": "https://linkedin.com/in/ada/", "custom_fields": {"tier": "gold"}, "engagement_score": 70},
            {"first_name": "Ada", "linkedin_url": "https://LinkedIn.com/in/ada"},
            {"first_name": "No keys"},
            {"first_name": "No keys either"},
        ])
        assert len(created) == 3
        ada = created[0]
        assert ada.fields == {"tier": "gold"}
        assert ada.engagement_score == 70
        assert "custom_fields" not in ada.data
        assert ada.tenant_id == "tenant-a"

    def test_add_leads_to_missing_campaign(self, store):
        assert store.add_leads(999, [{"email": "a@b.c"}]) == []

    def test_merge_lead_data(self, store):
        campaign = _campaign(store)
        (lead,) = store.add_leads(campaign.id, [{"first_name": "Ada"}])
        store.merge_lead_data(lead.id, {"profile_summary": "x"})
        assert store.get_lead(lead.id).data == {"first_name": "Ada", "profile_summary": "x"}


class TestActivities:
    def test_completed_activity_touches_lead(self, store):
        campaign = _campaign(store)
        (lead,) = store.add_leads(campaign.id, [{"email": "a@b.c"}])
        activity = store.create_activity(campaign.id, lead.id, "s", "start")

        store.update_activity_status(activity.id, ActivityStatus.completed, result={"ok": True})

        assert store.get_lead(lead.id).last_activity_at is not None
        assert store.get_last_result(lead.id) == {"ok": True}

    def test_due_delayed_leads(self, store):
        campaign = _campaign(store)
        due, waiting, moved = store.add_leads(campaign.id, [{"email": f"{i}@x.io"} for i in range(3)])
        for lead, at in ((due, NOW - timedelta(minutes=1)), (waiting, NOW + timedelta(hours=1)), (moved, NOW)):
            store.update_lead_current_step(lead.id, "wait")
            activity = store.create_activity(campaign.id, lead.id, "wait", "delay")
            store.schedule_activity(activity.id, at)
        store.update_lead_current_step(moved.id, "email")

        assert [lead.id for lead in store.get_due_delayed_leads(now=NOW)] == [due.id]

        store.mark_lead_failed(due.id, "broken")
        assert store.get_due_delayed_leads(now=NOW) == []
        assert store.get_lead(due.id).status == LeadStatus.failed


class TestSlots:
    def test_slot_moves_out_of_pending_once(self, store):
        campaign = _campaign(store)
        sequence = store.create_sequence(
            slots=[PlannedSlot("p1", datetime(2025, 3, 3, 9, 30), date(2025, 3, 3))],
            campaign_id=campaign.id, account_id="acc-1", start_date=date(2025, 3, 3),
        )
        (slot,) = store.get_slots(sequence.id)

        assert store.update_slot_status(slot.id, SlotStatus.sent, {"action_taken": "invitation_sent"}) is True
        assert store.update_slot_status(slot.id, SlotStatus.failed, {"error": "late"}) is False
        assert store.get_slot(slot.id).status == SlotStatus.sent

    def test_create_slots_appends_to_sequence(self, store, other_store):
        campaign = _campaign(store)
        day = date(2025, 3, 4)
        sequence = store.create_sequence(campaign_id=campaign.id, account_id="acc-1", start_date=day)

        added = store.create_slots(sequence.id, [PlannedSlot("p9", datetime(2025, 3, 4, 11, 0), day)])

        assert added == 1
        assert [s.profile_id for s in store.get_slots(sequence.id)] == ["p9"]
        assert other_store.create_slots(sequence.id, [PlannedSlot("px", datetime(2025, 3, 4, 12, 0), day)]) == 0

    def test_account_day_counts_exclude_failed(self, store):
        campaign = _campaign(store)
        day = date(2025, 3, 3)
        sequence = store.create_sequence(
            slots=[PlannedSlot(f"p{i}", datetime(2025, 3, 3, 10, i), day) for i in range(3)],
            campaign_id=campaign.id, account_id="acc-1", start_date=day,
        )
        first = store.get_slots(sequence.id)[0]
        store.update_slot_status(first.id, SlotStatus.failed, {"error": "x"})

        assert store.get_account_day_counts("acc-1", day) == {day: 2}
        assert store.get_account_day_counts("acc-2", day) == {}
