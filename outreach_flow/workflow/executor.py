"""Execute one workflow step for one lead.

The activity row is written as ``pending`` before any side effect, so a crash
mid-step leaves a trace that the next pass picks up again instead of creating
a second pending row for the same step.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from outreach_flow.channels.base import ChannelDispatcher, DispatchResult
from outreach_flow.errors import BestEffortError, OutreachError, StepValidationError
from outreach_flow.leadgen.apollo import LeadProvider
from outreach_flow.models import ActivityStatus, CampaignLead, LeadActivity, utcnow
from outreach_flow.store import EntityStore
from outreach_flow.workflow.definition import DelayConfig, LeadGenerationConfig, Step, parse_step_config

logger = logging.getLogger(__name__)


@dataclass
class StepOutcome:
    success: bool
    delay_pending: bool = False
    delay_until: datetime | None = None
    leads_generated: int | None = None
    error: str | None = None
    fatal: bool = False  # configuration problem, do not retry
    data: dict = field(default_factory=dict)


class StepExecutor:
    def __init__(
        self,
        store: EntityStore,
        dispatchers: dict[str, ChannelDispatcher] | None = None,
        lead_provider: LeadProvider | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        if dispatchers is None:
            from outreach_flow.channels import build_dispatchers
            dispatchers = build_dispatchers()
        self.dispatchers = dispatchers
        self.lead_provider = lead_provider
        self.clock = clock

    def execute_step(
        self,
        campaign_id: int,
        lead: CampaignLead,
        step: Step,
        account_id: str | None = None,
    ) -> StepOutcome:
        try:
            config = parse_step_config(step.type, step.config)
        except StepValidationError as e:
            logger.error("Step %s for lead %d failed validation: %s", step.id, lead.id, e)
            self.store.create_activity(
                campaign_id, lead.id, step.id, step.type,
                status=ActivityStatus.error, error_message=str(e),
            )
            return StepOutcome(success=False, error=str(e), fatal=True)

        activity = self.store.get_pending_activity(lead.id, step.id)
        if activity is None:
            activity = self.store.create_activity(campaign_id, lead.id, step.id, step.type)
        else:
            logger.debug("Reusing pending activity %d for lead %d step %s", activity.id, lead.id, step.id)

        if step.type == "delay":
            return self._execute_delay(activity, config)

        if step.type in ("start", "condition"):
            outcome = StepOutcome(success=True)
        elif step.type == "end":
            self.store.mark_lead_completed(lead.id)
            outcome = StepOutcome(success=True)
        elif step.type == "lead_generation":
            outcome = self._execute_lead_generation(campaign_id, config)
        else:
            outcome = self._execute_channel_action(step, lead, account_id)

        self.store.update_activity_status(
            activity.id,
            ActivityStatus.completed if outcome.success else ActivityStatus.error,
            error=outcome.error,
            result=outcome.data or None,
        )
        return outcome

    def _execute_delay(self, activity: LeadActivity, config: DelayConfig) -> StepOutcome:
        now = self.clock()

        if activity.scheduled_at is None:
            if config.total_seconds == 0:
                self.store.update_activity_status(activity.id, ActivityStatus.completed)
                return StepOutcome(success=True)

            scheduled_at = now + timedelta(seconds=config.total_seconds)
            self.store.schedule_activity(activity.id, scheduled_at)
            logger.info("Delay scheduled until %s (activity %d)", scheduled_at.isoformat(), activity.id)
            return StepOutcome(success=True, delay_pending=True, delay_until=scheduled_at)

        if activity.scheduled_at <= now:
            self.store.update_activity_status(activity.id, ActivityStatus.completed)
            logger.info("Delay elapsed for activity %d", activity.id)
            return StepOutcome(success=True)

        return StepOutcome(success=True, delay_pending=True, delay_until=activity.scheduled_at)

    def _execute_lead_generation(self, campaign_id: int, config: LeadGenerationConfig) -> StepOutcome:
        # Best-effort: a failed search never fails the step
        if self.lead_provider is None:
            logger.warning("No lead provider configured, skipping lead generation for campaign %d", campaign_id)
            return StepOutcome(success=True, leads_generated=0)

        try:
            result = self.lead_provider.search(config.filters, config.limit)
            created = self.store.add_leads(campaign_id, result.leads)
        except OutreachError as e:
            failure = BestEffortError(f"Lead generation failed: {e}")
            logger.warning("Campaign %d: %s", campaign_id, failure)
            return StepOutcome(success=True, leads_generated=0, data={"lead_generation_error": str(failure)})
        except Exception as e:
            failure = BestEffortError(f"Lead generation failed: {e}")
            logger.exception("Unexpected lead generation error for campaign %d", campaign_id)
            return StepOutcome(success=True, leads_generated=0, data={"lead_generation_error": str(failure)})

        logger.info("Lead generation added %d of %d leads to campaign %d", len(created), result.count, campaign_id)
        return StepOutcome(success=True, leads_generated=len(created), data={"leads_generated": len(created)})

    def _execute_channel_action(self, step: Step, lead: CampaignLead, account_id: str | None) -> StepOutcome:
        dispatcher = self.dispatchers.get(step.type)
        if dispatcher is None:
            return StepOutcome(success=False, error=f"Unsupported step type: {step.type}")

        try:
            result: DispatchResult = dispatcher.execute(step.type, lead, step.config, account_id=account_id)
        except OutreachError as e:
            logger.error("%s failed for lead %d: %s", step.type, lead.id, e)
            return StepOutcome(success=False, error=str(e))
        except Exception as e:
            logger.exception("Unexpected %s error for lead %d", step.type, lead.id)
            return StepOutcome(success=False, error=str(e))

        if not result.success:
            return StepOutcome(success=False, error=result.error or f"{step.type} failed", data=result.data)

        updates = result.data.pop("lead_data", None)
        if updates:
            self.store.merge_lead_data(lead.id, updates)
        return StepOutcome(success=True, data=result.data)
