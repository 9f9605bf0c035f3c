"""Drive leads through their campaign's workflow graph.

A pass starts at the lead's current step (or the unique start step) and runs
until the lead parks on a delay, reaches an end, fails a step, or hits a
fatal configuration problem. Step failures leave ``current_step_id`` where it
was so the next pass retries; configuration problems mark the lead failed.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable

from outreach_flow.config import settings
from outreach_flow.errors import ConfigurationError, DanglingStep, NoStartStep, RunawayWorkflow
from outreach_flow.locks import KeyedLock, lead_locks
from outreach_flow.models import Campaign, CampaignLead, CampaignStatus, LeadStatus, utcnow
from outreach_flow.store import EntityStore
from outreach_flow.workflow.conditions import evaluate
from outreach_flow.workflow.definition import CampaignDefinition
from outreach_flow.workflow.executor import StepExecutor

logger = logging.getLogger(__name__)


class HaltReason(str, Enum):
    delay_pending = "delay_pending"
    completed = "completed"
    step_failed = "step_failed"
    campaign_inactive = "campaign_inactive"
    lead_inactive = "lead_inactive"
    no_start_step = "no_start_step"
    dangling_step = "dangling_step"
    runaway_workflow = "runaway_workflow"
    configuration_error = "configuration_error"


@dataclass
class WorkflowResult:
    ok: bool
    halted_reason: HaltReason
    last_step_id: str | None = None
    error: str | None = None
    delay_until: datetime | None = None


class WorkflowEngine:
    def __init__(
        self,
        store: EntityStore,
        executor: StepExecutor | None = None,
        max_iterations: int | None = None,
        locks: KeyedLock = lead_locks,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.executor = executor or StepExecutor(store, clock=clock)
        self.max_iterations = settings.max_workflow_iterations if max_iterations is None else max_iterations
        self.locks = locks
        self.clock = clock

    def process_lead_workflow(
        self,
        campaign_id: int,
        lead: CampaignLead,
        definition: CampaignDefinition,
        account_id: str | None = None,
    ) -> WorkflowResult:
        with self.locks.hold(f"lead:{lead.id}"):
            # Another pass may have moved the lead while we waited for the lock
            lead = self.store.get_lead(lead.id) or lead
            return self._run(campaign_id, lead, definition, account_id)

    def _run(self, campaign_id, lead, definition, account_id) -> WorkflowResult:
        if lead.status != LeadStatus.active:
            return WorkflowResult(ok=True, halted_reason=HaltReason.lead_inactive, last_step_id=lead.current_step_id)

        current_id = lead.current_step_id
        if not current_id:
            try:
                current_id = definition.start_step().id
            except NoStartStep as e:
                return self._fatal(lead, HaltReason.no_start_step, e, None)
            self.store.update_lead_current_step(lead.id, current_id)

        prior_result = self.store.get_last_result(lead.id)
        iterations = 0

        while True:
            if iterations >= self.max_iterations:
                return self._fatal(
                    lead, HaltReason.runaway_workflow,
                    RunawayWorkflow(current_id, self.max_iterations), current_id,
                )
            iterations += 1

            if not self._still_running(campaign_id):
                logger.info("Campaign %d no longer running, lead %d stays at %s", campaign_id, lead.id, current_id)
                return WorkflowResult(ok=True, halted_reason=HaltReason.campaign_inactive, last_step_id=current_id)

            step = definition.step(current_id)
            if step is None:
                return self._fatal(
                    lead, HaltReason.dangling_step,
                    DanglingStep(f"Step {current_id} not found in workflow", current_id), current_id,
                )

            logger.debug("Lead %d executing step %s (%s)", lead.id, step.id, step.type)
            outcome = self.executor.execute_step(campaign_id, lead, step, account_id=account_id)

            if not outcome.success:
                if outcome.fatal:
                    return self._fatal(
                        lead, HaltReason.configuration_error,
                        ConfigurationError(outcome.error or "invalid step"), step.id,
                    )
                logger.warning("Lead %d halted at step %s: %s", lead.id, step.id, outcome.error)
                return WorkflowResult(
                    ok=False, halted_reason=HaltReason.step_failed,
                    last_step_id=step.id, error=outcome.error,
                )

            if step.type == "delay" and outcome.delay_pending:
                logger.info("Lead %d waiting at %s until %s", lead.id, step.id, outcome.delay_until)
                return WorkflowResult(
                    ok=True, halted_reason=HaltReason.delay_pending,
                    last_step_id=step.id, delay_until=outcome.delay_until,
                )

            if step.type == "end":
                logger.info("Lead %d reached end step %s", lead.id, step.id)
                return WorkflowResult(ok=True, halted_reason=HaltReason.completed, last_step_id=step.id)

            if step.type == "condition":
                met = evaluate(step, lead, prior_result, now=self.clock())
                next_id = definition.next_step_id(step, met)
                if next_id is None:
                    handle = "yes" if met else "no"
                    return self._fatal(
                        lead, HaltReason.dangling_step,
                        DanglingStep(f"Condition {step.id} has no '{handle}' edge", step.id), step.id,
                    )
            else:
                next_id = definition.next_step_id(step)
                if next_id is None:
                    # No outgoing edge: the lead is done
                    self.store.mark_lead_completed(lead.id)
                    logger.info("Lead %d completed at %s (no outgoing edge)", lead.id, step.id)
                    return WorkflowResult(ok=True, halted_reason=HaltReason.completed, last_step_id=step.id)
                if outcome.data:
                    prior_result = outcome.data

            self.store.update_lead_current_step(lead.id, next_id)
            current_id = next_id

    def _fatal(self, lead: CampaignLead, reason: HaltReason, error: Exception, step_id: str | None) -> WorkflowResult:
        logger.error("Lead %d halted (%s): %s", lead.id, reason.value, error)
        self.store.mark_lead_failed(lead.id, str(error))
        return WorkflowResult(ok=False, halted_reason=reason, last_step_id=step_id, error=str(error))

    # --- Periodic entry points ---

    def process_campaign(self, campaign_id: int) -> dict:
        """Advance every active lead of a running campaign by one pass."""
        summary = {"processed": 0, "completed": 0, "waiting": 0, "failed": 0, "errors": 0}

        campaign = self.store.get_campaign(campaign_id)
        if not campaign or campaign.status != CampaignStatus.running:
            logger.info("Campaign %s not running, skipping", campaign_id)
            return summary

        definition = CampaignDefinition.from_workflow(campaign.workflow_data, campaign.id)
        for lead in self.store.get_leads_for_campaign(campaign_id, status=LeadStatus.active):
            if not self._still_running(campaign_id):
                logger.info("Campaign %d paused or stopped mid-pass", campaign_id)
                break
            self._process_one(campaign, lead, definition, summary)

        logger.info("Campaign %d pass complete: %s", campaign_id, summary)
        return summary

    def resume_due_delays(self) -> dict:
        """Re-enter the workflow for leads whose delay has elapsed."""
        summary = {"processed": 0, "completed": 0, "waiting": 0, "failed": 0, "errors": 0}
        definitions: dict[int, tuple[Campaign, CampaignDefinition]] = {}

        for lead in self.store.get_due_delayed_leads(now=self.clock()):
            if not self._still_running(lead.campaign_id):
                continue
            if lead.campaign_id not in definitions:
                campaign = self.store.get_campaign(lead.campaign_id)
                definitions[lead.campaign_id] = (
                    campaign, CampaignDefinition.from_workflow(campaign.workflow_data, campaign.id),
                )
            campaign, definition = definitions[lead.campaign_id]
            self._process_one(campaign, lead, definition, summary)

        logger.info("Delay resume pass complete: %s", summary)
        return summary

    def run_tick(self) -> dict:
        """One scheduler tick: resume due delays, then advance running campaigns."""
        totals = self.resume_due_delays()
        for campaign in self.store.list_running_campaigns():
            for key, value in self.process_campaign(campaign.id).items():
                totals[key] += value
        return totals

    def _still_running(self, campaign_id: int) -> bool:
        campaign = self.store.get_campaign(campaign_id)
        return bool(campaign and campaign.status == CampaignStatus.running)

    def _process_one(self, campaign: Campaign, lead: CampaignLead, definition: CampaignDefinition, summary: dict) -> None:
        try:
            result = self.process_lead_workflow(
                campaign.id, lead, definition, account_id=campaign.linkedin_account_id,
            )
        except Exception:
            logger.exception("Unexpected error processing lead %d", lead.id)
            summary["errors"] += 1
            return

        summary["processed"] += 1
        if result.halted_reason == HaltReason.completed:
            summary["completed"] += 1
        elif result.halted_reason == HaltReason.delay_pending:
            summary["waiting"] += 1
        elif not result.ok:
            summary["failed"] += 1


def build_engine(store: EntityStore) -> WorkflowEngine:
    """Engine wired with the configured dispatchers and lead provider."""
    from outreach_flow.leadgen import ApolloLeadProvider

    provider = ApolloLeadProvider() if settings.apollo_api_key else None
    return WorkflowEngine(store, executor=StepExecutor(store, lead_provider=provider))
