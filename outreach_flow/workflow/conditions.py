"""Condition evaluation for branching workflow steps.

``evaluate`` is pure: it reads the step config, the lead and the prior step's
result and returns a bool. It never writes to the lead or the database.
Unknown condition kinds and unknown operators evaluate to False.
"""

import logging
from datetime import datetime

from outreach_flow.errors import StepValidationError
from outreach_flow.models import CampaignLead, utcnow
from outreach_flow.workflow.definition import ConditionConfig, Step, parse_step_config

logger = logging.getLogger(__name__)


def evaluate(step: Step, lead: CampaignLead, prior_result: dict | None = None, now: datetime | None = None) -> bool:
    try:
        config = parse_step_config("condition", step.config)
    except StepValidationError:
        logger.warning("Condition step %s has no condition configured", step.id)
        return False

    handler = _HANDLERS.get(config.condition_type)
    if handler is None:
        logger.warning("Unknown condition type %r on step %s", config.condition_type, step.id)
        return False

    return handler(config, lead, prior_result or {}, now or utcnow())


def _response_received(config: ConditionConfig, lead: CampaignLead, prior: dict, now: datetime) -> bool:
    return bool(prior.get("responseReceived") or prior.get("response_received"))


def _profile_matches(config: ConditionConfig, lead: CampaignLead, prior: dict, now: datetime) -> bool:
    criteria = config.profile_criteria
    data = lead.data

    if criteria.title:
        title = data.get("title") or data.get("headline") or ""
        if criteria.title.lower() not in str(title).lower():
            return False

    if criteria.seniority:
        seniority = data.get("seniority_level") or data.get("seniority") or ""
        if seniority != criteria.seniority:
            return False

    if criteria.industry:
        industry = data.get("industry") or ""
        if criteria.industry.lower() not in str(industry).lower():
            return False

    return True


def _engagement_level(config: ConditionConfig, lead: CampaignLead, prior: dict, now: datetime) -> bool:
    return (lead.engagement_score or 0) >= config.min_engagement_score


def _time_elapsed(config: ConditionConfig, lead: CampaignLead, prior: dict, now: datetime) -> bool:
    reference = lead.last_activity_at or lead.created_at
    if reference is None:
        return False
    days = (now - reference).total_seconds() / 86400
    return days >= config.days_elapsed


def _custom_field(config: ConditionConfig, lead: CampaignLead, prior: dict, now: datetime) -> bool:
    actual = lead.fields.get(config.field_name) if config.field_name else None
    expected = config.expected_value
    op = config.operator

    if op == "equals":
        return actual == expected
    if op == "not_equals":
        return actual != expected
    if op == "contains":
        if actual is None or expected is None:
            return False
        return str(expected) in str(actual)
    if op in ("greater_than", "less_than"):
        try:
            a, b = float(actual), float(expected)
        except (TypeError, ValueError):
            return False
        return a > b if op == "greater_than" else a < b

    logger.warning("Unknown custom_field operator %r", op)
    return False


_HANDLERS = {
    "response_received": _response_received,
    "profile_matches": _profile_matches,
    "engagement_level": _engagement_level,
    "time_elapsed": _time_elapsed,
    "custom_field": _custom_field,
}
