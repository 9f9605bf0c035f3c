import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from outreach_flow.errors import NotFoundError
from outreach_flow.models import Campaign, CampaignStatus, LeadStatus
from outreach_flow.store import EntityStore
from outreach_flow.web.deps import get_store
from outreach_flow.workflow.definition import CampaignDefinition, validate_definition
from outreach_flow.workflow.engine import build_engine

logger = logging.getLogger(__name__)

router = APIRouter()


class CampaignIn(BaseModel):
    name: str = Field(min_length=1)
    workflow: dict
    linkedin_account_id: str | None = None


class WorkflowIn(BaseModel):
    workflow: dict


class StatusIn(BaseModel):
    status: CampaignStatus


class LeadsIn(BaseModel):
    leads: list[dict]


def _campaign_out(campaign: Campaign, store: EntityStore | None = None) -> dict:
    out = {
        "id": campaign.id,
        "name": campaign.name,
        "status": campaign.status.value,
        "linkedin_account_id": campaign.linkedin_account_id,
        "workflow": campaign.workflow_data,
        "created_at": campaign.created_at.isoformat(),
        "updated_at": campaign.updated_at.isoformat(),
    }
    if store is not None:
        leads = store.get_leads_for_campaign(campaign.id)
        out["leads"] = {status.value: 0 for status in LeadStatus}
        for lead in leads:
            out["leads"][lead.status.value] += 1
    return out


def _require(store: EntityStore, campaign_id: int) -> Campaign:
    campaign = store.get_campaign(campaign_id)
    if not campaign:
        raise NotFoundError(f"Campaign {campaign_id} not found")
    return campaign


@router.post("", status_code=201)
def create_campaign(body: CampaignIn, store: EntityStore = Depends(get_store)):
    validate_definition(CampaignDefinition.from_workflow(body.workflow))
    campaign = store.create_campaign(body.name, body.workflow, linkedin_account_id=body.linkedin_account_id)
    return _campaign_out(campaign)


@router.get("/{campaign_id}")
def get_campaign(campaign_id: int, store: EntityStore = Depends(get_store)):
    return _campaign_out(_require(store, campaign_id), store)


@router.put("/{campaign_id}/workflow")
def update_workflow(campaign_id: int, body: WorkflowIn, store: EntityStore = Depends(get_store)):
    _require(store, campaign_id)
    validate_definition(CampaignDefinition.from_workflow(body.workflow, campaign_id))
    return _campaign_out(store.update_campaign_workflow(campaign_id, body.workflow))


@router.post("/{campaign_id}/status")
def set_status(campaign_id: int, body: StatusIn, store: EntityStore = Depends(get_store)):
    _require(store, campaign_id)
    return _campaign_out(store.set_campaign_status(campaign_id, body.status))


@router.post("/{campaign_id}/leads", status_code=201)
def add_leads(campaign_id: int, body: LeadsIn, store: EntityStore = Depends(get_store)):
    _require(store, campaign_id)
    created = store.add_leads(campaign_id, body.leads)
    return {"added": len(created), "skipped": len(body.leads) - len(created), "lead_ids": [lead.id for lead in created]}


@router.post("/{campaign_id}/run")
def run_campaign(campaign_id: int, store: EntityStore = Depends(get_store)):
    _require(store, campaign_id)
    return build_engine(store).process_campaign(campaign_id)


@router.get("/{campaign_id}/activities")
def list_activities(campaign_id: int, lead_id: int | None = None, store: EntityStore = Depends(get_store)):
    _require(store, campaign_id)
    return [
        {
            "id": a.id,
            "lead_id": a.lead_id,
            "step_id": a.step_id,
            "step_type": a.step_type,
            "channel": a.channel.value,
            "status": a.status.value,
            "scheduled_at": a.scheduled_at.isoformat() if a.scheduled_at else None,
            "error_message": a.error_message,
            "result": a.result_data,
            "created_at": a.created_at.isoformat(),
        }
        for a in store.get_activities(campaign_id, lead_id=lead_id)
    ]
