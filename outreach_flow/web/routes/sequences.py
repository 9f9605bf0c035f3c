from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from outreach_flow.errors import NotFoundError
from outreach_flow.outreach.sequence_scheduler import SequenceScheduler, get_sequence_status
from outreach_flow.store import EntityStore
from outreach_flow.web.deps import get_store

router = APIRouter()


class SequenceIn(BaseModel):
    campaign_id: int
    account_id: str = Field(min_length=1)
    profile_ids: list[str] = Field(min_length=1)
    message: str = ""
    daily_limit: int | None = Field(default=None, ge=1)
    start_date: date | None = None


@router.post("", status_code=201)
def create_sequence(body: SequenceIn, store: EntityStore = Depends(get_store)):
    if not store.get_campaign(body.campaign_id):
        raise NotFoundError(f"Campaign {body.campaign_id} not found")

    plan = SequenceScheduler(store).create_sequence(
        campaign_id=body.campaign_id,
        account_id=body.account_id,
        profile_ids=body.profile_ids,
        message=body.message,
        daily_limit=body.daily_limit,
        start_date=body.start_date,
    )
    return {
        "sequence_id": plan.sequence_id,
        "daily_limit": plan.daily_limit,
        "estimated_days": plan.estimated_days,
        "estimated_weeks": plan.estimated_weeks,
        "slots": [
            {"profile_id": s.profile_id, "scheduled_time": s.scheduled_time.isoformat(), "day": s.day.isoformat()}
            for s in plan.slots
        ],
    }


@router.get("/{sequence_id}")
def sequence_status(sequence_id: int, store: EntityStore = Depends(get_store)):
    return get_sequence_status(store, sequence_id)
