from fastapi import APIRouter, Depends

from outreach_flow.outreach.slot_processor import SlotProcessor
from outreach_flow.store import EntityStore
from outreach_flow.web.deps import get_store
from outreach_flow.workflow.engine import build_engine

router = APIRouter()


@router.post("/delays")
def resume_delays(store: EntityStore = Depends(get_store)):
    return build_engine(store).resume_due_delays()


@router.post("/slots/{account_id}")
def process_slots(account_id: str, store: EntityStore = Depends(get_store)):
    return SlotProcessor(store).process_pending_slots(account_id)
