"""LinkedIn outreach sequences: slot planning and dispatch."""

from outreach_flow.outreach.sequence_scheduler import (
    PlannedSlot,
    SequencePlan,
    SequenceScheduler,
    get_sequence_status,
)
from outreach_flow.outreach.slot_processor import SlotProcessor, process_pending_slots

__all__ = [
    "PlannedSlot",
    "SequencePlan",
    "SequenceScheduler",
    "get_sequence_status",
    "SlotProcessor",
    "process_pending_slots",
]
