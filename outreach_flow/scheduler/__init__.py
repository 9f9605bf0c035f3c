"""Periodic triggers for the workflow engine and slot processor."""

from outreach_flow.scheduler.jobs import slot_tick, start_scheduler, stop_scheduler, workflow_tick

__all__ = ["workflow_tick", "slot_tick", "start_scheduler", "stop_scheduler"]
