"""Dispatch due sending slots for one LinkedIn account.

Each slot is resolved against the target's current relationship with the
account before anything is sent:
  - not connected          -> connection invite (with the sequence message)
  - connected / outgoing   -> direct message, never a second invite
  - incoming request       -> accept, then message
"""

import logging
import random
import time
from datetime import datetime
from typing import Callable

from outreach_flow.channels.base import RelationshipStatus, personalize
from outreach_flow.channels.unipile import UnipileClient
from outreach_flow.config import settings
from outreach_flow.errors import OutreachError, ProviderError
from outreach_flow.locks import KeyedLock, sequence_locks
from outreach_flow.models import OutreachSequence, SendingSlot, SlotStatus, utcnow
from outreach_flow.store import EntityStore

logger = logging.getLogger(__name__)


class SlotProcessor:
    def __init__(
        self,
        store: EntityStore,
        client: UnipileClient | None = None,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
        locks: KeyedLock = sequence_locks,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.client = client or UnipileClient()
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.locks = locks
        self.clock = clock

    def process_pending_slots(self, account_id: str) -> dict:
        now = self.clock()
        due = self.store.get_due_slots(account_id, now.date(), now=now)
        if not due:
            logger.debug("No due slots for account %s", account_id)
            return {"processed": 0, "failed": 0}

        logger.info("Processing %d due slots for account %s", len(due), account_id)
        processed = failed = 0

        for i, (slot, sequence) in enumerate(due):
            if i > 0:
                self._pace()

            outcome = self._process_slot(slot, sequence, account_id)
            if outcome is None:
                continue
            if outcome:
                processed += 1
            else:
                failed += 1

        logger.info("Account %s slot pass done: %d sent, %d failed", account_id, processed, failed)
        return {"processed": processed, "failed": failed}

    def _pace(self) -> None:
        delay = self.rng.uniform(settings.send_delay_min_seconds, settings.send_delay_max_seconds)
        self.sleep(delay)

    def _process_slot(self, slot: SendingSlot, sequence: OutreachSequence, account_id: str) -> bool | None:
        """Send one slot. True when sent, False when failed, None when skipped."""
        with self.locks.hold(f"sequence:{sequence.id}"):
            current = self.store.get_slot(slot.id)
            if current is None or current.status != SlotStatus.pending:
                logger.info("Slot %d already handled, skipping", slot.id)
                return None

            try:
                meta = self._send(slot, sequence, account_id)
            except OutreachError as e:
                logger.error("Slot %d (%s) failed: %s", slot.id, slot.profile_id, e)
                self.store.update_slot_status(slot.id, SlotStatus.failed, {"error": str(e)})
                return False
            except Exception as e:
                logger.exception("Unexpected error on slot %d", slot.id)
                self.store.update_slot_status(slot.id, SlotStatus.failed, {"error": str(e)})
                return False

            self.store.update_slot_status(slot.id, SlotStatus.sent, meta)
            return True

    def _send(self, slot: SendingSlot, sequence: OutreachSequence, account_id: str) -> dict:
        profile = self.client.lookup_profile(slot.profile_id, account_id)
        status = profile.relationship_status
        message = personalize(sequence.message, profile.raw) if sequence.message else ""
        if not message and status != RelationshipStatus.not_connected:
            raise ProviderError(f"Sequence {sequence.id} has no message for a connected profile")

        if status == RelationshipStatus.not_connected:
            result = self.client.send_invite(account_id, profile.private_id, message)
        elif status in (RelationshipStatus.connected, RelationshipStatus.pending_outgoing):
            result = self.client.send_message(account_id, profile.private_id, message)
        else:
            accepted = self.client.accept_invite(account_id, profile.private_id)
            result = self.client.send_message(account_id, profile.private_id, message)
            result["accept_response"] = accepted.get("response")
            result["action_taken"] = "invitation_accepted_and_messaged"

        result["relationship_status"] = status.value
        logger.info("Slot %d: %s for %s", slot.id, result["action_taken"], slot.profile_id)
        return result


def process_pending_slots(account_id: str, tenant_id: str, now: datetime | None = None, **kwargs) -> dict:
    """Tick entry point: process due slots for one account within a tenant."""
    store = EntityStore(tenant_id=tenant_id)
    if now is not None:
        kwargs.setdefault("clock", lambda: now)
    return SlotProcessor(store, **kwargs).process_pending_slots(account_id)
