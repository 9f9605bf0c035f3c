import json
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every datetime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _loads(raw: str) -> dict:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return {}
    return value if isinstance(value, dict) else {}


# --- Enums ---

class CampaignStatus(str, Enum):
    draft = "draft"
    running = "running"
    paused = "paused"
    stopped = "stopped"
    completed = "completed"


class LeadStatus(str, Enum):
    active = "active"
    completed = "completed"
    failed = "failed"          # configuration error, not retried


class ActivityStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    error = "error"


class Channel(str, Enum):
    linkedin = "linkedin"
    email = "email"
    voice = "voice"
    web = "web"


class SequenceStatus(str, Enum):
    active = "active"
    paused = "paused"
    completed = "completed"


class SlotStatus(str, Enum):
    pending = "pending"
    sent = "sent"
    failed = "failed"


# --- Models ---

class Campaign(SQLModel, table=True):
    __tablename__ = "campaigns"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(default="", index=True)
    name: str = ""
    status: CampaignStatus = CampaignStatus.draft
    workflow: str = ""  # JSON string of {"steps": [...], "edges": [...]}
    linkedin_account_id: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def workflow_data(self) -> dict:
        return _loads(self.workflow)


class CampaignLead(SQLModel, table=True):
    __tablename__ = "campaign_leads"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(default="", index=True)
    campaign_id: int = Field(foreign_key="campaigns.id", index=True)
    current_step_id: Optional[str] = None
    status: LeadStatus = LeadStatus.active

    lead_data: str = ""  # JSON string: name, title, headline, email, linkedin_url, ...
    custom_fields: str = ""  # JSON string
    engagement_score: float = 0.0
    error_message: Optional[str] = None

    last_activity_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def data(self) -> dict:
        return _loads(self.lead_data)

    @property
    def fields(self) -> dict:
        return _loads(self.custom_fields)


class LeadActivity(SQLModel, table=True):
    __tablename__ = "lead_activities"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(default="", index=True)
    campaign_id: int = Field(foreign_key="campaigns.id", index=True)
    lead_id: int = Field(foreign_key="campaign_leads.id", index=True)
    step_id: str = Field(index=True)
    step_type: str = ""
    channel: Channel = Channel.web
    status: ActivityStatus = ActivityStatus.pending
    scheduled_at: Optional[datetime] = None  # delay steps only
    error_message: Optional[str] = None
    result: str = ""  # JSON string of dispatcher data

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def result_data(self) -> dict:
        return _loads(self.result)


class OutreachSequence(SQLModel, table=True):
    __tablename__ = "outreach_sequences"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(default="", index=True)
    campaign_id: int = Field(foreign_key="campaigns.id", index=True)
    account_id: str = Field(index=True)
    total_profiles: int = 0
    daily_limit: int = 0
    estimated_days: int = 0
    estimated_weeks: int = 0
    start_date: date
    message: str = ""
    status: SequenceStatus = SequenceStatus.active

    created_at: datetime = Field(default_factory=utcnow)


class SendingSlot(SQLModel, table=True):
    __tablename__ = "sending_slots"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: str = Field(default="", index=True)
    sequence_id: int = Field(foreign_key="outreach_sequences.id", index=True)
    profile_id: str = ""
    scheduled_time: datetime = Field(index=True)
    day: date = Field(index=True)
    status: SlotStatus = SlotStatus.pending
    details: str = ""  # JSON string: provider response or error
    sent_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def details_data(self) -> dict:
        return _loads(self.details)
