"""
Lead Conversation Hub — Conversation Models
=============================================

Canonical conversation shapes (Message, Thread, Conversation), the derived
analytics projection (ProcessedConversation) and the dashboard metric/chart
payloads built from them.

Raw backend records are described with TypedDicts: every key optional,
validated and narrowed by the processors before anything canonical is built.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, TypedDict

from pydantic import BaseModel, ConfigDict, Field

INBOUND_EMAIL = "inbound-email"
OUTBOUND_EMAIL = "outbound-email"


# ─── Raw API Records ────────────────────────────────────────

# "from" is a keyword, hence the functional syntax
RawMessage = TypedDict(
    "RawMessage",
    {
        "id": str,
        "response_id": str,
        "conversation_id": str,
        "sender": str,
        "sender_email": str,
        "from": str,
        "recipient": str,
        "receiver": str,
        "to": str,
        "receiver_email": str,
        "sender_name": str,
        "from_name": str,
        "body": str,
        "content": str,
        "subject": str,
        "timestamp": Any,
        "type": str,
        "read": Any,
        "ev_score": Any,
        "associated_account": str,
        "in_reply_to": Optional[str],
        "is_first_email": Any,
        "metadata": Dict[str, Any],
    },
    total=False,
)


class RawThread(TypedDict, total=False):
    conversation_id: str
    id: str
    associated_account: str
    createdAt: str
    created_at: str
    updatedAt: str
    updated_at: str
    lastMessageAt: str
    last_updated: str
    lead_name: str
    source_name: str
    name: str
    client_name: str
    sender_name: str
    client_email: str
    source: str
    email: str
    sender_email: str
    lead_email: str
    phone: str
    phone_number: str
    contact_phone: str
    location: str
    address: str
    city: str
    area: str
    channel: str
    ai_summary: str
    summary: str
    lcp_enabled: Any
    lcp_flag_threshold: Any
    flag: Any
    flag_for_review: Any
    flag_review_override: Any
    spam: Any
    busy: Any
    read: Any
    completed: Any
    budget_range: str
    budget: str
    timeline: str
    timeframe: str
    preferred_property_types: str
    property_types: str
    priority: str
    subject: str


class RawConversationItem(TypedDict, total=False):
    thread: RawThread
    messages: List[RawMessage]


# ─── Canonical Conversation Models ──────────────────────────

class Message(BaseModel):
    """A single inbound/outbound communication within a conversation."""
    model_config = ConfigDict(frozen=True)

    id: str
    conversation_id: str
    response_id: Optional[str] = None
    sender_name: str = "Unknown"
    sender_email: str = ""
    recipient_email: str = ""
    body: str = ""
    subject: str = ""
    timestamp: str
    local_date: datetime
    type: str = INBOUND_EMAIL
    read: bool = False
    ev_score: Optional[float] = None
    associated_account: str = ""
    in_reply_to: Optional[str] = None
    is_first_email: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def direction(self) -> Optional[str]:
        """'inbound' / 'outbound' for any channel, None for unknown types."""
        if self.type.startswith("inbound"):
            return "inbound"
        if self.type.startswith("outbound"):
            return "outbound"
        return None


class Thread(BaseModel):
    """Per-conversation metadata: lead details, status flags, derived scores."""
    model_config = ConfigDict(frozen=True)

    conversation_id: str
    associated_account: str = ""

    created_at: str
    updated_at: str
    last_message_at: str

    lead_name: str = "Unknown Lead"
    client_email: str = ""
    phone: str = ""
    location: str = ""
    source_name: str = ""

    ai_summary: str = ""
    lcp_enabled: bool = False
    lcp_flag_threshold: Optional[float] = None

    flag: bool = False
    flag_for_review: bool = False
    flag_review_override: bool = False
    spam: bool = False
    busy: bool = False
    read: bool = False
    completed: bool = False

    budget_range: str = ""
    timeline: str = ""
    preferred_property_types: str = ""
    priority: str = "normal"
    subject: str = ""

    ai_score: Optional[float] = None


class Conversation(BaseModel):
    """One thread plus the messages exchanged in it."""
    model_config = ConfigDict(frozen=True)

    thread: Thread
    messages: List[Message] = Field(default_factory=list)


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    COMPLETED = "completed"
    FLAGGED = "flagged"
    SPAM = "spam"


class ProcessedConversation(Conversation):
    """Conversation decorated with derived, read-only analytics fields."""
    ev_score: Optional[float] = None
    status: ConversationStatus = ConversationStatus.ACTIVE
    last_activity: str = ""


# ─── Filtering & Sorting ────────────────────────────────────

class SortField(str, Enum):
    DATE = "date"
    LAST_MESSAGE = "last_message"
    NAME = "name"
    EV_SCORE = "ev_score"
    STATUS = "status"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SortConfig(BaseModel):
    field: SortField = SortField.DATE
    direction: SortDirection = SortDirection.DESC


class ConversationFilters(BaseModel):
    """Conversation list filters; every populated filter must match."""
    status: List[ConversationStatus] = Field(default_factory=list)
    ev_score_range: Tuple[float, float] = (0.0, 100.0)
    date_range: Tuple[Optional[datetime], Optional[datetime]] = (None, None)
    search_query: str = ""
    show_pending_only: bool = False


class AnalyticsFilters(BaseModel):
    """Filters used by the analytics screen."""
    conversation_status: str = Field("all", description="all | active | completed | flagged")
    lead_source: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


# ─── Per-conversation Stats ─────────────────────────────────

class ConversationStats(BaseModel):
    total_messages: int = 0
    client_messages: int = 0
    user_messages: int = 0
    duration_seconds: float = 0.0
    avg_response_seconds: float = 0.0
    first_message: Optional[str] = None
    last_message: Optional[str] = None
    first_message_type: Optional[str] = None
    last_message_type: Optional[str] = None


class ConversationMetrics(BaseModel):
    """Status counts across a processed conversation list."""
    total: int = 0
    active: int = 0
    pending: int = 0
    completed: int = 0
    flagged: int = 0
    spam: int = 0
    average_ev_score: float = 0.0


class KeyMetrics(BaseModel):
    total_leads: int = 0
    conversion_rate: float = 0.0
    average_response_time: int = 0
    active_leads: int = 0


class EVDataPoint(BaseModel):
    message_number: int
    average_ev: float
    total_messages: int
    conversation_count: int


# ─── Dashboard Models ───────────────────────────────────────

class ChartDataset(BaseModel):
    label: str
    data: List[float] = Field(default_factory=list)


class ChartData(BaseModel):
    labels: List[str] = Field(default_factory=list)
    datasets: List[ChartDataset] = Field(default_factory=list)


class FunnelStage(BaseModel):
    stage: str
    count: int
    percentage: int


class DashboardMetrics(BaseModel):
    total_conversations: int = 0
    active_conversations: int = 0
    total_leads: int = 0
    conversion_rate: int = 0
    average_response_time: int = Field(0, description="Minutes, inbound→outbound only")
    monthly_growth: int = 0


class DashboardAnalytics(BaseModel):
    conversation_trend: ChartData
    lead_source_breakdown: ChartData
    response_time_trend: ChartData
    conversion_funnel: ChartData
    funnel_stages: List[FunnelStage] = Field(default_factory=list)


class DashboardUsage(BaseModel):
    emails_sent: int = 0
    logins: int = 0
    active_days: int = 0


class UsageStats(BaseModel):
    emails_sent: int = 0
    logins: int = 0
    active_days: int = 0
    average_emails_per_day: int = 0
    engagement_rate: int = 0


class TrendData(BaseModel):
    current: float
    previous: float
    change: float
    change_percent: float
    direction: str = Field(description="up | down | stable")


class DashboardData(BaseModel):
    """Everything the dashboard needs, built from one raw threads payload."""
    conversations: List[Conversation] = Field(default_factory=list)
    processed: List[ProcessedConversation] = Field(default_factory=list)
    metrics: DashboardMetrics
    analytics: DashboardAnalytics
    conversation_metrics: ConversationMetrics
    usage: UsageStats
    generated_at: datetime
