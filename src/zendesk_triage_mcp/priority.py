"""
Ticket priority scoring.

The score combines four factors:
1. SLA enterprise tag (flat boost)
2. Age of the ticket (5 points per day)
3. Time since the last comment (10 points per day)
4. Status (open > new > pending > review/bug states)
"""
import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Union

from pydantic import BaseModel, Field

SLA_TAG = "sla_enterprise"
SLA_SCORE = 100
AGE_POINTS_PER_DAY = 5
RESPONSE_POINTS_PER_DAY = 10

STATUS_SCORES = {
    "open": 100,
    "new": 75,
    "pending": 25,
    "feature request review pending": 0,
    "eng confirmed bug": 0,
}

Timestamp = Union[str, datetime]


class PriorityBreakdown(BaseModel):
    """Score components; dump with by_alias=True for the published key names"""
    sla_score: int = Field(serialization_alias="sla_enterprise")
    age_score: float
    response_score: float
    status_score: int
    total: int


def parse_timestamp(value: Timestamp) -> datetime:
    """Parse a Zendesk timestamp; naive values are taken as UTC"""
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    else:
        parsed = value
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def hours_since(value: Timestamp, now: datetime) -> float:
    return (parse_timestamp(now) - parse_timestamp(value)).total_seconds() / 3600


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def status_score(status: Optional[str]) -> int:
    return STATUS_SCORES.get((status or "").lower(), 0)


def latest_comment(comments: Iterable[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Return the newest comment; on equal timestamps the earliest in order wins"""
    latest = None
    latest_at = None
    for comment in comments:
        created_at = parse_timestamp(comment["created_at"])
        if latest is None or created_at > latest_at:
            latest, latest_at = comment, created_at
    return latest


def score_ticket(
    ticket: Dict[str, Any],
    comments: Iterable[Dict[str, Any]],
    now: Optional[datetime] = None
) -> PriorityBreakdown:
    """
    Calculate the priority of a ticket.

    Args:
        ticket: Ticket fields; uses tags, created_at and status
        comments: Ticket comments; uses created_at
        now: Reference time (default: current UTC time)
    """
    if now is None:
        now = datetime.now(timezone.utc)

    sla = SLA_SCORE if SLA_TAG in (ticket.get("tags") or []) else 0

    age = (hours_since(ticket["created_at"], now) / 24) * AGE_POINTS_PER_DAY

    response = 0.0
    latest = latest_comment(comments)
    if latest is not None:
        response = (hours_since(latest["created_at"], now) / 24) * RESPONSE_POINTS_PER_DAY

    status = status_score(ticket.get("status"))

    return PriorityBreakdown(
        sla_score=sla,
        age_score=age,
        response_score=response,
        status_score=status,
        total=round_half_up(sla + age + response + status),
    )
