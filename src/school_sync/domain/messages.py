"""Domain models for the shared chat."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Message:
    """A chat message as stored remotely."""

    id: str
    school_id: str
    school_name: str
    content: str
    timestamp: datetime
