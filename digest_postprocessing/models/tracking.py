"""
TopicKey and TrackingContext — value types for topic counting and attribution.
"""
from dataclasses import dataclass
from typing import Literal, Optional


@dataclass(frozen=True)
class TopicKey:
    """Deduplication key for one topic: numeric id preferred, title as fallback."""

    kind: Literal["id", "title"]
    value: str

    @classmethod
    def from_id(cls, topic_id: str) -> "TopicKey":
        return cls("id", topic_id)

    @classmethod
    def from_title(cls, title: str) -> "TopicKey":
        return cls("title", title)

    def __str__(self) -> str:
        return f"{self.kind}:{self.value}"


@dataclass(frozen=True)
class TrackingContext:
    """Attribution tuple carried by redirected excerpt links."""

    user_id: int
    email_id: Optional[str]
    topic_id: Optional[str] = None

    @property
    def has_email_id(self) -> bool:
        return bool(self.email_id)

    def value(self) -> str:
        """Tracking parameter value: ``<user_id>-<topic_id-or-empty>-<email_id>``."""
        return f"{self.user_id}-{self.topic_id or ''}-{self.email_id or ''}"

    def with_topic(self, topic_id: Optional[str]) -> "TrackingContext":
        return TrackingContext(user_id=self.user_id, email_id=self.email_id, topic_id=topic_id)
