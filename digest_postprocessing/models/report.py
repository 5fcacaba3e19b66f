"""
DigestReport — per-message processing summary (logged, never persisted).
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class DigestReport:
    """What the pipeline did to one message."""

    email_id: str
    target_domain: Optional[str] = None
    html_topic_count: Optional[int] = None
    text_topic_count: Optional[int] = None
    links_annotated: int = 0
    links_redirected: int = 0
    excerpts_trimmed: int = 0
    text_blocks_trimmed: int = 0
    hosts_swapped: Dict[str, int] = field(default_factory=dict)
    regex_fallback: bool = False
    html_changed: bool = False
    text_changed: bool = False
    warnings: List[str] = field(default_factory=list)
    duration_ms: int = 0

    def add_swaps(self, area: str, count: int) -> None:
        if count:
            self.hosts_swapped[area] = self.hosts_swapped.get(area, 0) + count

    def to_dict(self) -> dict:
        return {
            "email_id": self.email_id,
            "target_domain": self.target_domain,
            "html_topic_count": self.html_topic_count,
            "text_topic_count": self.text_topic_count,
            "links_annotated": self.links_annotated,
            "links_redirected": self.links_redirected,
            "excerpts_trimmed": self.excerpts_trimmed,
            "text_blocks_trimmed": self.text_blocks_trimmed,
            "hosts_swapped": dict(self.hosts_swapped),
            "regex_fallback": self.regex_fallback,
            "html_changed": self.html_changed,
            "text_changed": self.text_changed,
            "warnings": list(self.warnings),
            "duration_ms": self.duration_ms,
        }

    def __repr__(self) -> str:
        return (
            f"DigestReport({self.email_id}, topics={self.html_topic_count}/{self.text_topic_count}, "
            f"annotated={self.links_annotated}, redirected={self.links_redirected}, "
            f"trimmed={self.excerpts_trimmed}+{self.text_blocks_trimmed})"
        )
