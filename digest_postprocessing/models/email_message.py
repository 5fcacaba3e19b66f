"""
EmailMessage and Recipient — the host's contract with the pipeline.
"""
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class EmailMessage:
    """Digest message built by the host; bodies and headers are mutated in place."""

    html_body: Optional[str] = None
    text_body: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def get_header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        key = self._header_key(name)
        return self.headers.get(key) if key is not None else None

    def set_header(self, name: str, value: str) -> None:
        """Replace a header value, keeping the existing key's casing."""
        key = self._header_key(name)
        self.headers[key if key is not None else name] = value

    def _header_key(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key in self.headers:
            if key.lower() == wanted:
                return key
        return None


@dataclass(frozen=True)
class Recipient:
    """The digest recipient."""

    id: int
    email: str = ""
