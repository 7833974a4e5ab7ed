from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple


@dataclass
class RequestContext:
    """Per-request state, owned by the gateway for one request's lifetime."""

    request_url: str
    source_url: str
    identifier: str  # last path segment, extension included
    transformation: str
    tmp_file: Path
    stream_file: Optional[Path] = None  # per-request output when nothing is cached
    use_cache: bool = True
    additional: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def transformations(self) -> Tuple[str, ...]:
        """Additional transformations first, the primary one last."""
        return (*self.additional, self.transformation)
