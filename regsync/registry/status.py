"""Engine status stream events."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from ..errors import StreamProtocolError
from ..utils.deadline import Deadline


logger = logging.getLogger(__name__)


@dataclass
class ProgressDetail:
    """Bytes transferred so far for a single layer."""
    current: int = 0
    total: int = 0


@dataclass
class Status:
    """One line of the engine's pull or push status stream."""
    message: str = ""
    id: str = ""
    progress_detail: ProgressDetail = field(default_factory=ProgressDetail)
    error: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Status':
        if not isinstance(data, dict):
            raise StreamProtocolError(f"unexpected status event: {data!r}")

        detail = data.get("progressDetail") or {}
        try:
            progress = ProgressDetail(
                current=int(detail.get("current") or 0),
                total=int(detail.get("total") or 0)
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise StreamProtocolError(f"unmarshal progress detail: {e}") from e

        error = data.get("error") or ""
        if not error and isinstance(data.get("errorDetail"), dict):
            error = data["errorDetail"].get("message") or ""

        return cls(
            message=str(data.get("status") or ""),
            id=str(data.get("id") or ""),
            progress_detail=progress,
            error=str(error)
        )

    def get_message(self) -> str:
        """A human friendly rendering of the status."""
        if "Pulling from" in self.message or "The push refers to repository" in self.message:
            return "Started"
        if "Pulling fs" in self.message or "Layer already exists" in self.message:
            return f"Processing layer (trace ID {self.id})"
        if "Preparing" in self.message:
            return "Preparing"
        if "Verifying" in self.message:
            return "Verifying Checksum"
        if self.progress_detail.total > 0:
            return f"Processing {self.progress_detail.current}B of {self.progress_detail.total}B"
        return "Processing"


def wait_for_stream_complete(events: Iterable[Dict[str, Any]], image: str, command: str,
                             stride: int = 25, deadline: Optional[Deadline] = None) -> int:
    """Consume a decoded status stream to completion.

    Every stride-th event is logged as progress. An embedded error fails
    the whole stream. Returns the number of events consumed.
    """
    scans = 0
    for event in events:
        if deadline is not None:
            deadline.check(f"{command.lower()} {image}")

        status = Status.from_dict(event)
        if status.error:
            raise StreamProtocolError(f"returned error: {status.error}")

        if scans % stride == 0:
            logger.info(f"[{command}] {image} ({status.get_message()})")
        scans += 1

    logger.info(f"[{command}] {image} complete.")
    return scans
