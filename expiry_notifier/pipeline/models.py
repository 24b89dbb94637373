"""Result of one expiry check run."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from expiry_notifier.domain.models import TriggeredBy
from expiry_notifier.notifications.models import ItemOutcome, OutcomeStatus
from expiry_notifier.utils.timestamps import format_timestamp

# Failures caused by the delivery path rather than by team data
_DEGRADING_STATUSES = {OutcomeStatus.FAILED_SEND_ERROR, OutcomeStatus.FAILED_ERROR}


@dataclass
class CheckRunResult:
    """
    Aggregate results from one check_and_send_notifications() call.

    Attributes:
        run_id: Hex identifier stamped on every log line of the run
        triggered_by: system (scheduler) or admin (manual trigger)
        run_started_at: UTC timestamp when the run began
        run_finished_at: UTC timestamp when the run completed
        outcomes: One ItemOutcome per expiring item, in processing order
        skipped: True when another run held the lock and nothing was done
    """

    run_id: str
    triggered_by: TriggeredBy
    run_started_at: datetime
    run_finished_at: datetime
    outcomes: List[ItemOutcome] = field(default_factory=list)
    skipped: bool = False

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def total_items(self) -> int:
        return len(self.outcomes)

    @property
    def sent_count(self) -> int:
        return self.count(OutcomeStatus.SENT)

    @property
    def failed_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.is_failure)

    @property
    def degraded(self) -> bool:
        """True when at least one item failed in the send path."""
        return any(outcome.status in _DEGRADING_STATUSES for outcome in self.outcomes)

    @property
    def duration_seconds(self) -> float:
        return (self.run_finished_at - self.run_started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "triggered_by": TriggeredBy(self.triggered_by).value,
            "started_at": format_timestamp(self.run_started_at),
            "finished_at": format_timestamp(self.run_finished_at),
            "duration_seconds": round(self.duration_seconds, 3),
            "skipped": self.skipped,
            "degraded": self.degraded,
            "total_items": self.total_items,
            "counts": {status.value: self.count(status) for status in OutcomeStatus},
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }
