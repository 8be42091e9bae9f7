"""
Interaction auditing.

One InteractionRecord is written per operation attempt, successful or not.
Writes are fire-and-forget: ``InteractionAuditor.record`` schedules the
store call as a background task and returns immediately, and a failing store
is logged and counted but never surfaces to the caller. ``flush`` waits for
outstanding writes (tests, shutdown).
"""
import asyncio
from collections import OrderedDict, deque
from datetime import datetime, timezone
from typing import Deque, List, Optional, Protocol, Set, runtime_checkable
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from caseflow.core.logging import get_logger
from caseflow.core.metrics import record_audit_write_failure
from caseflow.models.cases import ProcessStep

logger = get_logger(__name__)


class InteractionRecord(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    id: str = Field(default_factory=lambda: str(uuid4()))
    case_id: str
    operation: str
    prompt: str
    response_text: str = ""
    model_id: str = "unknown"
    input_tokens: int = 0
    output_tokens: int = 0
    tokens_used: int = 0
    cost_usd: Optional[float] = None
    duration_ms: float
    success: bool
    fallback_used: bool = False
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    template_id: str
    template_version: str
    step_context: Optional[ProcessStep] = None


@runtime_checkable
class InteractionStore(Protocol):
    async def record_interaction(self, record: InteractionRecord) -> None:
        ...


class InMemoryInteractionStore:
    """
    Process-local store, grouped by case ID.

    Bounded on both axes: each case keeps its newest ``max_records_per_case``
    records, and once ``max_cases`` cases are held the least recently
    written case is evicted.
    """

    def __init__(self, max_records_per_case: int = 100, max_cases: int = 1000):
        if max_records_per_case < 1 or max_cases < 1:
            raise ValueError("store limits must be at least 1")
        self.max_records_per_case = max_records_per_case
        self.max_cases = max_cases
        self._records: "OrderedDict[str, Deque[InteractionRecord]]" = OrderedDict()

    async def record_interaction(self, record: InteractionRecord) -> None:
        records = self._records.get(record.case_id)
        if records is None:
            records = deque(maxlen=self.max_records_per_case)
            self._records[record.case_id] = records
        else:
            self._records.move_to_end(record.case_id)
        records.append(record)
        while len(self._records) > self.max_cases:
            evicted, _ = self._records.popitem(last=False)
            logger.debug("ai_interaction_case_evicted", case_id=evicted)

    def list_for_case(self, case_id: str) -> List[InteractionRecord]:
        return list(self._records.get(case_id, ()))

    def all_records(self) -> List[InteractionRecord]:
        return [record for records in self._records.values() for record in records]


class InteractionAuditor:
    """Schedules audit writes without letting them affect the caller."""

    def __init__(self, store: InteractionStore):
        self.store = store
        self._pending: Set["asyncio.Task[None]"] = set()

    def record(self, record: InteractionRecord) -> None:
        task = asyncio.create_task(self._write(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, record: InteractionRecord) -> None:
        try:
            await self.store.record_interaction(record)
        except Exception as exc:
            record_audit_write_failure()
            logger.error(
                "ai_interaction_audit_failed",
                interaction_id=record.id,
                case_id=record.case_id,
                operation=record.operation,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def flush(self) -> None:
        """Wait for every scheduled write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
