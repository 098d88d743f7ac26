
import asyncio
import logging
import random
import sqlite3
import time
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
from .documents import generate_document_status
from .errors import (DuplicateTradeError, TradeNotFoundError, InvalidTransitionError,
                     DocumentStateError, TradeConfirmError)
from .failures import generate_failure_analysis
from .filters import apply_filters, facets
from .models import (Trade, EquityTrade, FXTrade, FailureAnalysis, DocumentStatus, DocumentUpdate,
                     TradeFilters, TradeWorkflow, WorkflowAction, QueueMetrics, Facets,
                     BREAK_STATUSES, DOCUMENT_TYPES)
from .rules import EnrichmentPolicy, DEFAULT_POLICY, enrich_trade
from .workflows import generate_workflow, generate_workflow_actions

logger = logging.getLogger(__name__)

# allowed failure status moves
TRANSITIONS = {
    ("Open", "Resolved"),
    ("Open", "Escalated"),
    ("Escalated", "Resolved"),
}

SETTLEMENT_READY = ("Confirmed", "Settled")

BREAK_FIELDS = ("break_type", "pending_with", "next_action_owner", "break_classification")


class TradeStore:
    """In-memory application state for the confirmation desk.

    Trades arrive as ``(topic, trade)`` events on ``queue`` (topic is "equity" or
    "fx") or through the action methods. Every mutation goes through this class;
    workflows and actions are computed from the current trades on each read.
    """

    def __init__(self, streamer=None, repository=None, rng: Optional[random.Random] = None,
                 policy: EnrichmentPolicy = DEFAULT_POLICY):
        self.equity_trades: Dict[str, EquityTrade] = {}
        self.fx_trades: Dict[str, FXTrade] = {}
        self.failures: Dict[str, FailureAnalysis] = {}
        self.document_statuses: Dict[str, DocumentStatus] = {}
        self.queue: "asyncio.Queue[tuple[str, Trade]]" = asyncio.Queue()
        self.stream = streamer
        self.repository = repository
        self.rng = rng or random.Random()
        self.policy = policy
        self.stats = {"processed": 0, "detected_breaks": 0, "rejected": 0, "avg_ingest_ms": 0.0}

    async def publish(self, event: dict):
        if self.stream is not None:
            await self.stream.broadcast(event)

    async def start(self):
        while True:
            topic, trade = await self.queue.get()
            try:
                await self._consume(topic, trade)
            finally:
                self.queue.task_done()

    async def _consume(self, topic: str, trade: Trade):
        t0 = time.perf_counter()
        try:
            if topic != trade.kind:
                raise TradeConfirmError(f"{trade.kind} trade {trade.trade_id} arrived on {topic!r}")
            enriched = self.ingest(trade)
        except TradeConfirmError as e:
            self.stats["rejected"] += 1
            logger.warning("Rejected %s event: %s", topic, e)
            return

        self._record_timing(t0)
        await self.publish({"type": "trade", "payload": enriched.model_dump()})
        failure = self.failures.get(enriched.trade_id)
        if failure is not None:
            await self.publish({"type": "break", "payload": failure.model_dump()})

    def _record_timing(self, t0: float):
        dt_ms = (time.perf_counter() - t0) * 1000.0
        self.stats["processed"] += 1
        k = max(self.stats["processed"], 1)
        self.stats["avg_ingest_ms"] = ((self.stats["avg_ingest_ms"]*(k-1)) + dt_ms) / k

    # --- actions ---------------------------------------------------------

    def ingest(self, trade: Trade) -> Trade:
        """Enrich a new trade and generate its failure analysis and documents."""
        if trade.trade_id in self.equity_trades or trade.trade_id in self.fx_trades:
            raise DuplicateTradeError(trade.trade_id)

        enriched = enrich_trade(trade, self.rng, self.policy)
        failure = generate_failure_analysis(enriched, self.rng, enriched.break_type)
        if failure is not None:
            enriched = enriched.model_copy(update={"failure_reason": failure.reason})
            self.failures[enriched.trade_id] = failure
            self.stats["detected_breaks"] += 1
        self._check_break_fields(enriched)

        if isinstance(enriched, EquityTrade):
            self.equity_trades[enriched.trade_id] = enriched
        else:
            self.fx_trades[enriched.trade_id] = enriched
        self.document_statuses[enriched.trade_id] = generate_document_status(enriched)

        if self.repository is not None:
            try:
                self.repository.save_trade(enriched)
            except (DuplicateTradeError, sqlite3.Error) as e:
                logger.error("Error persisting %s trade %s: %s", enriched.kind, enriched.trade_id, e)
        return enriched

    @staticmethod
    def _check_break_fields(trade: Trade):
        has_break = trade.confirmation_status in BREAK_STATUSES
        for f in BREAK_FIELDS:
            if (getattr(trade, f) is not None) != has_break:
                raise TradeConfirmError(f"Trade {trade.trade_id}: {f} inconsistent with status "
                                        f"{trade.confirmation_status}")

    def import_trades(self, trades: Iterable[Trade]) -> dict:
        imported, skipped = [], []
        for t in trades:
            try:
                imported.append(self.ingest(t))
            except DuplicateTradeError as e:
                logger.warning("Skipping import of %s: %s", t.trade_id, e)
                skipped.append(t.trade_id)
        logger.info("Imported %d trades (%d duplicates skipped)", len(imported), len(skipped))
        return {"imported": len(imported), "skipped": skipped,
                "trade_ids": [t.trade_id for t in imported]}

    def add_trade(self, trade: Trade) -> Trade:
        enriched = self.ingest(trade)
        logger.info("Added %s trade %s", enriched.kind, enriched.trade_id)
        return enriched

    def _move_failure(self, trade_id: str, to: str) -> FailureAnalysis:
        failure = self.failures.get(trade_id)
        if failure is None:
            raise TradeNotFoundError(trade_id)
        if (failure.status, to) not in TRANSITIONS:
            raise InvalidTransitionError(f"Failure for {trade_id} cannot move from {failure.status} to {to}")
        update = {"status": to}
        if to == "Resolved":
            update["resolved_at"] = datetime.now(timezone.utc)
        failure = failure.model_copy(update=update)
        self.failures[trade_id] = failure
        logger.info("Failure for %s is now %s", trade_id, to)
        return failure

    def resolve_failure(self, trade_id: str) -> FailureAnalysis:
        return self._move_failure(trade_id, "Resolved")

    def escalate_failure(self, trade_id: str) -> FailureAnalysis:
        return self._move_failure(trade_id, "Escalated")

    def update_document(self, trade_id: str, doc_type: str, updates: DocumentUpdate) -> DocumentStatus:
        status = self.document_statuses.get(trade_id)
        if status is None:
            raise TradeNotFoundError(trade_id)
        if doc_type not in DOCUMENT_TYPES:
            raise DocumentStateError(f"Unknown document type {doc_type!r}")

        current = getattr(status, doc_type)
        changes = updates.model_dump(exclude_none=True)
        doc = current.model_copy(update=changes)
        if doc.client_signed and not doc.submitted:
            raise DocumentStateError(f"{doc_type} for {trade_id} cannot be client-signed before submission")
        if doc.sent_to_client and doc.qa_status != "Approved":
            raise DocumentStateError(f"{doc_type} for {trade_id} cannot be sent before QA approval")

        now = datetime.now(timezone.utc)
        extra = {"version": current.version + 1, "timestamp": now}
        if doc.submitted and not doc.document_url:
            extra["document_url"] = f"/documents/{trade_id}"
        doc = doc.model_copy(update=extra)
        status = status.model_copy(update={doc_type: doc})
        self.document_statuses[trade_id] = status
        logger.info("Updated %s for %s to version %d", doc_type, trade_id, doc.version)
        return status

    def send_to_settlements(self, trade_id: str) -> Trade:
        trade = self.get_trade(trade_id)
        if trade.confirmation_status not in SETTLEMENT_READY:
            raise InvalidTransitionError(
                f"Trade {trade_id} is {trade.confirmation_status}; only Confirmed or Settled trades can be sent")
        if trade.sent_to_settlements:
            raise InvalidTransitionError(f"Trade {trade_id} was already sent to settlements")
        trade = trade.model_copy(update={"sent_to_settlements": True,
                                         "settlements_sent_at": datetime.now(timezone.utc)})
        if isinstance(trade, EquityTrade):
            self.equity_trades[trade_id] = trade
        else:
            self.fx_trades[trade_id] = trade
        logger.info("Sent %s to settlements", trade_id)
        return trade

    # --- projections -----------------------------------------------------

    def all_trades(self) -> List[Trade]:
        return list(self.equity_trades.values()) + list(self.fx_trades.values())

    def get_trade(self, trade_id: str) -> Trade:
        trade = self.equity_trades.get(trade_id) or self.fx_trades.get(trade_id)
        if trade is None:
            raise TradeNotFoundError(trade_id)
        return trade

    def get_documents(self, trade_id: str) -> DocumentStatus:
        try:
            return self.document_statuses[trade_id]
        except KeyError:
            raise TradeNotFoundError(trade_id)

    def get_failures(self, status: str = "") -> List[FailureAnalysis]:
        out = list(self.failures.values())
        if status:
            out = [f for f in out if f.status == status]
        return out

    def workflows(self) -> List[TradeWorkflow]:
        now = datetime.now(timezone.utc)
        return [generate_workflow(t, now) for t in self.all_trades()]

    def workflow_actions(self) -> List[WorkflowAction]:
        return generate_workflow_actions(self.workflows())

    def filtered_trades(self, filters: TradeFilters) -> List[Trade]:
        return apply_filters(self.equity_trades.values(), self.fx_trades.values(), filters,
                             self.document_statuses)

    def facets(self) -> Facets:
        return facets(self.equity_trades.values(), self.fx_trades.values())

    def queue_metrics(self) -> QueueMetrics:
        trades = self.all_trades()

        def in_queue(name):
            return sum(1 for t in trades if t.queue_status == name)

        docs = [d for s in self.document_statuses.values() for d in s.documents()]

        def awaiting_signature(sig):
            return sum(1 for d in docs
                       if d.submitted and d.signature_type == sig and not (d.client_signed and d.bank_signed))

        return QueueMetrics(
            drafting=in_queue("Drafting"),
            matching=in_queue("Matching"),
            pending_approvals=in_queue("Pending Approval"),
            ccnr=in_queue("CCNR"),
            pending_single_sign=awaiting_signature("Single"),
            pending_double_sign=awaiting_signature("Double"),
            documents_not_sent=sum(1 for d in docs if d.submitted and not d.sent_to_client),
        )

    def settlements_ready(self) -> List[Trade]:
        return [t for t in self.all_trades()
                if t.confirmation_status in SETTLEMENT_READY and not t.sent_to_settlements]

    def settlements_sent(self) -> List[Trade]:
        return [t for t in self.all_trades() if t.sent_to_settlements]
