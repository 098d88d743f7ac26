
from datetime import datetime, timedelta, timezone
from typing import Iterable, List
from .models import Trade, EquityTrade, FXTrade, TradeWorkflow, WorkflowStep, WorkflowAction

TRADE_BOOKING = "trade-booking"
CONFIRMATION_SYSTEM = "confirmation-system"
AMENDMENT_CHECK = "amendment-check"
AFFIRMATION_TRIGGER = "affirmation-trigger"
CLIENT_AFFIRMATION = "client-affirmation"
TRADE_BREAK_CHECK = "trade-break-check"
SWIFT_PAPER_ROUTING = "swift-paper-routing"
FIRST_LEVEL_DRAFTING = "first-level-drafting"
SECOND_LEVEL_DRAFTING = "second-level-drafting"
CONFIRMATION_DISPATCH = "confirmation-dispatch"
FINAL_CONFIRMATION = "final-confirmation"
EXECUTION_COMPLETE = "execution-complete"

CURRENT_STEP = {
    "pending": CLIENT_AFFIRMATION,
    "confirmed": CONFIRMATION_DISPATCH,
    "settled": EXECUTION_COMPLETE,
    "failed": TRADE_BREAK_CHECK,
    "disputed": TRADE_BREAK_CHECK,
    "booked": CONFIRMATION_SYSTEM,
    "cancelled": AMENDMENT_CHECK,
}

ROUTED = ("pending", "confirmed", "settled", "failed", "disputed")
DONE = ("confirmed", "settled")
BROKEN = ("failed", "disputed")

ACTION_TYPES = {
    AMENDMENT_CHECK: "amendment",
    CLIENT_AFFIRMATION: "affirmation",
    TRADE_BREAK_CHECK: "break-resolution",
    FIRST_LEVEL_DRAFTING: "drafting",
    SECOND_LEVEL_DRAFTING: "drafting",
    CONFIRMATION_DISPATCH: "dispatch",
    FINAL_CONFIRMATION: "execution",
}

DUE_OFFSETS = {
    TRADE_BREAK_CHECK: timedelta(hours=4),
    AMENDMENT_CHECK: timedelta(hours=8),
    CLIENT_AFFIRMATION: timedelta(days=1),
}
DEFAULT_DUE = timedelta(days=2)
URGENT_DUE = timedelta(hours=2)


def workflow_priority(trade: Trade) -> str:
    priority = "medium"
    if isinstance(trade, EquityTrade):
        if trade.trade_value > 1_000_000:
            priority = "high"
        if trade.trade_value > 5_000_000:
            priority = "urgent"
        # a failed trade is "high" whatever its size
        if trade.confirmation_status == "Failed":
            priority = "high"
    else:
        if trade.confirmation_status == "Disputed":
            priority = "urgent"
        if trade.amendment_flag == "Yes":
            priority = "high"
    return priority


def generate_workflow(trade: Trade, now: datetime | None = None) -> TradeWorkflow:
    """Build the confirmation workflow for a trade from its current state.

    Step statuses are pure functions of ``confirmation_status`` (plus the FX
    confirmation method for the routing and drafting steps), so calling this again
    after the trade changes gives the up-to-date picture.
    """
    now = now or datetime.now(timezone.utc)
    status = trade.confirmation_status.lower()
    is_fx = isinstance(trade, FXTrade)
    method = trade.confirmation_method if is_fx else None
    current = CURRENT_STEP.get(status, TRADE_BOOKING)

    def step(id, name, st, **kw):
        return WorkflowStep(id=id, name=name, status=st, **kw)

    steps: List[WorkflowStep] = [
        step(TRADE_BOOKING, "Trade Booking", "completed",
             timestamp=trade.trade_date, assigned_to=trade.trader,
             notes="Trade successfully booked in system"),
        step(CONFIRMATION_SYSTEM, "Confirmation System Entry",
             "in-progress" if current == CONFIRMATION_SYSTEM else
             "completed" if status in ROUTED else "pending",
             timestamp=now.isoformat() if current == CONFIRMATION_SYSTEM else None,
             assigned_to="Confirmation System",
             notes="Trade routed to confirmation system"),
        step(AMENDMENT_CHECK, "Amendment Check",
             "requires-action" if status == "cancelled" else
             "completed" if status in ROUTED else "pending",
             assigned_to="FO/TCU/IBMO",
             notes="Amendment required - routed to Front Office" if status == "cancelled" else None),
        step(AFFIRMATION_TRIGGER, "Affirmation Trigger (T+1)",
             "completed" if status in ("pending",) + DONE else
             "failed" if status in BROKEN else "pending",
             assigned_to="System Automated",
             notes="Automated trigger for client affirmation"),
        step(CLIENT_AFFIRMATION, "Client Affirmation",
             "in-progress" if status == "pending" else
             "completed" if status in DONE else
             "failed" if status in BROKEN else "pending",
             assigned_to=trade.counterparty,
             notes="Awaiting client response" if status == "pending" else None),
        step(TRADE_BREAK_CHECK, "Trade Break Check",
             "requires-action" if status in BROKEN else
             "completed" if status in DONE else "pending",
             assigned_to="Operations Team",
             notes="Trade break detected - requires resolution" if status in BROKEN else None),
        step(SWIFT_PAPER_ROUTING, "SWIFT/Paper Routing",
             "completed" if method else "pending",
             assigned_to="Confirmation Team",
             notes=f"Routed via {method}" if is_fx else None),
        step(FIRST_LEVEL_DRAFTING, "First Level Drafting",
             "completed" if method in ("Manual", "Email") else "pending",
             assigned_to="Drafting Team",
             notes="STP and non-STP paper/manual confirmations"),
        step(SECOND_LEVEL_DRAFTING, "Second Level Drafting",
             "completed" if method in ("SWIFT", "Electronic") else "pending",
             assigned_to="Drafting Team",
             notes="Electronic confirmations (SWIFT/Markitwire)"),
        step(CONFIRMATION_DISPATCH, "Confirmation Dispatch",
             "completed" if status in DONE else
             "in-progress" if status == "pending" else "pending",
             assigned_to="Confirmation Team",
             notes="Confirmations sent to client"),
        step(FINAL_CONFIRMATION, "Final Confirmation",
             "completed" if status == "settled" else
             "in-progress" if status == "confirmed" else "pending",
             assigned_to=trade.counterparty,
             notes="Awaiting final client agreement"),
        step(EXECUTION_COMPLETE, "Execution Complete",
             "completed" if status == "settled" else "pending",
             timestamp=trade.settlement_date if status == "settled" else None,
             assigned_to="System",
             notes="Trade confirmation successfully executed" if status == "settled" else None),
    ]

    return TradeWorkflow(
        trade_id=trade.trade_id,
        current_step=current,
        steps=steps,
        created_at=trade.trade_date,
        updated_at=now,
        priority=workflow_priority(trade),
    )


def generate_workflow_actions(workflows: Iterable[TradeWorkflow], now: datetime | None = None) -> List[WorkflowAction]:
    now = now or datetime.now(timezone.utc)
    actions: List[WorkflowAction] = []
    for wf in workflows:
        for st in wf.steps:
            if st.status == "requires-action":
                actions.append(WorkflowAction(
                    id=f"{wf.trade_id}-{st.id}",
                    type=ACTION_TYPES.get(st.id, "amendment"),
                    description=f"{st.name} requires attention for trade {wf.trade_id}",
                    required_by=st.assigned_to,
                    due_date=now + DUE_OFFSETS.get(st.id, DEFAULT_DUE),
                ))
            elif st.status == "failed":
                actions.append(WorkflowAction(
                    id=f"{wf.trade_id}-{st.id}-resolution",
                    type="break-resolution",
                    description=f"Resolve trade break for {wf.trade_id} at {st.name}",
                    required_by="FO/TCU/IBMO",
                    due_date=now + URGENT_DUE,
                ))
    return actions
