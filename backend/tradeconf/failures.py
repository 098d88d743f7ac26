
import random
from datetime import datetime, timezone
from typing import List, Optional
from .models import Trade, FailureAnalysis, BreakType, BREAK_STATUSES
from .rules import impact_level

# "action" lands in FailureAnalysis.action_fields under the break category key
ECONOMIC_SCENARIOS = [
    dict(reason="Price discrepancy between trade execution and confirmation",
         suggested_solution="Verify execution price with trading desk and adjust confirmation",
         estimated_resolution_time="2-4 hours",
         assigned_to="Middle Office",
         pending_with="Middle Office",
         next_action_owner="Senior Trade Support Analyst",
         break_classification="Price Mismatch - Critical",
         action="Reconcile execution price with market data and trading system records"),
    dict(reason="Quantity mismatch affecting trade value",
         suggested_solution="Coordinate with Front Office to verify intended trade size",
         estimated_resolution_time="1-3 hours",
         assigned_to="Front Office",
         pending_with="Front Office",
         next_action_owner="Trading Desk Manager",
         break_classification="Quantity Discrepancy - High",
         action="Verify trade allocation and confirm correct quantity with trader"),
    dict(reason="Currency conversion rate discrepancy",
         suggested_solution="Validate FX rates used in trade calculation",
         estimated_resolution_time="1-2 hours",
         assigned_to="Middle Office",
         pending_with="Middle Office",
         next_action_owner="FX Operations Specialist",
         break_classification="FX Rate Mismatch - Medium",
         action="Cross-reference FX rates with market data providers and trading system"),
]

NON_ECONOMIC_SCENARIOS = [
    dict(reason="Client confirmation pending for trade details",
         suggested_solution="Contact client for trade confirmation and acknowledgment",
         estimated_resolution_time="2-4 hours",
         assigned_to="Client Services Team",
         pending_with="Client",
         next_action_owner="Client Relationship Manager",
         break_classification="Client Communication - Confirmation Pending",
         action="Follow up with client for trade confirmation and acknowledgment"),
    dict(reason="Incorrect settlement instructions",
         suggested_solution="Update settlement details and reconfirm with counterparty",
         estimated_resolution_time="2-4 hours",
         assigned_to="Operations Team",
         pending_with="Client",
         next_action_owner="Settlement Operations Manager",
         break_classification="Settlement Instructions - Incorrect",
         action="Verify and update settlement instructions with client and counterparty"),
    dict(reason="Compliance documentation incomplete",
         suggested_solution="Obtain missing compliance documents from client",
         estimated_resolution_time="4-8 hours",
         assigned_to="Compliance Team",
         pending_with="Legal",
         next_action_owner="Compliance Officer",
         break_classification="Compliance - Documentation Gap",
         action="Collect and verify all required compliance documentation"),
    dict(reason="Trade confirmation format mismatch",
         suggested_solution="Regenerate confirmation in correct format per client requirements",
         estimated_resolution_time="30 minutes - 1 hour",
         assigned_to="Documentation Team",
         pending_with="Middle Office",
         next_action_owner="Document Processing Specialist",
         break_classification="Format - Template Mismatch",
         action="Regenerate document using client-specific template and format"),
]


def _catalog(break_type: Optional[BreakType]) -> List[tuple]:
    eco = [("Economic", s) for s in ECONOMIC_SCENARIOS]
    non = [("Non-Economic", s) for s in NON_ECONOMIC_SCENARIOS]
    if break_type == "Economic":
        return eco
    if break_type == "Non-Economic":
        return non
    return eco + non


def generate_failure_analysis(trade: Trade, rng: random.Random,
                              break_type: Optional[BreakType] = None) -> Optional[FailureAnalysis]:
    """Pick a failure scenario for a Failed/Disputed trade.

    With ``break_type`` the draw is limited to that category so the record agrees
    with the trade's own break attribution; without it any of the seven scenarios
    may come up. Returns None for every other confirmation status.
    """
    if trade.confirmation_status not in BREAK_STATUSES:
        return None
    btype, s = rng.choice(_catalog(break_type))
    field = "economic_break" if btype == "Economic" else "non_economic_break"
    return FailureAnalysis(
        trade_id=trade.trade_id,
        failure_type=f"{btype} Break",
        break_type=btype,
        reason=s["reason"],
        impact=impact_level(trade),
        suggested_solution=s["suggested_solution"],
        estimated_resolution_time=s["estimated_resolution_time"],
        assigned_to=s["assigned_to"],
        pending_with=s["pending_with"],
        next_action_owner=s["next_action_owner"],
        break_classification=s["break_classification"],
        action_fields={field: s["action"]},
        status="Open",
        created_at=datetime.now(timezone.utc),
    )
