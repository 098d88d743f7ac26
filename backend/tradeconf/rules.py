
import random
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from .models import Trade, EquityTrade, RiskLevel, QueueStatus, BREAK_STATUSES

MAJOR_PAIRS = ("EUR/USD", "GBP/USD", "USD/JPY")

# impact thresholds (equity trade value)
IMPACT_CRITICAL = 5_000_000
IMPACT_HIGH = 1_000_000
IMPACT_MEDIUM = 100_000

# risk thresholds for trades without a break
RISK_HIGH = 2_000_000
RISK_MEDIUM = 500_000


@dataclass(frozen=True)
class EnrichmentPolicy:
    """Break attribution rules applied to Failed/Disputed trades."""
    version: str
    economic_probability: float
    economic_pending_with: Tuple[str, ...] = ("Middle Office", "Front Office")
    non_economic_pending_with: Tuple[str, ...] = ("Legal", "Client", "Trading Sales")
    owners: Dict[str, str] = field(default_factory=lambda: {
        "Middle Office": "Senior Trade Support Analyst",
        "Front Office": "Trading Desk Manager",
        "Legal": "Compliance Officer",
        "Client": "Client Relationship Manager",
        "Trading Sales": "Sales Operations Manager",
    })
    classifications: Dict[str, str] = field(default_factory=lambda: {
        "Economic": "Price/Quantity Discrepancy",
        "Non-Economic": "Documentation/Process Issue",
    })


POLICIES: Dict[str, EnrichmentPolicy] = {
    "v1": EnrichmentPolicy(version="v1", economic_probability=0.6),
    "v2": EnrichmentPolicy(version="v2", economic_probability=0.4),
}
DEFAULT_POLICY = POLICIES["v2"]


def get_policy(version: str) -> EnrichmentPolicy:
    try:
        return POLICIES[version]
    except KeyError:
        raise ValueError(f"Unknown enrichment policy {version!r}; expected one of {sorted(POLICIES)}")


def impact_level(trade: Trade) -> RiskLevel:
    if isinstance(trade, EquityTrade):
        if trade.trade_value > IMPACT_CRITICAL: return "Critical"
        if trade.trade_value > IMPACT_HIGH: return "High"
        if trade.trade_value > IMPACT_MEDIUM: return "Medium"
        return "Low"
    if trade.currency_pair in MAJOR_PAIRS and trade.product_type == "Forward":
        return "High"
    return "Medium"


def risk_level(trade: Trade) -> RiskLevel:
    if trade.confirmation_status in BREAK_STATUSES:
        return impact_level(trade)
    if isinstance(trade, EquityTrade):
        if trade.trade_value > RISK_HIGH: return "High"
        if trade.trade_value > RISK_MEDIUM: return "Medium"
        return "Low"
    if trade.amendment_flag == "Yes": return "High"
    if trade.product_type == "Forward": return "Medium"
    return "Low"


def draw_break(trade: Trade, rng: random.Random, policy: EnrichmentPolicy = DEFAULT_POLICY) -> Optional[dict]:
    # Return break attribution for Failed/Disputed trades, None otherwise.
    if trade.confirmation_status not in BREAK_STATUSES:
        return None
    break_type = "Economic" if rng.random() < policy.economic_probability else "Non-Economic"
    candidates = policy.economic_pending_with if break_type == "Economic" else policy.non_economic_pending_with
    pending_with = rng.choice(candidates)
    return {
        "break_type": break_type,
        "pending_with": pending_with,
        "next_action_owner": policy.owners[pending_with],
        "break_classification": policy.classifications[break_type],
    }


# cumulative thresholds per confirmation status; the last bucket takes the remainder
QUEUE_WEIGHTS: Dict[str, Tuple[Tuple[float, str], ...]] = {
    "Pending":   ((0.3, "Matching"), (0.6, "Drafting"), (1.0, "Pending Approval")),
    "Failed":    ((0.2, "Matching"), (0.5, "Drafting"), (1.0, "Pending Approval")),
    "Disputed":  ((0.2, "Matching"), (0.5, "Drafting"), (1.0, "Pending Approval")),
    "Confirmed": ((0.1, "Matching"), (0.3, "Drafting"), (0.7, "Pending Approval"), (1.0, "CCNR")),
    "Settled":   ((1.0, "CCNR"),),
    "Booked":    ((0.4, "Matching"), (0.7, "Drafting"), (1.0, "Pending Approval")),
}
DEFAULT_QUEUE_WEIGHTS = ((0.25, "Matching"), (0.5, "Drafting"), (0.75, "Pending Approval"), (1.0, "CCNR"))


def queue_status(trade: Trade, rng: random.Random) -> QueueStatus:
    weights = QUEUE_WEIGHTS.get(trade.confirmation_status, DEFAULT_QUEUE_WEIGHTS)
    if len(weights) == 1:
        return weights[0][1]
    r = rng.random()
    for upper, bucket in weights:
        if r < upper:
            return bucket
    return weights[-1][1]


def enrich_trade(trade: Trade, rng: random.Random, policy: EnrichmentPolicy = DEFAULT_POLICY) -> Trade:
    # Not idempotent: break attribution and queue status are random draws.
    brk = draw_break(trade, rng, policy) or {
        "break_type": None, "pending_with": None,
        "next_action_owner": None, "break_classification": None,
    }
    # settlement and failure fields are owned by the store and never accepted from input
    return trade.model_copy(update={
        "risk_level": risk_level(trade),
        "queue_status": queue_status(trade, rng),
        "failure_reason": None,
        "sent_to_settlements": False,
        "settlements_sent_at": None,
        **brk,
    })
