
import logging
from datetime import date
from typing import Dict, Iterable, List, Optional
from dateutil import parser
from .documents import completeness_bucket
from .models import Trade, TradeFilters, DocumentStatus, Facets

logger = logging.getLogger(__name__)


def _as_date(v: str) -> Optional[date]:
    try:
        return parser.parse(v).date()
    except (ValueError, OverflowError, TypeError):
        return None


def _matches(trade: Trade, f: TradeFilters, date_from: Optional[date], date_to: Optional[date],
             documents: Dict[str, DocumentStatus]) -> bool:
    if f.status and trade.confirmation_status != f.status:
        return False
    if f.break_type and trade.break_type != f.break_type:
        return False
    if f.pending_with and trade.pending_with != f.pending_with:
        return False
    if f.queue_status and trade.queue_status != f.queue_status:
        return False
    if f.counterparty and trade.counterparty != f.counterparty:
        return False
    if date_from or date_to:
        traded = _as_date(trade.trade_date)
        if traded is None:
            return False
        if date_from and traded < date_from:
            return False
        if date_to and traded > date_to:
            return False
    if f.currency and f.currency not in trade.currencies:
        return False
    if f.trader and trade.trader != f.trader:
        return False
    if f.risk_level and trade.risk_level != f.risk_level:
        return False
    if f.document_status:
        status = documents.get(trade.trade_id)
        if status is None or completeness_bucket(status) != f.document_status:
            return False
    return True


def apply_filters(equity: Iterable[Trade], fx: Iterable[Trade], f: TradeFilters,
                  documents: Dict[str, DocumentStatus]) -> List[Trade]:
    """Narrow by trade type, then AND every non-empty criterion."""
    if f.trade_type == "equity":
        trades = list(equity)
    elif f.trade_type == "fx":
        trades = list(fx)
    else:
        trades = list(equity) + list(fx)

    date_from = _as_date(f.date_from) if f.date_from else None
    date_to = _as_date(f.date_to) if f.date_to else None
    if f.date_from and date_from is None:
        logger.warning("Ignoring unparseable date_from %r", f.date_from)
    if f.date_to and date_to is None:
        logger.warning("Ignoring unparseable date_to %r", f.date_to)

    return [t for t in trades if _matches(t, f, date_from, date_to, documents)]


def facets(equity: Iterable[Trade], fx: Iterable[Trade]) -> Facets:
    equity, fx = list(equity), list(fx)
    everything = equity + fx
    return Facets(
        counterparties=sorted({t.counterparty for t in everything if t.counterparty}),
        currencies=sorted({c for t in everything for c in t.currencies if c}),
        traders=sorted({t.trader for t in everything if t.trader}),
    )
