
import asyncio
import csv
import io
import logging
import math
import re
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import List, Optional, Sequence
from dateutil import parser
from pydantic import ValidationError
from .errors import EmptyInputError, NoDataError
from .models import EquityTrade, FXTrade, Trade

logger = logging.getLogger(__name__)

EQUITY_MIN_COLUMNS = 24
FX_MIN_COLUMNS = 32

# headers only an FX sheet carries; "buysell" and "producttype" also appear on equity blotters
FX_MARKERS = ("currencypair", "basecurrency", "termcurrency", "valuedate", "dealtcurrency")


def _int(v: str) -> int:
    try:
        return int(float(v))
    except (TypeError, ValueError, OverflowError):
        return 0


def _float(v: str) -> float:
    try:
        f = float(v)
    except (TypeError, ValueError):
        return 0.0
    return f if math.isfinite(f) else 0.0


def _data_rows(text: str) -> List[List[str]]:
    if not text or not text.strip():
        raise EmptyInputError()
    lines = [ln for ln in text.splitlines() if ln.strip()]
    if len(lines) < 2:
        raise NoDataError()
    return [[c.strip() for c in row] for row in csv.reader(lines[1:])]


def to_equity_trade(cols: Sequence[str]) -> EquityTrade:
    return EquityTrade(
        trade_id=cols[0],
        order_id=cols[1],
        client_id=cols[2],
        trade_type=cols[5],
        quantity=_int(cols[6]),
        price=_float(cols[7]),
        trade_value=_float(cols[8]),
        currency=cols[9],
        trade_date=cols[10],
        settlement_date=cols[11],
        counterparty=cols[13],
        trading_venue=cols[14],
        trader_name=cols[15],
        confirmation_status=cols[21],
        country_of_trade=cols[22],
        ops_team_notes=cols[23],
    )


def to_fx_trade(cols: Sequence[str]) -> FXTrade:
    return FXTrade(
        trade_id=cols[0],
        trade_date=cols[1],
        value_date=cols[2],
        trade_time=cols[3],
        trader_id=cols[4],
        counterparty=cols[5],
        currency_pair=cols[6],
        buy_sell=cols[7],
        dealt_currency=cols[8],
        base_currency=cols[9],
        term_currency=cols[10],
        trade_status=cols[13],
        product_type=cols[18],
        maturity_date=cols[19],
        confirmation_timestamp=cols[20],
        settlement_date=cols[21],
        amendment_flag=cols[26],
        confirmation_method=cols[30],
        confirmation_status=cols[31],
    )


def _parse_fixed(text: str, min_cols: int, build) -> list:
    out = []
    for n, cols in enumerate(_data_rows(text), start=2):
        if len(cols) < min_cols:
            continue
        try:
            out.append(build(cols))
        except ValidationError as e:
            logger.warning("Skipping line %d (%s): %s", n, cols[0], e.errors()[0]["msg"])
    return out


def parse_equity_csv(text: str) -> List[EquityTrade]:
    return _parse_fixed(text, EQUITY_MIN_COLUMNS, to_equity_trade)


def parse_fx_csv(text: str) -> List[FXTrade]:
    return _parse_fixed(text, FX_MIN_COLUMNS, to_fx_trade)


# ---------------------------------------------------------------------------
# header-matched parsing for uploaded sheets
# ---------------------------------------------------------------------------

@dataclass
class GenericSheet:
    headers: List[str]
    rows: List[List[str]]


def normalize_header(h: str) -> str:
    return re.sub(r"[^a-z0-9]", "", h.lower())


def parse_generic_csv(text: str) -> GenericSheet:
    if not text or not text.strip():
        raise EmptyInputError()
    reader = (row for row in csv.reader(io.StringIO(text)) if any(c.strip() for c in row))
    headers = [h.strip().replace('"', '') for h in next(reader)]
    rows = []
    for row in reader:
        cells = [c.strip().replace('"', '') for c in row]
        if len(cells) < len(headers) or not any(cells):
            continue
        rows.append(cells)
    if not rows:
        raise NoDataError()
    return GenericSheet(headers=headers, rows=rows)


def detect_sheet_kind(headers: Sequence[str]) -> str:
    norm = [normalize_header(h) for h in headers]
    if any(m in h for h in norm for m in FX_MARKERS):
        return "fx"
    return "equity"


def find_column(headers: Sequence[str], synonyms: Sequence[str]) -> Optional[int]:
    """Locate a column by synonym: exact normalized match first, then substring."""
    norm = [normalize_header(h) for h in headers]
    for syn in synonyms:
        if syn in norm:
            return norm.index(syn)
    for syn in synonyms:
        for i, h in enumerate(norm):
            if syn in h:
                return i
    return None


EQUITY_SYNONYMS = {
    "trade_id": ("tradeid", "tradereference", "traderef", "tradeno"),
    "order_id": ("orderid", "order"),
    "client_id": ("clientid", "client", "account"),
    "trade_type": ("tradetype", "side", "buysell", "direction"),
    "quantity": ("quantity", "qty", "shares", "units"),
    "price": ("price", "px", "rate"),
    "trade_value": ("tradevalue", "notional", "value", "amount"),
    "currency": ("currency", "ccy"),
    "trade_date": ("tradedate", "date"),
    "settlement_date": ("settlementdate", "settledate", "settle"),
    "counterparty": ("counterparty", "cpty", "broker"),
    "trading_venue": ("tradingvenue", "venue", "exchange"),
    "trader_name": ("tradername", "trader"),
    "confirmation_status": ("confirmationstatus", "status"),
    "country_of_trade": ("countryoftrade", "country"),
    "ops_team_notes": ("opsteamnotes", "notes", "comments"),
}

FX_SYNONYMS = {
    "trade_id": ("tradeid", "tradereference", "traderef", "tradeno"),
    "trade_date": ("tradedate", "date"),
    "value_date": ("valuedate",),
    "trade_time": ("tradetime", "time"),
    "trader_id": ("traderid", "trader"),
    "counterparty": ("counterparty", "cpty"),
    "currency_pair": ("currencypair", "pair", "ccypair"),
    "buy_sell": ("buysell", "side", "direction"),
    "dealt_currency": ("dealtcurrency", "dealt"),
    "base_currency": ("basecurrency", "base"),
    "term_currency": ("termcurrency", "quotecurrency", "term"),
    "trade_status": ("tradestatus",),
    "product_type": ("producttype", "product"),
    "maturity_date": ("maturitydate", "maturity"),
    "confirmation_timestamp": ("confirmationtimestamp",),
    "settlement_date": ("settlementdate", "settledate"),
    "amendment_flag": ("amendmentflag", "amended"),
    "confirmation_method": ("confirmationmethod", "method"),
    "confirmation_status": ("confirmationstatus", "status"),
}


def _cell(row: Sequence[str], idx: Optional[int]) -> str:
    if idx is None or idx >= len(row):
        return ""
    return row[idx]


def _as_date(v: str, default: date) -> str:
    if not v:
        return default.isoformat()
    try:
        return parser.parse(v).date().isoformat()
    except (ValueError, OverflowError):
        return default.isoformat()


def _pick(v: str, allowed: Sequence[str], default: str) -> str:
    for a in allowed:
        if v.lower() == a.lower():
            return a
    return default


def _generic_equity(row, cols, n: int, today: date) -> EquityTrade:
    get = lambda f: _cell(row, cols[f])
    qty = _int(get("quantity")) if get("quantity") else 100
    price = _float(get("price")) if get("price") else 100.0
    value = _float(get("trade_value")) if get("trade_value") else qty * price
    return EquityTrade(
        trade_id=get("trade_id") or f"TRADE_{n}",
        order_id=get("order_id") or f"ORDER_{n}",
        client_id=get("client_id") or f"CLIENT_{n}",
        trade_type=_pick(get("trade_type"), ("Buy", "Sell"), "Buy"),
        quantity=qty,
        price=price,
        trade_value=value,
        currency=(get("currency") or "USD").upper(),
        trade_date=_as_date(get("trade_date"), today),
        settlement_date=_as_date(get("settlement_date"), today + timedelta(days=2)),
        counterparty=get("counterparty") or "Unknown",
        trading_venue=get("trading_venue") or "Unknown",
        trader_name=get("trader_name") or "Unknown",
        confirmation_status=_pick(get("confirmation_status"),
                                  ("Confirmed", "Pending", "Failed", "Settled"), "Pending"),
        country_of_trade=get("country_of_trade"),
        ops_team_notes=get("ops_team_notes"),
    )


def _generic_fx(row, cols, n: int, today: date) -> FXTrade:
    get = lambda f: _cell(row, cols[f])
    pair = get("currency_pair") or "EUR/USD"
    base, _, term = pair.replace("-", "/").partition("/")
    base = get("base_currency") or base or "EUR"
    term = get("term_currency") or term or "USD"
    return FXTrade(
        trade_id=get("trade_id") or f"TRADE_{n}",
        trade_date=_as_date(get("trade_date"), today),
        value_date=_as_date(get("value_date"), today + timedelta(days=2)),
        trade_time=get("trade_time") or "09:00:00",
        trader_id=get("trader_id") or "Unknown",
        counterparty=get("counterparty") or "Unknown",
        currency_pair=pair,
        buy_sell=_pick(get("buy_sell"), ("Buy", "Sell"), "Buy"),
        dealt_currency=get("dealt_currency") or base,
        base_currency=base,
        term_currency=term,
        trade_status=_pick(get("trade_status"), ("Booked", "Confirmed", "Settled", "Cancelled"), "Booked"),
        product_type=_pick(get("product_type"), ("Spot", "Forward", "Swap"), "Spot"),
        maturity_date=get("maturity_date"),
        confirmation_timestamp=get("confirmation_timestamp"),
        settlement_date=_as_date(get("settlement_date"), today + timedelta(days=2)),
        amendment_flag=_pick(get("amendment_flag"), ("Yes", "No"), "No"),
        confirmation_method=_pick(get("confirmation_method"), ("SWIFT", "Email", "Electronic", "Manual"), "Manual"),
        confirmation_status=_pick(get("confirmation_status"), ("Confirmed", "Pending", "Disputed"), "Pending"),
    )


def convert_generic_to_trades(sheet: GenericSheet, today: date | None = None) -> List[Trade]:
    today = today or date.today()
    kind = detect_sheet_kind(sheet.headers)
    synonyms = FX_SYNONYMS if kind == "fx" else EQUITY_SYNONYMS
    build = _generic_fx if kind == "fx" else _generic_equity
    cols = {field: find_column(sheet.headers, syns) for field, syns in synonyms.items()}
    logger.debug("Generic %s sheet column map: %s", kind, cols)
    return [build(row, cols, n, today) for n, row in enumerate(sheet.rows, start=1)]


def parse_upload(text: str) -> List[Trade]:
    return convert_generic_to_trades(parse_generic_csv(text))


async def load_csvs(queue, equity_csv: Path, fx_csv: Path, throttle_ms: int = 0):
    """Feed both fixed-column datasets into the store queue as ("equity"|"fx", trade) events."""
    events = []
    for kind, path, parse in (("equity", equity_csv, parse_equity_csv), ("fx", fx_csv, parse_fx_csv)):
        try:
            text = Path(path).read_text(encoding="utf-8")
            trades = parse(text)
        except (OSError, EmptyInputError, NoDataError) as e:
            logger.error("Error loading %s trades from %s: %s", kind, path, e)
            continue
        logger.info("Parsed %d %s trades from %s", len(trades), kind, path)
        events.extend((kind, t) for t in trades)

    for topic, payload in events:
        await queue.put((topic, payload))
        if throttle_ms:
            await asyncio.sleep(throttle_ms/1000.0)
    return len(events)
