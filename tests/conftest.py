import random
import pytest
from fastapi.testclient import TestClient

from tradeconf.main import create_app
from tradeconf.models import EquityTrade, FXTrade
from tradeconf.persistence import Repository
from tradeconf.seed_regen import EQUITY_HEADERS, FX_HEADERS
from tradeconf.store import TradeStore


def _equity_cols(trade_id, status="Confirmed", value=1000.0, currency="USD", trader="Alex Carter",
                 counterparty="Barclays", trade_date="2024-03-01", quantity=10, price=100.0):
    cols = [""] * len(EQUITY_HEADERS)
    cols[0], cols[1], cols[2] = trade_id, f"ORD-{trade_id}", "CL1001"
    cols[3], cols[4] = "US0378331005", "Apple Inc"
    cols[5], cols[6], cols[7], cols[8] = "Buy", str(quantity), str(price), str(value)
    cols[9], cols[10], cols[11] = currency, trade_date, "2024-03-02"
    cols[13], cols[14], cols[15] = counterparty, "NYSE", trader
    cols[21], cols[22], cols[23] = status, "US", ""
    return cols


def _fx_cols(trade_id, status="Confirmed", pair="EUR/USD", product="Spot", amendment="No",
             method="SWIFT", trader="TR101", counterparty="UBS", trade_date="2024-03-01"):
    base, term = pair.split("/")
    cols = [""] * len(FX_HEADERS)
    cols[0], cols[1], cols[2], cols[3] = trade_id, trade_date, "2024-03-05", "10:15:00"
    cols[4], cols[5], cols[6], cols[7] = trader, counterparty, pair, "Sell"
    cols[8], cols[9], cols[10] = base, base, term
    cols[11], cols[12], cols[13] = "1000000", "1.08", "Booked"
    cols[18], cols[21], cols[26] = product, "2024-03-05", amendment
    cols[30], cols[31] = method, status
    return cols


def _csv(header, rows):
    return "\n".join([",".join(header)] + [",".join(r) for r in rows]) + "\n"


@pytest.fixture
def equity_csv():
    """Build a fixed-column equity CSV from (trade_id, overrides) pairs."""
    def build(*trades):
        return _csv(EQUITY_HEADERS, [_equity_cols(tid, **kw) for tid, kw in trades])
    return build


@pytest.fixture
def fx_csv():
    def build(*trades):
        return _csv(FX_HEADERS, [_fx_cols(tid, **kw) for tid, kw in trades])
    return build


@pytest.fixture
def make_equity():
    def build(trade_id="EQ1", **kw):
        kw.setdefault("trade_date", "2024-03-01")
        return EquityTrade(trade_id=trade_id, **kw)
    return build


@pytest.fixture
def make_fx():
    def build(trade_id="FX1", **kw):
        kw.setdefault("trade_date", "2024-03-01")
        return FXTrade(trade_id=trade_id, **kw)
    return build


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def repo():
    r = Repository(":memory:")
    r.init_schema()
    yield r
    r.close()


@pytest.fixture
def store(rng):
    return TradeStore(rng=rng)


@pytest.fixture
def client():
    app = create_app(repository=Repository(":memory:"), load_data=False, persist=True, rng_seed=7)
    with TestClient(app) as c:
        yield c
