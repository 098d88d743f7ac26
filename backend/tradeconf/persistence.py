
import logging
import sqlite3
import datetime as dt
from typing import Iterable, List, Optional
from .errors import DuplicateTradeError
from .models import EquityTrade, FXTrade, Trade
from .workflows import generate_workflow

logger = logging.getLogger(__name__)

EQUITY_COLUMNS = ("trade_id", "order_id", "client_id", "security", "side", "quantity", "price",
                  "trade_value", "currency", "counterparty", "trading_venue", "trader",
                  "trade_date", "settlement_date", "trade_time", "confirmation_status",
                  "country_of_trade", "ops_team_notes")

FX_COLUMNS = ("trade_id", "currency_pair", "transaction_type", "base_currency", "quote_currency",
              "term_currency", "dealt_currency", "counterparty", "trader_id", "trade_date",
              "value_date", "settlement_date", "trade_time", "trade_status", "product_type",
              "maturity_date", "confirmation_timestamp", "amendment_flag",
              "confirmation_method", "confirmation_status")

WORKFLOW_COLUMNS = ("trade_id", "status", "priority", "assigned_to")
STEP_COLUMNS = ("workflow_id", "step_id", "name", "description", "status", "order")

SCHEMA = (
    """CREATE TABLE IF NOT EXISTS users(
        id INTEGER PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        password TEXT NOT NULL)""",
    """CREATE TABLE IF NOT EXISTS equity_trades(
        id INTEGER PRIMARY KEY,
        trade_id TEXT NOT NULL UNIQUE, order_id TEXT NOT NULL, client_id TEXT,
        security TEXT NOT NULL, side TEXT NOT NULL,
        quantity INTEGER NOT NULL, price REAL NOT NULL, trade_value REAL NOT NULL,
        currency TEXT NOT NULL DEFAULT 'USD', counterparty TEXT NOT NULL,
        trading_venue TEXT, trader TEXT NOT NULL,
        trade_date TEXT NOT NULL, settlement_date TEXT NOT NULL, trade_time TEXT NOT NULL,
        confirmation_status TEXT NOT NULL DEFAULT 'Pending',
        country_of_trade TEXT, ops_team_notes TEXT,
        created_at TEXT, updated_at TEXT)""",
    """CREATE TABLE IF NOT EXISTS fx_trades(
        id INTEGER PRIMARY KEY,
        trade_id TEXT NOT NULL UNIQUE, currency_pair TEXT NOT NULL,
        transaction_type TEXT NOT NULL, base_currency TEXT NOT NULL, quote_currency TEXT NOT NULL,
        term_currency TEXT, dealt_currency TEXT, counterparty TEXT NOT NULL, trader_id TEXT,
        trade_date TEXT NOT NULL, value_date TEXT, settlement_date TEXT NOT NULL,
        trade_time TEXT NOT NULL, trade_status TEXT, product_type TEXT, maturity_date TEXT,
        confirmation_timestamp TEXT, amendment_flag TEXT, confirmation_method TEXT,
        confirmation_status TEXT NOT NULL DEFAULT 'Pending',
        created_at TEXT, updated_at TEXT)""",
    """CREATE TABLE IF NOT EXISTS trade_workflows(
        id INTEGER PRIMARY KEY,
        trade_id TEXT NOT NULL, status TEXT NOT NULL DEFAULT 'pending',
        priority TEXT NOT NULL DEFAULT 'medium', assigned_to TEXT,
        created_at TEXT, updated_at TEXT)""",
    """CREATE TABLE IF NOT EXISTS workflow_steps(
        id INTEGER PRIMARY KEY,
        workflow_id INTEGER NOT NULL, step_id TEXT NOT NULL, name TEXT NOT NULL,
        description TEXT, status TEXT NOT NULL DEFAULT 'pending', "order" INTEGER NOT NULL,
        created_at TEXT, updated_at TEXT)""",
    "CREATE INDEX IF NOT EXISTS idx_steps_wf ON workflow_steps(workflow_id)",
)


def iso_now():
    return dt.datetime.now(dt.timezone.utc).replace(microsecond=0, tzinfo=None).isoformat() + "Z"


def _quote(cols: Iterable[str]) -> str:
    return ",".join(f'"{c}"' for c in cols)


def equity_row(t: EquityTrade) -> dict:
    return {
        "trade_id": t.trade_id, "order_id": t.order_id, "client_id": t.client_id,
        "security": "EQUITY", "side": t.trade_type, "quantity": t.quantity, "price": t.price,
        "trade_value": t.trade_value, "currency": t.currency or "USD",
        "counterparty": t.counterparty or "Unknown", "trading_venue": t.trading_venue,
        "trader": t.trader_name or "Unknown", "trade_date": t.trade_date,
        "settlement_date": t.settlement_date, "trade_time": "09:00:00",
        "confirmation_status": t.confirmation_status, "country_of_trade": t.country_of_trade,
        "ops_team_notes": t.ops_team_notes,
    }


def fx_row(t: FXTrade) -> dict:
    return {
        "trade_id": t.trade_id, "currency_pair": t.currency_pair, "transaction_type": t.buy_sell,
        "base_currency": t.base_currency, "quote_currency": t.term_currency,
        "term_currency": t.term_currency, "dealt_currency": t.dealt_currency,
        "counterparty": t.counterparty or "Unknown", "trader_id": t.trader_id,
        "trade_date": t.trade_date, "value_date": t.value_date,
        "settlement_date": t.settlement_date or t.value_date, "trade_time": t.trade_time or "09:00:00",
        "trade_status": t.trade_status, "product_type": t.product_type,
        "maturity_date": t.maturity_date, "confirmation_timestamp": t.confirmation_timestamp,
        "amendment_flag": t.amendment_flag, "confirmation_method": t.confirmation_method,
        "confirmation_status": t.confirmation_status,
    }


class Repository:
    """Relational copy of trades and workflows, served by the CRUD API."""

    def __init__(self, path: str):
        self.path = path
        # one shared connection keeps ":memory:" databases alive between calls
        self.conn = sqlite3.connect(path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

    def init_schema(self):
        with self.conn as c:
            for ddl in SCHEMA:
                c.execute(ddl)

    def close(self):
        self.conn.close()

    # --- generic helpers -------------------------------------------------

    def _all(self, table: str) -> List[dict]:
        return [dict(r) for r in self.conn.execute(f"SELECT * FROM {table} ORDER BY id")]

    def _one(self, table: str, trade_id: str) -> Optional[dict]:
        row = self.conn.execute(f"SELECT * FROM {table} WHERE trade_id=? LIMIT 1", (trade_id,)).fetchone()
        return dict(row) if row else None

    def _insert(self, table: str, cols: Iterable[str], values: dict) -> dict:
        cols = [c for c in cols if c in values]
        ts = iso_now()
        sql = (f"INSERT INTO {table}({_quote(cols)},created_at,updated_at) "
               f"VALUES ({','.join('?' * len(cols))},?,?)")
        with self.conn as c:
            cur = c.execute(sql, [values[k] for k in cols] + [ts, ts])
        return dict(self.conn.execute(f"SELECT * FROM {table} WHERE id=?", (cur.lastrowid,)).fetchone())

    def _create_trade(self, table: str, cols, values: dict) -> dict:
        try:
            return self._insert(table, cols, values)
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e) and "trade_id" in str(e):
                raise DuplicateTradeError(values.get("trade_id", "")) from e
            raise

    def _update_trade(self, table: str, cols, trade_id: str, updates: dict) -> Optional[dict]:
        fields = {k: v for k, v in updates.items() if k in cols and k != "trade_id"}
        if fields:
            sets = ",".join(f'"{k}"=?' for k in fields)
            with self.conn as c:
                c.execute(f"UPDATE {table} SET {sets},updated_at=? WHERE trade_id=?",
                          list(fields.values()) + [iso_now(), trade_id])
        return self._one(table, trade_id)

    # --- trades ----------------------------------------------------------

    def get_equity_trades(self) -> List[dict]:
        return self._all("equity_trades")

    def get_fx_trades(self) -> List[dict]:
        return self._all("fx_trades")

    def get_equity_trade(self, trade_id: str) -> Optional[dict]:
        return self._one("equity_trades", trade_id)

    def get_fx_trade(self, trade_id: str) -> Optional[dict]:
        return self._one("fx_trades", trade_id)

    def create_equity_trade(self, values: dict) -> dict:
        return self._create_trade("equity_trades", EQUITY_COLUMNS, values)

    def create_fx_trade(self, values: dict) -> dict:
        return self._create_trade("fx_trades", FX_COLUMNS, values)

    def update_equity_trade(self, trade_id: str, updates: dict) -> Optional[dict]:
        return self._update_trade("equity_trades", EQUITY_COLUMNS, trade_id, updates)

    def update_fx_trade(self, trade_id: str, updates: dict) -> Optional[dict]:
        return self._update_trade("fx_trades", FX_COLUMNS, trade_id, updates)

    def save_trade(self, trade: Trade) -> dict:
        if isinstance(trade, EquityTrade):
            return self.create_equity_trade(equity_row(trade))
        return self.create_fx_trade(fx_row(trade))

    # --- workflows -------------------------------------------------------

    def get_workflows(self) -> List[dict]:
        return self._all("trade_workflows")

    def get_workflow_steps(self) -> List[dict]:
        return self._all("workflow_steps")

    def create_workflow(self, values: dict) -> dict:
        return self._insert("trade_workflows", WORKFLOW_COLUMNS, values)

    def create_workflow_step(self, values: dict) -> dict:
        return self._insert("workflow_steps", STEP_COLUMNS, values)

    # --- aggregates ------------------------------------------------------

    def stats(self) -> dict:
        def count(sql, *args):
            return self.conn.execute(sql, args).fetchone()[0]

        eq = count("SELECT COUNT(*) FROM equity_trades")
        fx = count("SELECT COUNT(*) FROM fx_trades")

        def by_status(status):
            return (count("SELECT COUNT(*) FROM equity_trades WHERE confirmation_status=?", status)
                    + count("SELECT COUNT(*) FROM fx_trades WHERE confirmation_status=?", status))

        return {
            "totalTrades": eq + fx,
            "totalEquityTrades": eq,
            "totalFxTrades": fx,
            "totalWorkflows": count("SELECT COUNT(*) FROM trade_workflows"),
            "tradeConfirmations": eq + fx,
            "confirmedTrades": by_status("Confirmed"),
            "pendingTrades": by_status("Pending"),
            "failedTrades": by_status("Failed") + by_status("Disputed"),
            "settledTrades": by_status("Settled"),
        }


def migrate_trades(repo: Repository, trades: Iterable[Trade]) -> dict:
    # Best effort: each insert stands alone, a failure is logged and skipped.
    done, failed = 0, 0
    for t in trades:
        try:
            repo.save_trade(t)
            done += 1
        except (DuplicateTradeError, sqlite3.Error) as e:
            failed += 1
            logger.error("Error migrating %s trade %s: %s", t.kind, t.trade_id, e)
    logger.info("Migrated %d trades (%d failed)", done, failed)
    return {"migrated": done, "failed": failed}


def _workflow_status(confirmation_status: str) -> str:
    s = confirmation_status.lower()
    if s == "settled":
        return "completed"
    if s == "confirmed":
        return "in-progress"
    return "pending"


def generate_workflows(repo: Repository, trades: Iterable[Trade]) -> dict:
    workflows_created, steps_created = 0, 0
    for t in trades:
        wf = generate_workflow(t)
        try:
            row = repo.create_workflow({
                "trade_id": t.trade_id,
                "status": _workflow_status(t.confirmation_status),
                "priority": wf.priority,
                "assigned_to": t.trader or "Unknown",
            })
            workflows_created += 1
            for order, st in enumerate(wf.steps, start=1):
                repo.create_workflow_step({
                    "workflow_id": row["id"], "step_id": st.id, "name": st.name,
                    "description": st.notes, "status": st.status, "order": order,
                })
                steps_created += 1
        except sqlite3.Error as e:
            logger.error("Error generating workflow for %s: %s", t.trade_id, e)
    logger.info("Generated %d workflows and %d workflow steps", workflows_created, steps_created)
    return {"workflows": workflows_created, "steps": steps_created}
