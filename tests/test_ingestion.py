"""
Tests for the fixed-column and header-matched CSV parsers and the async loader.
"""
import asyncio
from datetime import date

import pytest

from tradeconf.errors import EmptyInputError, NoDataError
from tradeconf.ingestion import (parse_equity_csv, parse_fx_csv, parse_generic_csv, detect_sheet_kind,
                                 find_column, convert_generic_to_trades, parse_upload, load_csvs,
                                 EQUITY_SYNONYMS)
from tradeconf.models import EquityTrade, FXTrade


class TestFixedColumnParsers:

    def test_equity_rows_keep_trade_ids(self, equity_csv):
        text = equity_csv(("EQ1", {}), ("EQ2", {"status": "Failed"}), ("EQ3", {"value": 2500000}))
        trades = parse_equity_csv(text)
        assert [t.trade_id for t in trades] == ["EQ1", "EQ2", "EQ3"]
        assert trades[1].confirmation_status == "Failed"
        assert trades[2].trade_value == 2500000.0
        assert trades[0].quantity == 10
        assert trades[0].counterparty == "Barclays"
        assert trades[0].trader_name == "Alex Carter"

    def test_short_rows_and_blank_lines_are_skipped(self, equity_csv):
        text = equity_csv(("EQ1", {})) + "\nEQ2,ORD,CL\n\n"
        assert [t.trade_id for t in parse_equity_csv(text)] == ["EQ1"]

    def test_non_numeric_values_become_zero(self, equity_csv):
        text = equity_csv(("EQ1", {"quantity": "n/a", "price": "-"}))
        trade = parse_equity_csv(text)[0]
        assert trade.quantity == 0
        assert trade.price == 0.0

    def test_non_finite_values_do_not_abort_the_file(self, equity_csv):
        text = equity_csv(("EQ1", {"quantity": "inf", "price": "nan", "value": "1e400"}), ("EQ2", {}))
        trades = parse_equity_csv(text)
        assert [t.trade_id for t in trades] == ["EQ1", "EQ2"]
        assert (trades[0].quantity, trades[0].price, trades[0].trade_value) == (0, 0.0, 0.0)

    def test_unknown_status_row_is_dropped(self, equity_csv):
        text = equity_csv(("EQ1", {"status": "Lost"}), ("EQ2", {}))
        assert [t.trade_id for t in parse_equity_csv(text)] == ["EQ2"]

    def test_fx_fields_by_position(self, fx_csv):
        text = fx_csv(("FX1", {"status": "Disputed", "product": "Forward", "amendment": "Yes",
                               "method": "Email", "pair": "GBP/USD"}))
        trade = parse_fx_csv(text)[0]
        assert isinstance(trade, FXTrade)
        assert trade.confirmation_status == "Disputed"
        assert trade.product_type == "Forward"
        assert trade.amendment_flag == "Yes"
        assert trade.confirmation_method == "Email"
        assert (trade.base_currency, trade.term_currency) == ("GBP", "USD")
        assert trade.trade_status == "Booked"

    def test_empty_text_raises(self):
        with pytest.raises(EmptyInputError):
            parse_equity_csv("   \n")

    def test_header_only_raises(self, equity_csv):
        with pytest.raises(NoDataError):
            parse_equity_csv(equity_csv())


class TestGenericParser:

    def test_quotes_are_stripped_and_short_rows_dropped(self):
        sheet = parse_generic_csv('"Trade ID","Qty"\n"A1","5"\nA2\n')
        assert sheet.headers == ["Trade ID", "Qty"]
        assert sheet.rows == [["A1", "5"]]

    def test_no_data_rows(self):
        with pytest.raises(NoDataError):
            parse_generic_csv("Trade ID,Qty\n")

    def test_blank_input(self):
        with pytest.raises(EmptyInputError):
            parse_generic_csv("")

    def test_sheet_kind(self):
        assert detect_sheet_kind(["Trade ID", "Currency Pair", "Amount"]) == "fx"
        assert detect_sheet_kind(["Trade ID", "Value Date"]) == "fx"
        assert detect_sheet_kind(["Trade ID", "Quantity", "Price"]) == "equity"
        assert detect_sheet_kind(["Trade ID", "Buy/Sell", "Product Type", "Quantity"]) == "equity"

    def test_equity_sheet_with_buy_sell_column(self):
        trade = parse_upload("Trade ID,Buy/Sell,Quantity,Price,Currency\nE1,Sell,50,20,GBP\n")[0]
        assert isinstance(trade, EquityTrade)
        assert trade.trade_type == "Sell"
        assert (trade.quantity, trade.price, trade.currency) == (50, 20.0, "GBP")

    def test_quoted_cell_spanning_lines(self):
        sheet = parse_generic_csv('Trade ID,Notes\nA1,"first line\nsecond line"\n\nA2,short\n')
        assert sheet.rows == [["A1", "first line\nsecond line"], ["A2", "short"]]

    def test_qty_header_resolves_quantity(self):
        assert find_column(["Trade ID", "Qty", "Px"], EQUITY_SYNONYMS["quantity"]) == 1

    def test_exact_match_beats_substring(self):
        # "Order Status" contains "status" but the exact header wins
        headers = ["Order Status", "Status"]
        assert find_column(headers, EQUITY_SYNONYMS["confirmation_status"]) == 1

    def test_substring_match(self):
        assert find_column(["Trade Qty (shares)"], EQUITY_SYNONYMS["quantity"]) == 0
        assert find_column(["Something else"], EQUITY_SYNONYMS["quantity"]) is None

    def test_equity_defaults(self):
        sheet = parse_generic_csv("Counterparty,Notes\nBarclays,hello\n")
        trade = convert_generic_to_trades(sheet, today=date(2024, 5, 1))[0]
        assert isinstance(trade, EquityTrade)
        assert trade.trade_id == "TRADE_1"
        assert trade.quantity == 100
        assert trade.price == 100.0
        assert trade.trade_value == 10000.0
        assert trade.currency == "USD"
        assert trade.trade_date == "2024-05-01"
        assert trade.confirmation_status == "Pending"
        assert trade.counterparty == "Barclays"
        assert trade.trader_name == "Unknown"

    def test_equity_values_from_headers(self):
        text = "Trade Ref,Qty,Px,Ccy,Trade Date,Status\nR1,50,20.5,gbp,03/04/2024,failed\n"
        trade = parse_upload(text)[0]
        assert trade.trade_id == "R1"
        assert trade.quantity == 50
        assert trade.price == 20.5
        assert trade.trade_value == 1025.0
        assert trade.currency == "GBP"
        assert trade.trade_date == "2024-03-04"
        assert trade.confirmation_status == "Failed"

    def test_fx_pair_splits_into_currencies(self):
        sheet = parse_generic_csv("Trade ID,Currency Pair\nF1,GBP/JPY\n")
        trade = convert_generic_to_trades(sheet, today=date(2024, 6, 1))[0]
        assert isinstance(trade, FXTrade)
        assert trade.trade_id == "F1"
        assert (trade.base_currency, trade.term_currency) == ("GBP", "JPY")
        assert trade.trade_date == "2024-06-01"
        assert trade.value_date == "2024-06-03"
        assert trade.confirmation_status == "Pending"
        assert trade.confirmation_method == "Manual"

    def test_fx_default_pair(self):
        sheet = parse_generic_csv("Trade ID,Value Date\nF1,2024-06-03\n")
        trade = convert_generic_to_trades(sheet, today=date(2024, 6, 1))[0]
        assert trade.currency_pair == "EUR/USD"
        assert (trade.base_currency, trade.term_currency) == ("EUR", "USD")
        assert trade.value_date == "2024-06-03"


class TestLoader:

    def test_events_are_queued_for_both_datasets(self, tmp_path, equity_csv, fx_csv):
        eq = tmp_path / "eq.csv"
        fx = tmp_path / "fx.csv"
        eq.write_text(equity_csv(("EQ1", {}), ("EQ2", {})))
        fx.write_text(fx_csv(("FX1", {})))

        async def run():
            queue = asyncio.Queue()
            n = await load_csvs(queue, eq, fx)
            events = [queue.get_nowait() for _ in range(queue.qsize())]
            return n, events

        n, events = asyncio.run(run())
        assert n == 3
        assert [(k, t.trade_id) for k, t in events] == [("equity", "EQ1"), ("equity", "EQ2"), ("fx", "FX1")]

    def test_missing_file_leaves_other_dataset(self, tmp_path, fx_csv):
        fx = tmp_path / "fx.csv"
        fx.write_text(fx_csv(("FX1", {})))

        async def run():
            queue = asyncio.Queue()
            return await load_csvs(queue, tmp_path / "missing.csv", fx), queue.qsize()

        assert asyncio.run(run()) == (1, 1)


def test_shipped_seed_data_parses():
    from tradeconf import config
    equity = parse_equity_csv((config.ROOT / "seed_data" / config.EQUITY_CSV).read_text())
    fx = parse_fx_csv((config.ROOT / "seed_data" / config.FX_CSV).read_text())
    assert len(equity) == 8
    assert len(fx) == 6
    assert {t.confirmation_status for t in equity} == {"Confirmed", "Failed", "Settled", "Pending"}
    assert {t.confirmation_status for t in fx} == {"Confirmed", "Disputed", "Pending"}
