import csv, random
from datetime import datetime, timedelta, timezone
from pathlib import Path

EQUITY_HEADERS = [
    "Trade ID", "Order ID", "Client ID", "ISIN", "Security Name", "Trade Type", "Quantity", "Price",
    "Trade Value", "Currency", "Trade Date", "Settlement Date", "Settlement Status", "Counterparty",
    "Trading Venue", "Trader Name", "KYC Status", "Reference Data Validated", "Commission", "Taxes",
    "Total Cost", "Confirmation Status", "Country of Trade", "Ops Team Notes",
]

FX_HEADERS = [
    "TradeID", "TradeDate", "ValueDate", "TradeTime", "TraderID", "Counterparty", "CurrencyPair",
    "BuySell", "DealtCurrency", "BaseCurrency", "TermCurrency", "NotionalAmount", "FXRate",
    "TradeStatus", "SettlementStatus", "SettlementMethod", "Broker", "ExecutionVenue", "ProductType",
    "MaturityDate", "ConfirmationTimestamp", "SettlementDate", "BookingLocation", "Portfolio",
    "TradeVersion", "CancellationFlag", "AmendmentFlag", "RiskSystemID", "RegulatoryReportingStatus",
    "TradeSourceSystem", "ConfirmationMethod", "ConfirmationStatus",
]

SECURITIES = [("US0378331005", "Apple Inc"), ("US5949181045", "Microsoft Corp"),
              ("US02079K3059", "Alphabet Inc"), ("US0231351067", "Amazon.com Inc"),
              ("US67066G1040", "NVIDIA Corp"), ("US46625H1005", "JPMorgan Chase"),
              ("GB0005405286", "HSBC Holdings"), ("DE0007164600", "SAP SE")]
COUNTERPARTIES = ["Goldman Sachs", "Morgan Stanley", "JP Morgan", "Barclays", "Deutsche Bank",
                  "UBS", "Citigroup", "BNP Paribas"]
VENUES = ["NYSE", "NASDAQ", "LSE", "XETRA", "BATS"]
TRADERS = ["Alex Carter", "Priya Shah", "Tom Becker", "Mei Lin", "Jordan Reyes", "Sam Okafor"]
PAIRS = {"EUR/USD": 1.08, "GBP/USD": 1.27, "USD/JPY": 149.5, "AUD/USD": 0.66,
         "USD/CHF": 0.88, "USD/CAD": 1.36, "EUR/GBP": 0.85}
NOTES = ["", "", "", "Client requested allocation split", "Awaiting SSI confirmation",
         "Price checked with desk", "Late booking, see email"]


def _pick(rng, weighted):
    r, acc = rng.random(), 0.0
    for value, w in weighted:
        acc += w
        if r < acc:
            return value
    return weighted[-1][0]


def _equity_rows(rng, n, now):
    rows = []
    for i in range(n):
        isin, name = rng.choice(SECURITIES)
        qty = rng.choice([100, 250, 500, 1000, 2500, 5000, 10000, 25000])
        price = round(rng.uniform(20, 600), 2)
        value = round(qty*price, 2)
        trade_day = (now - timedelta(days=rng.randint(0, 30))).date()
        status = _pick(rng, [("Confirmed", 0.4), ("Pending", 0.3), ("Failed", 0.15), ("Settled", 0.15)])
        commission = round(value*0.0005, 2)
        taxes = round(value*0.0001, 2)
        rows.append([
            f"EQ{trade_day.strftime('%Y%m%d')}{i:05d}", f"ORD{100000+i}", f"CL{rng.randint(1000, 1999)}",
            isin, name, rng.choice(["Buy", "Sell"]), qty, price, value,
            "GBP" if isin.startswith("GB") else "EUR" if isin.startswith("DE") else "USD",
            trade_day.isoformat(), (trade_day + timedelta(days=1)).isoformat(),
            "Settled" if status == "Settled" else "Pending",
            rng.choice(COUNTERPARTIES), rng.choice(VENUES), rng.choice(TRADERS),
            rng.choice(["Verified", "Verified", "Pending"]), rng.choice(["Yes", "No"]),
            commission, taxes, round(value + commission + taxes, 2),
            status, rng.choice(["US", "UK", "DE"]), rng.choice(NOTES),
        ])
    return rows


def _fx_rows(rng, n, now):
    rows = []
    for i in range(n):
        pair = rng.choice(list(PAIRS))
        base, term = pair.split("/")
        rate = round(PAIRS[pair]*(1 + rng.uniform(-0.01, 0.01)), 5)
        ts = now - timedelta(days=rng.randint(0, 30), minutes=rng.randint(0, 600))
        value_day = (ts + timedelta(days=2)).date()
        product = _pick(rng, [("Spot", 0.6), ("Forward", 0.3), ("Swap", 0.1)])
        maturity = (ts + timedelta(days=rng.choice([30, 90, 180]))).date().isoformat() if product != "Spot" else ""
        status = _pick(rng, [("Confirmed", 0.5), ("Pending", 0.35), ("Disputed", 0.15)])
        trade_status = _pick(rng, [("Booked", 0.3), ("Confirmed", 0.4), ("Settled", 0.2), ("Cancelled", 0.1)])
        confirmed_at = (ts + timedelta(minutes=rng.randint(5, 240))).isoformat() if status == "Confirmed" else ""
        rows.append([
            f"FX{ts.strftime('%Y%m%d')}{i:05d}", ts.date().isoformat(), value_day.isoformat(),
            ts.strftime("%H:%M:%S"), f"TR{rng.randint(100, 130)}", rng.choice(COUNTERPARTIES), pair,
            rng.choice(["Buy", "Sell"]), base, base, term,
            rng.choice([1_000_000, 2_500_000, 5_000_000, 10_000_000]), rate,
            trade_status, "Pending" if trade_status != "Settled" else "Settled",
            rng.choice(["CLS", "Gross", "Net"]), rng.choice(["EBS", "Reuters", "Voice"]),
            rng.choice(["EBS", "FXall", "360T"]), product, maturity, confirmed_at,
            value_day.isoformat(), rng.choice(["London", "New York", "Singapore"]),
            f"PF{rng.randint(1, 9)}", rng.randint(1, 3), "No",
            "Yes" if rng.random() < 0.1 else "No", f"RSK{rng.randint(1000, 9999)}",
            rng.choice(["Reported", "Pending"]), rng.choice(["Murex", "Calypso"]),
            rng.choice(["SWIFT", "Email", "Electronic", "Manual"]), status,
        ])
    return rows


def gen(equity_path, fx_path, n_equity=200, n_fx=200, seed_val=7):
    rng = random.Random(seed_val)
    now = datetime.now(timezone.utc).replace(microsecond=0, tzinfo=None)
    for path, headers, rows in ((equity_path, EQUITY_HEADERS, _equity_rows(rng, n_equity, now)),
                                (fx_path, FX_HEADERS, _fx_rows(rng, n_fx, now))):
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", newline="") as f:
            w = csv.writer(f); w.writerow(headers); w.writerows(rows)


if __name__ == "__main__":
    from . import config
    gen(config.DATA_DIR / config.EQUITY_CSV, config.DATA_DIR / config.FX_CSV)
    print("Seed regenerated.")
