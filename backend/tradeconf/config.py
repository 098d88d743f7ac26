
import logging
import os
from pathlib import Path

ROOT = Path(__file__).resolve().parent

DB_PATH   = os.getenv("TCM_DB_PATH", "tradeconf.db")
DATA_DIR  = Path(os.getenv("TCM_DATA_DIR", str(ROOT / "seed_data")))
EQUITY_CSV = os.getenv("TCM_EQUITY_CSV", "equity_trade_lifecycle_dataset.csv")
FX_CSV     = os.getenv("TCM_FX_CSV", "fx_trade_lifecycle_full_dataset.csv")

LOG_LEVEL = os.getenv("TCM_LOG_LEVEL", "INFO").upper()
LOAD_THROTTLE_MS = int(os.getenv("TCM_LOAD_THROTTLE_MS", "0"))
PERSIST_ON_LOAD = os.getenv("TCM_PERSIST_ON_LOAD", "true").lower() == "true"

# enrichment
ENRICHMENT_POLICY = os.getenv("TCM_ENRICHMENT_POLICY", "v2")
_seed = os.getenv("TCM_RNG_SEED")
RNG_SEED = int(_seed) if _seed not in (None, "") else None


def setup_logging(level: str | None = None):
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
