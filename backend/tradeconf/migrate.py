"""
Load the fixed-column CSV datasets into the relational store and derive one
workflow (plus its steps) per migrated trade.
"""
import argparse
import logging
from pathlib import Path
from . import config
from .errors import IngestionError
from .ingestion import parse_equity_csv, parse_fx_csv
from .persistence import Repository, migrate_trades, generate_workflows

logger = logging.getLogger(__name__)


def run(db_path: str, data_dir: Path, limit: int | None = None, workflows: bool = True) -> dict:
    repo = Repository(db_path)
    repo.init_schema()
    trades = []
    for name, parse in ((config.EQUITY_CSV, parse_equity_csv), (config.FX_CSV, parse_fx_csv)):
        path = Path(data_dir) / name
        try:
            parsed = parse(path.read_text(encoding="utf-8"))
        except (OSError, IngestionError) as e:
            logger.error("Error reading %s: %s", path, e)
            continue
        trades.extend(parsed[:limit] if limit else parsed)

    result = migrate_trades(repo, trades)
    if workflows:
        result.update(generate_workflows(repo, trades))
    result["stats"] = repo.stats()
    repo.close()
    return result


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Migrate trade CSVs into sqlite")
    parser.add_argument("--db", default=config.DB_PATH)
    parser.add_argument("--data-dir", default=str(config.DATA_DIR))
    parser.add_argument("--limit", type=int, default=None, help="max trades per dataset")
    parser.add_argument("--no-workflows", action="store_true")
    args = parser.parse_args()
    config.setup_logging()
    out = run(args.db, Path(args.data_dir), args.limit, workflows=not args.no_workflows)
    print(f"Migrated {out['migrated']} trades ({out['failed']} failed). Stats: {out['stats']}")
