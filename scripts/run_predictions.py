#!/usr/bin/env python3
"""
scripts/run_predictions.py

Compute and persist the prediction for every user with a profile, for one date
(default: today in UTC). Can be run via a cron job or manually.

Usage:
  python scripts/run_predictions.py [YYYY-MM-DD]
"""
import datetime as dt
import logging
import os
import sys

# Add parent directory to path to import edgeframe / storage modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from edgeframe.prediction import PredictionEngine, PredictionResult
from storage.connection import make_gspread_client_from_secrets, spreadsheet_name_from_secrets
from storage.gsheets import EdgeGSheets, GSheetsConfig
from storage.repo import EdgeRepo

logger = logging.getLogger("run_predictions")


def _target_date(argv) -> dt.date:
    if len(argv) > 1:
        return dt.date.fromisoformat(argv[1])
    return dt.datetime.now(dt.timezone.utc).date()


def main(argv=None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    argv = argv if argv is not None else sys.argv
    try:
        target = _target_date(argv)
    except ValueError:
        logger.error("Invalid date %r, expected YYYY-MM-DD", argv[1])
        return 2

    # Needs valid streamlit secrets in environment or `.streamlit/secrets.toml`
    try:
        gc = make_gspread_client_from_secrets()
        repo = EdgeRepo(EdgeGSheets(gc, GSheetsConfig(spreadsheet_name=spreadsheet_name_from_secrets())))
    except Exception as e:
        logger.error("Failed to connect to Google Sheets: %s", e)
        logger.error("Make sure you run this from the project root where .streamlit/secrets.toml is accessible.")
        return 1

    engine = PredictionEngine(repo)
    usernames = repo.list_usernames()
    logger.info("Running predictions for %d users on %s", len(usernames), target.isoformat())

    failed = 0
    for username in usernames:
        try:
            outcome = engine.evaluate(username, target)
        except RuntimeError as e:
            failed += 1
            logger.error("  %s -> read failed, stored prediction left as is: %s", username, e)
            continue
        try:
            repo.save_prediction(outcome)
        except RuntimeError as e:
            failed += 1
            logger.error("  %s -> save failed: %s", username, e)
            continue
        if isinstance(outcome, PredictionResult):
            logger.info("  %s -> edge %d (%s, risk %s)", username, outcome.edge_score, outcome.scoring_mode, outcome.risk_level)
        else:
            logger.info("  %s -> insufficient data (%d sleep records)", username, outcome.sleep_records_found)

    logger.info("Finished predictions: %d saved, %d failed.", len(usernames) - failed, failed)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
