#!/usr/bin/env python3
"""
Script to run the complete rental listing regression analysis pipeline.

Usage: run_analysis.py [path/to/listings.csv] [boxcox_lambda]
"""

import sys
import logging
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from rental_econometrics.core.config import get_data_path, get_log_level, settings
from rental_econometrics.core.exceptions import ListingAnalysisError
from rental_econometrics.analytics.coefficient_report import CoefficientReporter
from rental_econometrics.main_analysis import run_complete_analysis
from rental_econometrics.models.listing_data_processor import load_listings_csv

logger = logging.getLogger(__name__)


def configure_logging():
    """Log to stdout and, when configured, to the analysis log file."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=get_log_level().upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def main(argv=None):
    """Run the complete analysis pipeline."""
    argv = sys.argv[1:] if argv is None else argv
    data_path = argv[0] if argv else get_data_path()

    try:
        boxcox_lambda = float(argv[1]) if len(argv) > 1 else None
    except ValueError:
        logger.error(f"Box-Cox lambda must be a number, got '{argv[1]}'")
        return 1

    try:
        logger.info(f"Starting rental listing analysis for region '{settings.region}'...")

        raw = load_listings_csv(data_path)
        results = run_complete_analysis(raw, settings, boxcox_lambda=boxcox_lambda)

        logger.info("Model comparison:\n%s", results.comparison.to_string())
        logger.info("Stepwise removals:\n%s", results.stepwise.trace_table().to_string(index=False))
        for name in ("stepwise", "log"):
            model = results.models[name]
            logger.info("%s", model.summary())
            logger.info("Statistics (%s): %s", name, model.get_model_statistics())
        for report in results.diagnostics.values():
            logger.info("%s", report.summary())
        logger.info("Box-Cox candidates:\n%s", results.transformations.to_string())
        logger.info(
            "Percent change in price (log model):\n%s",
            CoefficientReporter(settings.confidence_level).format_report(results.coefficient_report),
        )

        logger.info("Analysis completed successfully!")
        return 0

    except (ListingAnalysisError, FileNotFoundError) as e:
        logger.error(f"Analysis failed: {e}")
        return 1


if __name__ == "__main__":
    configure_logging()
    exit_code = main()
    sys.exit(exit_code)
