"""Run the economic indicator ingestion pipeline from the repository root.

Usage:
    python scripts/run_ingestion.py run
    python scripts/run_ingestion.py daemon
    python scripts/run_ingestion.py latest exchange

See ``python scripts/run_ingestion.py --help`` for all commands.
"""

import sys

from src.pipelines.ingestion.run_ingestion_pipeline import main

if __name__ == "__main__":
    sys.exit(main())
