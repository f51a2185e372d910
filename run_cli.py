"""
CLI entry point for the optimization report.

Usage:
    python run_cli.py                          # Reference data
    python run_cli.py --returns-file data.xlsx # Frontier from a return history
    python run_cli.py --no-plots               # Tables only

For installed package, use: ef-report
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from transport_frontier.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
