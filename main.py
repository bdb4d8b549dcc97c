"""
Entry point for the progression CLI.

Run with:
    python main.py --help
    python main.py status alice
"""
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from src.cli.progression_cli import main

if __name__ == "__main__":
    main()
