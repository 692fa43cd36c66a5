#!/usr/bin/env python3
"""
Validate hand-written SQL against the ArteVida catalog, offline.

    python scripts/lint_sql.py [FILE ...]
"""

import sys
from pathlib import Path

# Add the src directory to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))


if __name__ == "__main__":
    from artevida.lint import lint_sql

    lint_sql()
