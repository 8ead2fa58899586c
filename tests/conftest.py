"""Pytest configuration for report bot tests."""

import sys
from pathlib import Path

# Ensure project root and the shared fakes are importable
project_root = Path(__file__).parent.parent
tests_dir = Path(__file__).parent
for path in (project_root, tests_dir):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))
