"""
Pytest configuration for the Librarian bot tests.
"""

import sys
from pathlib import Path

# Make the top-level packages (bot, config, librarian, utils) importable
root_path = Path(__file__).parent.parent
sys.path.insert(0, str(root_path))
