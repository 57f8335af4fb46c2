"""Pytest configuration for all tests."""

import os
import sys

# Make the src layout importable without an editable install
src_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)
