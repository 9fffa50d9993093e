"""Pytest configuration for all tests."""

import sys
import os

# Add the project root to Python path so "src.triage" imports without install
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)
