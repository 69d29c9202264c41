"""Pytest bootstrap and shared fixtures.

The top-level modules live in the repository root; make sure they import
even when the ``pytest`` console script starts with a different sys.path.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
PROJECT_ROOT_STR = str(PROJECT_ROOT)

if PROJECT_ROOT_STR not in sys.path:
    sys.path.insert(0, PROJECT_ROOT_STR)

from command_engine import CommandEngine  # noqa: E402
from outline_io import parse  # noqa: E402
from settings import Settings  # noqa: E402
from system_clipboard import MemoryClipboard  # noqa: E402

# ids in pre-order: root 0, A 1, A1 2, A2 3, B 4, C 5
SAMPLE_OUTLINE = "root\n\tA\n\t\tA1\n\t\tA2\n\tB\n\tC\n"


@pytest.fixture
def sample_tree():
    return parse(SAMPLE_OUTLINE)


@pytest.fixture
def clipboard():
    return MemoryClipboard()


@pytest.fixture
def engine(sample_tree, clipboard):
    return CommandEngine(sample_tree, Settings(), clipboard)
