# SPDX-License-Identifier: MIT
"""Pytest fixtures and environment setup.

Ensures the repository root is importable so tests can resolve the in-tree
package without installing it, and accepts ``--hypothesis-show-statistics``
when Hypothesis is absent so CI invocations stay valid.
"""

from __future__ import annotations

import pathlib
import sys

import pytest

ROOT = pathlib.Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def pytest_addoption(parser: pytest.Parser) -> None:
    try:
        import hypothesis  # noqa: F401  # Hypothesis plugin already registers the option
    except ImportError:
        try:
            parser.addoption(
                "--hypothesis-show-statistics",
                action="store_true",
                default=False,
                help="Compatibility flag when Hypothesis is unavailable",
            )
        except ValueError:
            # Option already registered by another plugin; ignore redefinition.
            pass
