"""Shared fixtures for CLI module tests."""

from __future__ import annotations

from typing import Callable

import pytest
from click.testing import CliRunner


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click test runner."""
    return CliRunner()


@pytest.fixture
def install_tool(monkeypatch: pytest.MonkeyPatch, fake_tool: Callable) -> Callable:
    """Make the CLI build a FakeTool instead of launching Bio-Formats.

    Returns a function taking ``reports`` (and optionally ``available``)
    that installs the fake and returns it.
    """

    def install(reports: dict, available: bool = True):
        tool = fake_tool(reports, available=available)
        monkeypatch.setattr("bfmeta.io.BioFormatsTool", lambda config=None: tool)
        return tool

    return install


FILLED_IN = """\
ELNID: ELN-2024-001
Channels:
  Channel 1:
    Fluorophore: DAPI
    Sample name: HeLa fixed
  Channel 2:
    Fluorophore: AF488
    Sample name: HeLa fixed
"""


@pytest.fixture
def filled_in_sample_info() -> str:
    """A completed two-channel sample info file."""
    return FILLED_IN
