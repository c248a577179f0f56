"""Shared test fixtures."""

from pathlib import Path

import pytest

from ocrmatch.index import RosterIndexHolder
from ocrmatch.reader import read_roster


DATA_DIR = Path(__file__).resolve().parent.parent / 'data'


@pytest.fixture(scope='session')
def data_dir() -> Path:
    """Path to the data directory."""
    return DATA_DIR


@pytest.fixture
def roster_teams():
    """All teams from roster.json."""
    return read_roster(DATA_DIR / 'roster.json')


@pytest.fixture
def holder(roster_teams):
    """Index holder with roster.json published."""
    holder = RosterIndexHolder()
    holder.rebuild(roster_teams)
    return holder
