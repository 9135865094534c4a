import os
import sys

import pytest


# Ensure project root is on sys.path so tests can import the flat modules
PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from models import Entry  # noqa: E402


class FakeFetcher:
    """Serves canned entries per feed url and records what was fetched."""

    def __init__(self, entries_by_url=None):
        self.entries_by_url = entries_by_url or {}
        self.calls = []

    def __call__(self, url):
        self.calls.append(url)
        return self.entries_by_url.get(url)


@pytest.fixture
def fake_fetcher():
    from app import ALL_FEEDS

    return FakeFetcher(
        {
            feed.url: [
                Entry(title=f"{feed.name} post {n}", link=f"{feed.url}/{n}", snippet=f"About {feed.name}")
                for n in range(1, 3)
            ]
            for feed in ALL_FEEDS
        }
    )
