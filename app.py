import asyncio
import logging
from typing import Callable, Optional

import feedparser
import requests
from bs4 import BeautifulSoup

from dom import FEED_CONTAINER, MENU_HIDDEN_CLASS, Document, Event
from models import Entry, FeedSource

# Use short connect timeout and reasonable read timeout to avoid hangs
DEFAULT_TIMEOUT = (5, 15)
MAX_SNIPPET_LENGTH = 300

ALL_FEEDS = [
    FeedSource(name="Udacity Blog", url="http://blog.udacity.com/feed"),
    FeedSource(name="CSS Tricks", url="http://feeds.feedburner.com/CssTricks"),
    FeedSource(name="HTML5 Rocks", url="http://feeds.feedburner.com/html5rocks"),
    FeedSource(
        name="Linear Digressions",
        url="http://feeds.feedburner.com/udacity-linear-digressions",
    ),
]

INDEX_HTML = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>UdaciFeeds</title>
</head>
<body class="menu-hidden">
  <div class="header">
    <a class="menu-icon-link" href="#"><i class="icon-list"></i></a>
    <h1 class="header-title">Feeds</h1>
  </div>
  <div class="slide-menu">
    <ul class="feed-list"></ul>
  </div>
  <div class="feed"></div>
</body>
</html>
"""

Fetcher = Callable[[str], Optional[list[Entry]]]


def clean_html(html_content: str | bytes | None) -> str:
    if html_content is None:
        return ""
    try:
        text = (
            html_content.decode("utf-8", errors="ignore")
            if isinstance(html_content, (bytes, bytearray))
            else str(html_content)
        )
        soup = BeautifulSoup(text, "html.parser")
        return soup.get_text(" ", strip=True)
    except Exception as e:
        logging.error(f"Failed to clean HTML: {e}")
        return ""


def fetch_feed_entries(url: str) -> Optional[list[Entry]]:
    try:
        response = requests.get(url, timeout=DEFAULT_TIMEOUT)
    except requests.exceptions.RequestException as e:
        logging.error(f"Failed to fetch feed {url}: {e}")
        return None
    if response.status_code != 200:
        logging.error(f"Failed to fetch feed {url}: {response.status_code}")
        return None

    parsed = feedparser.parse(response.content)
    if parsed.bozo and not parsed.entries:
        logging.error(f"Failed to parse feed {url}: {parsed.get('bozo_exception')}")
        return None

    entries = []
    for raw_entry in parsed.entries:
        summary = raw_entry.get("summary") or raw_entry.get("description") or ""
        entries.append(
            Entry(
                title=raw_entry.get("title", ""),
                link=raw_entry.get("link", url),
                snippet=clean_html(summary)[:MAX_SNIPPET_LENGTH],
            )
        )
    return entries


class FeedReaderApp:
    """The feed reader widget the harness drives.

    All DOM mutation happens on the event loop thread; only the blocking
    fetch is pushed to the loop's default executor.
    """

    def __init__(
        self,
        document: Document,
        feeds: Optional[list[FeedSource]] = None,
        fetcher: Optional[Fetcher] = None,
    ):
        self.document = document
        self.feeds = list(ALL_FEEDS if feeds is None else feeds)
        self.fetcher = fetcher or fetch_feed_entries
        self._tasks: set[asyncio.Task] = set()

    async def start(self) -> None:
        """Render the menu, wire up the listeners and load the first feed."""
        self.render_menu()
        self.document.add_listener(".menu-icon-link", "click", self._on_menu_click)
        self.document.add_listener(".feed-list", "click", self._on_feed_click)
        if self.feeds:
            await self.load(0)

    def render_menu(self) -> None:
        soup = self.document.soup
        feed_list = self.document.resolve(".feed-list")
        feed_list.clear()
        for index, feed in enumerate(self.feeds):
            link = soup.new_tag("a", attrs={"href": "#", "data-id": str(index)})
            link.string = feed.name
            item = soup.new_tag("li")
            item.append(link)
            feed_list.append(item)

    def toggle_menu(self) -> None:
        self.document.toggle_class("body", MENU_HIDDEN_CLASS)

    def load_feed(self, index: int, cb: Optional[Callable[[], None]] = None) -> asyncio.Task:
        """Fetch and render feed `index`, then call `cb` exactly once.

        Must be called while the event loop is running. If the fetch fails
        nothing is rendered but `cb` is still called. An exception raised
        by `cb` is logged and passed to the loop's exception handler.
        """
        if not 0 <= index < len(self.feeds):
            raise IndexError(f"No feed at index {index}")
        feed = self.feeds[index]
        task = asyncio.get_running_loop().create_task(self._load(feed, cb))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def load(self, index: int) -> None:
        await self.load_feed(index)

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*self._tasks)

    async def _load(self, feed: FeedSource, cb: Optional[Callable[[], None]]) -> None:
        loop = asyncio.get_running_loop()
        logging.info(f"Loading feed: {feed.name} ({feed.url})")
        try:
            entries = await loop.run_in_executor(None, self.fetcher, feed.url)
        except Exception as e:
            logging.error(f"Failed to load feed {feed.name}: {e}")
            entries = None

        if entries is not None:
            self.render(feed, entries)
            logging.info(f"Rendered {len(entries)} entries for {feed.name}")
        if cb is None:
            return
        try:
            cb()
        except Exception as e:
            logging.error(f"Callback after loading {feed.name} raised {type(e).__name__}: {e}")
            loop.call_exception_handler(
                {"message": f"Exception in load_feed callback for {feed.name}", "exception": e}
            )

    def render(self, feed: FeedSource, entries: list[Entry]) -> None:
        soup = self.document.soup
        title = self.document.select_one(".header-title")
        if title is not None:
            title.string = feed.name

        container = self.document.resolve(FEED_CONTAINER)
        container.clear()
        for entry in entries:
            link = soup.new_tag("a", attrs={"class": ["entry-link"], "href": entry.link})
            article = soup.new_tag("article", attrs={"class": ["entry"]})
            heading = soup.new_tag("h2")
            heading.string = entry.title
            snippet = soup.new_tag("p")
            snippet.string = entry.snippet
            article.append(heading)
            article.append(snippet)
            link.append(article)
            container.append(link)

    def _on_menu_click(self, event: Event) -> None:
        event.prevent_default()
        self.toggle_menu()

    def _on_feed_click(self, event: Event) -> None:
        link = event.target if event.target.name == "a" else event.target.find_parent("a")
        if link is None or link.get("data-id") is None:
            return
        event.prevent_default()
        if not self.document.has_class("body", MENU_HIDDEN_CLASS):
            self.toggle_menu()
        self.load_feed(int(link["data-id"]))
