import asyncio
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from app import ALL_FEEDS, INDEX_HTML, Fetcher, FeedReaderApp
from dom import Document, DomProbe
from feedreader_spec import register_suites
from models import RunReport
from runner import DEFAULT_TIMEOUT_INTERVAL, SuiteRunner, format_report

# Setup
logging.basicConfig(level=logging.INFO)
load_dotenv()


async def run_harness(
    spec_timeout: float = DEFAULT_TIMEOUT_INTERVAL,
    feed_indexes: tuple[int, int] = (0, 1),
    fetcher: Optional[Fetcher] = None,
) -> RunReport:
    document = Document(INDEX_HTML)
    app = FeedReaderApp(document, fetcher=fetcher)
    # Suites only see the document once the first feed has rendered
    await app.start()

    runner = SuiteRunner(default_timeout=spec_timeout)
    register_suites(runner, app, DomProbe(document), feed_indexes=feed_indexes)
    return await runner.run()


def main() -> int:
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    SPEC_TIMEOUT = os.getenv("FEEDREADER_SPEC_TIMEOUT", str(DEFAULT_TIMEOUT_INTERVAL))
    FEED_INDEXES = os.getenv("FEEDREADER_FEED_INDEXES", "0,1")

    # Validate configuration
    invalid = []
    level = logging.getLevelName(LOG_LEVEL)
    if not isinstance(level, int):
        invalid.append("LOG_LEVEL")
    try:
        spec_timeout = float(SPEC_TIMEOUT)
        if spec_timeout <= 0:
            raise ValueError(SPEC_TIMEOUT)
    except ValueError:
        invalid.append("FEEDREADER_SPEC_TIMEOUT")
    try:
        feed_indexes = tuple(int(part) for part in FEED_INDEXES.split(","))
        if len(feed_indexes) != 2 or feed_indexes[0] == feed_indexes[1]:
            raise ValueError(FEED_INDEXES)
        if any(not 0 <= index < len(ALL_FEEDS) for index in feed_indexes):
            raise ValueError(FEED_INDEXES)
    except ValueError:
        invalid.append("FEEDREADER_FEED_INDEXES")
    if invalid:
        logging.error(f"Invalid environment variables: {', '.join(invalid)}")
        return 2

    logging.getLogger().setLevel(level)

    try:
        report = asyncio.run(run_harness(spec_timeout, feed_indexes))
    except Exception as e:
        logging.error(f"Feed reader harness failed: {e}")
        return 1

    print(format_report(report))
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
