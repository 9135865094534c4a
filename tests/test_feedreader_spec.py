import asyncio

from app import INDEX_HTML, FeedReaderApp
from dom import Document, DomProbe
from feedreader_spec import register_suites
from main import run_harness
from models import Entry, FailureKind, FeedSource, SpecState
from runner import SuiteRunner


def _by_name(report):
    return {r.full_name: r for r in report.results}


def _run(feeds, fetcher, timeout=1.0, patch_app=None, feed_indexes=(0, 1)):
    async def scenario():
        document = Document(INDEX_HTML)
        app = FeedReaderApp(document, feeds=feeds, fetcher=fetcher)
        await app.start()
        if patch_app:
            patch_app(app)
        runner = SuiteRunner(default_timeout=timeout)
        register_suites(runner, app, DomProbe(document), feed_indexes=feed_indexes)
        return await runner.run()

    return asyncio.run(scenario())


def test_all_suites_pass_against_working_widget(fake_fetcher):
    report = asyncio.run(run_harness(spec_timeout=1.0, fetcher=fake_fetcher))

    assert list(_by_name(report)) == [
        "RSS Feeds are defined",
        "RSS Feeds urls are defined",
        "RSS Feeds names are defined",
        "The menu is hidden by default",
        "The menu changes visibility when the menu icon is clicked",
        "Initial Entries should contain at least one entry",
        "New Feed Selection loads a new feed",
        "Feed List has one link per feed",
        "Feed List loads the selected feed and hides the menu",
    ]
    assert report.failed == 0
    assert report.exit_code == 0


def test_new_feed_selection_loads_strictly_in_sequence(fake_fetcher):
    report = asyncio.run(run_harness(spec_timeout=1.0, fetcher=fake_fetcher))

    assert _by_name(report)["New Feed Selection loads a new feed"].passed
    # start, Initial Entries, New Feed Selection (0 then 1), Feed List
    urls = fake_fetcher.calls
    assert urls[2:4] == ["http://blog.udacity.com/feed", "http://feeds.feedburner.com/CssTricks"]


def test_identical_feeds_fail_the_new_feed_selection():
    same = [Entry("Same", "http://example.com/same", "same")]
    feeds = [FeedSource("One", "http://one.com/rss"), FeedSource("Two", "http://two.com/rss")]

    report = _run(feeds, lambda url: same)

    result = _by_name(report)["New Feed Selection loads a new feed"]
    assert result.state == SpecState.ASSERTED
    assert [f.kind for f in result.failures] == [FailureKind.ASSERTION]
    assert report.exit_code == 1


def test_invalid_feed_descriptors_are_reported_with_context():
    feeds = [
        FeedSource("Good", "http://good.com/rss"),
        FeedSource("", "http://nameless.com/rss"),
        FeedSource("Broken", "not a url"),
    ]
    entries = {f.url: [Entry(f.url, f.url)] for f in feeds}

    report = _run(feeds, entries.get)
    results = _by_name(report)

    url_failures = results["RSS Feeds urls are defined"].failures
    assert [f.kind for f in url_failures] == [FailureKind.VALIDATION]
    assert url_failures[0].context == feeds[2]

    name_failures = results["RSS Feeds names are defined"].failures
    assert [f.context for f in name_failures] == [feeds[1]]
    assert results["The menu is hidden by default"].passed


def test_loader_that_never_completes_times_out_without_hanging(fake_fetcher):
    from app import ALL_FEEDS

    def never_complete(app):
        app.load_feed = lambda index, cb=None: None

    report = _run(ALL_FEEDS, fake_fetcher, timeout=0.05, patch_app=never_complete)
    results = _by_name(report)

    for name in ("Initial Entries should contain at least one entry", "New Feed Selection loads a new feed"):
        assert results[name].state == SpecState.FAILED
        assert results[name].failures[0].kind == FailureKind.TIMEOUT
    assert results["The menu changes visibility when the menu icon is clicked"].passed
    assert results["Feed List has one link per feed"].passed


def test_bad_second_index_is_reported_as_error_not_timeout(fake_fetcher):
    from app import ALL_FEEDS

    report = _run(ALL_FEEDS, fake_fetcher, feed_indexes=(0, 9))
    result = _by_name(report)["New Feed Selection loads a new feed"]

    assert result.state == SpecState.FAILED
    assert [f.kind for f in result.failures] == [FailureKind.ERROR]
    assert "IndexError" in result.failures[0].message
    assert _by_name(report)["Initial Entries should contain at least one entry"].passed
