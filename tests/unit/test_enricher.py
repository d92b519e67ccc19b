"""Unit tests for the summary enricher."""

import asyncio
from types import MappingProxyType

import pytest

from feedpage.core.enricher import SummaryEnricher, create_enricher
from feedpage.core.renderer import PageSession
from feedpage.exceptions import ExtractionError
from feedpage.models import EMPTY_CACHE, DigestItem, DigestNode

SELECTOR = '[itemprop="articleBody"]'


class FakeSession(PageSession):
    """Records every extraction; bodies are looked up by URL."""

    def __init__(self, bodies=None, delay=0.0):
        self.bodies = bodies or {}
        self.delay = delay
        self.calls = []
        self.closed = False

    async def extract(self, url, selector):
        self.calls.append((url, selector))
        if self.delay:
            await asyncio.sleep(self.delay)
        body = self.bodies.get(url)
        if isinstance(body, Exception):
            raise body
        return body

    async def close(self):
        self.closed = True


def digest_item(n: int, summary: str = "short", link=None) -> DigestItem:
    return DigestItem(
        title=f"Item {n}",
        link=link if link is not None else f"https://example.com/{n}",
        summary=summary,
    )


def make_enricher(**kwargs) -> SummaryEnricher:
    options = {"min_summary_length": 1000, "content_selector": SELECTOR, "timeout_seconds": 5}
    options.update(kwargs)
    return SummaryEnricher(**options)


def enrich(enricher, session, digest, previous=EMPTY_CACHE):
    return asyncio.run(enricher.enrich(session, digest, previous))


class TestResolve:
    """Tests for SummaryEnricher.resolve."""

    def test_long_summary_is_kept_without_opening_a_page(self):
        session = FakeSession()
        entry = digest_item(1, summary="x" * 1000)

        result = asyncio.run(make_enricher().resolve(session, entry))

        assert result == "x" * 1000
        assert session.calls == []

    def test_short_summary_is_scraped(self):
        session = FakeSession({"https://example.com/1": "<p>Article body</p>"})

        result = asyncio.run(make_enricher().resolve(session, digest_item(1)))

        assert result == "<p>Article body</p>"
        assert session.calls == [("https://example.com/1", SELECTOR)]

    def test_summary_from_previous_cycle_is_reused(self):
        session = FakeSession({"https://example.com/1": "new body"})
        previous = MappingProxyType({"https://example.com/1": "short"})

        result = asyncio.run(make_enricher().resolve(session, digest_item(1), previous))

        assert result == "short"
        assert session.calls == []

    def test_extraction_error_keeps_summary(self):
        session = FakeSession({"https://example.com/1": ExtractionError("page crashed")})
        enricher = make_enricher()

        assert asyncio.run(enricher.resolve(session, digest_item(1))) == "short"
        assert enricher.stats.failed == 1

    def test_unexpected_error_keeps_summary(self):
        session = FakeSession({"https://example.com/1": RuntimeError("boom")})
        assert asyncio.run(make_enricher().resolve(session, digest_item(1))) == "short"

    @pytest.mark.parametrize("body", [None, "", "   \n "])
    def test_empty_body_keeps_summary(self, body):
        session = FakeSession({"https://example.com/1": body})
        assert asyncio.run(make_enricher().resolve(session, digest_item(1))) == "short"

    def test_timeout_keeps_summary(self):
        session = FakeSession({"https://example.com/1": "late body"}, delay=1)
        enricher = make_enricher(timeout_seconds=0.05)

        assert asyncio.run(enricher.resolve(session, digest_item(1))) == "short"

    def test_invalid_link_is_not_opened(self):
        session = FakeSession()

        for entry in (digest_item(1, link=""), digest_item(2, link="mailto:someone@example.com")):
            assert asyncio.run(make_enricher().resolve(session, entry)) == "short"

        assert session.calls == []

    def test_disabled_enricher_opens_nothing(self):
        session = FakeSession({"https://example.com/1": "body"})

        result = asyncio.run(make_enricher(enabled=False).resolve(session, digest_item(1)))

        assert result == "short"
        assert session.calls == []


class TestEnrich:
    """Tests for SummaryEnricher.enrich."""

    def test_items_are_replaced_and_cache_built(self):
        session = FakeSession({"https://example.com/1": "scraped"})
        long_summary = "y" * 1200
        digest = [DigestNode("Tech", (digest_item(1), digest_item(2, summary=long_summary)))]

        nodes, cache = enrich(make_enricher(), session, digest)

        assert [i.summary for i in nodes[0].items] == ["scraped", long_summary]
        assert dict(cache) == {
            "https://example.com/1": "scraped",
            "https://example.com/2": long_summary,
        }

    def test_cache_is_read_only(self):
        _, cache = enrich(make_enricher(), FakeSession(), [DigestNode("Tech", (digest_item(1),))])

        with pytest.raises(TypeError):
            cache["x"] = "y"

    def test_cache_holds_only_current_links(self):
        previous = MappingProxyType({"https://example.com/old": "gone"})

        _, cache = enrich(make_enricher(), FakeSession(), [DigestNode("Tech", (digest_item(1),))], previous)

        assert "https://example.com/old" not in cache
        assert "https://example.com/1" in cache

    def test_longer_previous_value_is_kept(self):
        session = FakeSession({"https://example.com/1": "b"})
        previous = MappingProxyType({"https://example.com/1": "a much longer cached body"})

        nodes, cache = enrich(make_enricher(), session, [DigestNode("Tech", (digest_item(1),))], previous)

        assert nodes[0].items[0].summary == "b"
        assert cache["https://example.com/1"] == "a much longer cached body"

    def test_items_in_a_node_are_processed_in_order(self):
        session = FakeSession()
        digest = [DigestNode("Tech", tuple(digest_item(n) for n in range(5)))]

        enrich(make_enricher(), session, digest)

        assert [url for url, _ in session.calls] == [f"https://example.com/{n}" for n in range(5)]

    def test_nodes_keep_their_order(self):
        digest = [DigestNode(title, (digest_item(n),)) for n, title in enumerate(["A", "B", "C"])]

        nodes, _ = enrich(make_enricher(), FakeSession(), digest)

        assert [node.title for node in nodes] == ["A", "B", "C"]

    def test_failure_degrades_per_item(self):
        session = FakeSession(
            {
                "https://example.com/1": ExtractionError("crash"),
                "https://example.com/2": "scraped",
            }
        )
        digest = [DigestNode("Tech", (digest_item(1), digest_item(2)))]

        nodes, _ = enrich(make_enricher(), session, digest)

        assert [i.summary for i in nodes[0].items] == ["short", "scraped"]

    def test_stats(self):
        session = FakeSession({"https://example.com/2": "scraped"})
        previous = MappingProxyType({"https://example.com/1": "short"})
        digest = [
            DigestNode(
                "Tech",
                (digest_item(1), digest_item(2), digest_item(3), digest_item(4, summary="z" * 1000)),
            )
        ]

        enricher = make_enricher()
        enrich(enricher, session, digest, previous)

        assert enricher.stats.items == 4
        assert enricher.stats.reused == 1
        assert enricher.stats.scraped == 1
        assert enricher.stats.failed == 1
        assert enricher.stats.kept == 1


class TestCreateEnricher:
    """Tests for create_enricher."""

    def test_defaults_from_config(self):
        enricher = create_enricher()

        assert enricher.min_summary_length == 1000
        assert enricher.content_selector == SELECTOR
        assert enricher.enabled is True

    def test_explicit_values_are_not_replaced(self):
        enricher = SummaryEnricher(min_summary_length=0, timeout_seconds=0, enabled=False)

        assert enricher.min_summary_length == 0
        assert enricher.timeout_seconds == 0
        assert enricher.enabled is False
