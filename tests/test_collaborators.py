"""Tests for the default spider, session and trainer."""

import asyncio

import httpx
import pytest

from conftest import TARGET, html_links, make_transport
from scanframe.core.config import RedundancyRule, SessionConfig
from scanframe.core.scope import ScopeValidator
from scanframe.http.client import HttpClient
from scanframe.models import Page
from scanframe.session import Session, SessionProtocol
from scanframe.spider import Spider, SpiderProtocol
from scanframe.trainer import Trainer


def make_spider(settings, routes) -> Spider:
    http = HttpClient(transport=make_transport(routes))
    return Spider(settings, http, ScopeValidator(settings.scope, settings.url))


class TestSpider:
    """Tests for the default crawler."""

    def test_protocol(self, settings):
        assert isinstance(make_spider(settings, {}), SpiderProtocol)

    @pytest.mark.asyncio()
    async def test_crawl(self, settings):
        """Test in-scope links are followed once."""
        spider = make_spider(settings, {
            "/": (200, html_links("/a", "/a#top", "http://other.local/", "/logo.png")),
            "/a": (200, '<form action="/submit"></form><script src="/app.js"></script>'),
            "/submit": (200, ""),
            "/app.js": (200, ""),
        })
        pages = []

        sitemap = await spider.run(lambda page: pages.append(page.url))
        await spider.http.aclose()

        assert sitemap == [TARGET, TARGET + "a", TARGET + "submit", TARGET + "app.js"]
        assert pages == sitemap

    @pytest.mark.asyncio()
    async def test_redirects_recorded_not_handed_over(self, settings):
        """Test redirects are followed but only recorded."""
        routes = {"/": (200, html_links("/old")), "/new": (200, "")}
        transport = make_transport(routes)

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old":
                return httpx.Response(301, headers={"Location": "/new"})
            return transport.handler(request)

        http = HttpClient(transport=httpx.MockTransport(handler))
        spider = Spider(settings, http, ScopeValidator(settings.scope, settings.url))
        pages = []

        await spider.run(pages.append)
        await http.aclose()

        assert spider.redirects == [TARGET + "old"]
        assert [p.url for p in pages] == [TARGET, TARGET + "new"]
        assert TARGET + "old" in spider.sitemap

    @pytest.mark.asyncio()
    async def test_redundancy_rules(self, settings):
        """Test redundant URLs are only followed ``count`` times."""
        settings.scope.redundant = [RedundancyRule(pattern="calendar", count=2)]
        links = [f"/calendar?day={day}" for day in range(5)]
        spider = make_spider(settings, {"/": (200, html_links(*links)), "/calendar": (200, "")})

        sitemap = await spider.run()
        await spider.http.aclose()

        assert len([url for url in sitemap if "calendar" in url]) == 2
        assert settings.scope.redundant[0].count == 0

    @pytest.mark.asyncio()
    async def test_link_count_limit(self, settings):
        settings.scope.link_count_limit = 2
        links = [f"/page{i}" for i in range(10)]
        spider = make_spider(settings, {"/": (200, html_links(*links))})

        sitemap = await spider.run()
        await spider.http.aclose()

        assert len(sitemap) == 2

    @pytest.mark.asyncio()
    async def test_pause(self, settings):
        """Test a paused crawl waits for resume."""
        spider = make_spider(settings, {"/": (200, "")})
        spider.poll_interval = 0.01
        spider.pause()

        crawl = asyncio.create_task(spider.run())
        await asyncio.sleep(0.05)
        assert spider.sitemap == []

        spider.resume()
        assert await crawl == [TARGET]
        await spider.http.aclose()

    def test_reset(self, settings):
        spider = make_spider(settings, {})
        spider.pause()
        spider.reset()

        assert not spider.paused
        assert spider.sitemap == []


class TestSession:
    """Tests for the login check."""

    @pytest.mark.asyncio()
    async def test_unconfigured(self):
        session = Session(SessionConfig(), HttpClient(transport=make_transport({})))

        assert isinstance(session, SessionProtocol)
        assert await session.ensure_logged_in()

    @pytest.mark.asyncio()
    async def test_login_check(self):
        """Test the check URL body is matched against the pattern."""
        config = SessionConfig(login_check_url=TARGET + "account", login_check_pattern="Sign out")
        logged_in = Session(config, HttpClient(transport=make_transport({"/account": (200, "Sign out")})))
        logged_out = Session(config, HttpClient(transport=make_transport({"/account": (200, "Sign in")})))

        assert await logged_in.ensure_logged_in()
        assert not await logged_out.ensure_logged_in()

        await logged_in.http.aclose()
        await logged_out.http.aclose()


class TestTrainer:
    """Tests for the default trainer."""

    def test_signature(self):
        assert Trainer.signature(TARGET, "a") == Trainer.signature(TARGET, "a")
        assert Trainer.signature(TARGET, "a") != Trainer.signature(TARGET, "b")

    def test_ignores_seen_and_failed_responses(self, make_framework):
        """Test only unseen successful responses are pushed."""
        framework = make_framework()
        trainer = framework.trainer
        request = httpx.Request("GET", TARGET + "new")

        trainer.observe(Page(url=TARGET, code=200, body="home"))
        trainer.on_response(httpx.Response(200, text="home", request=httpx.Request("GET", TARGET)))
        trainer.on_response(httpx.Response(500, text="error", request=request))
        assert framework.queues.page_queue_empty

        trainer.on_response(httpx.Response(200, text="new", request=request))
        trainer.on_response(httpx.Response(200, text="new", request=request))
        assert framework.page_queue_total_size == 1
        assert trainer.seen_count == 2
