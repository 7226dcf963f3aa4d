"""Tests for core modules."""

import threading
from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from conftest import TARGET
from scanframe.core.config import RedundancyRule, ScopeConfig, Settings, load_settings
from scanframe.core.errors import ComponentNotFoundError, ConfigurationError
from scanframe.core.pause import PauseCoordinator
from scanframe.core.queues import QueuePipeline
from scanframe.core.retry import AUDIT_PAGE_MAX_TRIES, RetryController
from scanframe.core.scope import ScopeValidator, create_scope_validator
from scanframe.core.stats import (
    ScanClock,
    average_rate,
    calculate_progress,
    eta,
    format_duration,
)
from scanframe.models.page import Page


class TestSettings:
    """Tests for Settings configuration."""

    def test_default_settings(self):
        """Test default settings are valid."""
        settings = Settings()
        assert settings.app_name == "ScanFrame"
        assert settings.http.max_concurrency == 20
        assert settings.http.follow_redirects is False
        assert settings.pause_poll_interval == 1.0
        assert settings.train is True
        assert settings.scope.link_count_limit == 0

    def test_url_validation(self):
        """Test the target must be an absolute HTTP(S) URL."""
        assert Settings(url="https://example.com/app").url == "https://example.com/app"

        with pytest.raises(ValidationError):
            Settings(url="/relative/path")

        with pytest.raises(ValidationError):
            Settings(url="ftp://example.com/")

    def test_invalid_regex_rejected(self):
        """Test filters and scope patterns must compile."""
        with pytest.raises(ValidationError):
            Settings(lsmod=["("])

        with pytest.raises(ValidationError):
            ScopeConfig(exclude_patterns=["[unclosed"])

        with pytest.raises(ValidationError):
            RedundancyRule(pattern="(", count=1)

    def test_link_count_limit(self):
        """Test an unset limit is never reached."""
        assert not Settings().link_count_limit_reached(10_000)

        settings = Settings(scope=ScopeConfig(link_count_limit=3))
        assert not settings.link_count_limit_reached(2)
        assert settings.link_count_limit_reached(3)

    def test_yaml_save_and_load(self, tmp_path):
        """Test settings survive a trip through a YAML file."""
        path = tmp_path / "config.yaml"
        Settings(url=TARGET, modules=["xss"], scope=ScopeConfig(exclude_patterns=["logout"])).to_yaml(path)

        loaded = load_settings(path)
        assert loaded.url == TARGET
        assert loaded.modules == ["xss"]
        assert loaded.scope.exclude_patterns == ["logout"]

    def test_yaml_errors(self, tmp_path):
        """Test broken settings files raise ConfigurationError."""
        broken = tmp_path / "broken.yaml"
        broken.write_text("url: [unclosed")
        with pytest.raises(ConfigurationError):
            Settings.from_yaml(broken)

        invalid = tmp_path / "invalid.yaml"
        invalid.write_text("url: not-a-url\n")
        with pytest.raises(ConfigurationError):
            Settings.from_yaml(invalid)

        listing = tmp_path / "list.yaml"
        listing.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            Settings.from_yaml(listing)


class TestErrors:
    """Tests for the error taxonomy."""

    def test_component_not_found_message(self):
        """Test the message names the component kind and name."""
        error = ComponentNotFoundError("report", "pdf")
        assert str(error) == "Report 'pdf' could not be found."
        assert error.kind == "report"
        assert error.name == "pdf"


class TestScopeValidator:
    """Tests for scope validation."""

    def test_same_host_in_scope(self):
        """Test host scope validation."""
        validator = create_scope_validator(TARGET)

        assert validator.is_in_scope(TARGET + "page")
        assert validator.is_in_scope("/relative")
        assert not validator.is_in_scope("http://other.local/")
        assert not validator.is_in_scope("http://sub.testsite.local/")
        assert not validator.is_in_scope("mailto:someone@testsite.local")

    def test_subdomains(self):
        """Test subdomains are in scope only when allowed."""
        validator = create_scope_validator(TARGET, include_subdomains=True)

        assert validator.is_in_scope("http://sub.testsite.local/")
        assert not validator.is_in_scope("http://nottestsite.local/")

    def test_exclude_patterns_and_extensions(self):
        """Test exclusion takes precedence."""
        validator = create_scope_validator(TARGET, include=["testsite"], exclude=["logout"])

        assert not validator.is_in_scope(TARGET + "logout")
        assert not validator.is_in_scope(TARGET + "logo.png")
        assert validator.is_in_scope(TARGET + "index.php")

    def test_include_patterns(self):
        """Test include patterns restrict the scope."""
        validator = create_scope_validator(TARGET, include=[r"/app/"])

        assert validator.is_in_scope(TARGET + "app/login")
        assert not validator.is_in_scope(TARGET + "blog/")

    def test_to_absolute(self):
        """Test resolution against the target drops fragments."""
        validator = ScopeValidator(ScopeConfig(), TARGET)

        assert validator.to_absolute("a/b?x=1#frag") == TARGET + "a/b?x=1"
        assert validator.to_absolute("javascript:void(0)") is None
        assert validator.to_absolute("   ") is None

    def test_batch_validation(self):
        """Test batch validation."""
        validator = create_scope_validator(TARGET)

        valid, rejected = validator.validate_batch([TARGET, TARGET + "a", "http://other.local/"])
        assert len(valid) == 2
        assert rejected == ["http://other.local/"]


class TestRetryController:
    """Tests for bounded retries."""

    def test_gives_up_after_max_tries(self):
        """Test a URL is attempted exactly AUDIT_PAGE_MAX_TRIES times."""
        requeued = []
        retry = RetryController(requeued.append)

        results = [retry.on_fetch_failure(TARGET) for _ in range(AUDIT_PAGE_MAX_TRIES)]

        assert results == [True] * (AUDIT_PAGE_MAX_TRIES - 1) + [False]
        assert requeued == [TARGET] * (AUDIT_PAGE_MAX_TRIES - 1)
        assert retry.failures == [TARGET]
        assert retry.attempts(TARGET) == AUDIT_PAGE_MAX_TRIES

    def test_urls_tracked_independently(self):
        """Test attempts are counted per URL."""
        retry = RetryController(lambda url: None, max_tries=2)

        assert retry.on_fetch_failure(TARGET + "a")
        assert retry.on_fetch_failure(TARGET + "b")
        assert not retry.on_fetch_failure(TARGET + "a")

        assert retry.failures == [TARGET + "a"]
        assert retry.attempts(TARGET + "b") == 1

    def test_failed_url_is_final(self):
        """Test a URL given up on is never retried or listed twice."""
        requeued = []
        retry = RetryController(requeued.append, max_tries=2)
        retry.on_fetch_failure(TARGET)
        retry.on_fetch_failure(TARGET)

        assert retry.has_failed(TARGET)
        assert retry.on_fetch_failure(TARGET) is False
        assert retry.failures == [TARGET]
        assert retry.attempts(TARGET) == 2
        assert requeued == [TARGET]

    def test_clear(self):
        """Test clearing forgets attempts and failures."""
        retry = RetryController(lambda url: None, max_tries=1)
        retry.on_fetch_failure(TARGET)

        retry.clear()
        assert retry.failures == []
        assert retry.attempts(TARGET) == 0
        assert not retry.has_failed(TARGET)


class TestQueuePipeline:
    """Tests for the URL and page queues."""

    @pytest.fixture
    def queues(self):
        return QueuePipeline(create_scope_validator(TARGET, exclude=["logout"]))

    def test_push_url(self, queues):
        """Test relative URLs are resolved and counted."""
        assert queues.push_url("about") is True

        assert queues.url_queue_total_size == 1
        assert queues.sitemap == [TARGET + "about"]
        assert queues.pop_url() == TARGET + "about"

    def test_excluded_url_not_pushed(self, queues):
        """Test exclusion leaves the pipeline untouched."""
        assert queues.push_url(TARGET + "logout") is False

        assert queues.url_queue_empty
        assert queues.url_queue_total_size == 0
        assert queues.sitemap == []

    def test_push_page(self, queues):
        """Test pages are queued in FIFO order."""
        first = Page(url=TARGET + "1", code=200)
        second = Page(url=TARGET + "2", code=200)

        assert queues.push_page(first)
        assert queues.push_page(second)
        assert not queues.push_page(Page(url=TARGET + "logout", code=200))

        assert queues.page_queue_total_size == 2
        assert queues.pop_page() == first
        assert queues.pop_page() == second
        assert queues.pop_page() is None

    def test_totals_not_decremented_on_pop(self, queues):
        """Test cumulative counters only ever grow."""
        queues.push_url(TARGET)
        queues.pop_url()
        queues.requeue_url(TARGET)

        assert queues.url_queue_total_size == 1
        assert queues.url_queue_size == 1

    def test_sitemap_monotonic(self, queues):
        """Test the sitemap never shrinks and never duplicates."""
        sizes = []
        for url in [TARGET, TARGET + "a", TARGET, TARGET + "logout", TARGET + "b"]:
            queues.push_url(url)
            queues.pop_url()
            sizes.append(queues.sitemap_size)

        assert sizes == sorted(sizes)
        assert queues.sitemap == [TARGET, TARGET + "a", TARGET + "b"]

    def test_audit_map_within_sitemap(self, queues):
        """Test audited URLs are always part of the sitemap."""
        queues.mark_audited(TARGET + "x")

        assert queues.auditmap == [TARGET + "x"]
        assert set(queues.auditmap) <= set(queues.sitemap)

    def test_empty_and_clear(self, queues):
        """Test emptiness covers both queues."""
        assert queues.empty
        queues.push_page(Page(url=TARGET, code=200))
        assert not queues.empty

        queues.clear()
        assert queues.empty
        assert queues.sitemap == []
        assert queues.page_queue_total_size == 0


class TestPauseCoordinator:
    """Tests for pause/resume."""

    def test_pause_held_until_every_caller_resumes(self):
        """Test callers can't release each other's pause."""
        pause = PauseCoordinator()

        pause.pause("ui")
        pause.pause("api")
        pause.resume("ui")
        assert pause.paused
        assert pause.holders == frozenset({"api"})

        pause.resume("api")
        assert not pause.paused

    def test_idempotent(self):
        """Test repeated pauses and stray resumes are harmless."""
        pause = PauseCoordinator()

        assert pause.pause("ui")
        assert pause.pause("ui")
        assert pause.resume("nobody")
        assert pause.paused

        pause.resume("ui")
        assert not pause.is_paused()

    def test_hooks_called(self):
        """Test pause and resume requests are forwarded."""
        calls = []
        pause = PauseCoordinator(on_pause=lambda: calls.append("pause"), on_resume=lambda: calls.append("resume"))

        pause.pause(1)
        pause.resume(1)
        assert calls == ["pause", "resume"]

    def test_resume_hook_waits_for_last_holder(self):
        """Test the resume hook only fires once nobody holds a pause."""
        calls = []
        pause = PauseCoordinator(on_resume=lambda: calls.append("resume"))

        pause.pause("ui")
        pause.pause("api")
        pause.resume("ui")
        assert calls == []

        pause.resume("api")
        assert calls == ["resume"]

    @pytest.mark.asyncio()
    async def test_wait_if_paused_resumed_from_other_thread(self):
        """Test a resume from another thread releases the waiter."""
        pause = PauseCoordinator(poll_interval=0.01)
        pause.pause("ui")

        timer = threading.Timer(0.05, pause.resume, args=("ui",))
        timer.start()
        try:
            await pause.wait_if_paused()
        finally:
            timer.cancel()

        assert not pause.paused

    @pytest.mark.asyncio()
    async def test_wait_if_not_paused_returns(self):
        """Test the gate is open by default."""
        await PauseCoordinator().wait_if_paused()


class TestStats:
    """Tests for progress and timing calculations."""

    def test_progress(self):
        """Test progress percentage."""
        assert calculate_progress(1, 4) == 25.0
        assert calculate_progress(1, 3) == 33.33
        assert calculate_progress(2, 4, redirects=2) == 100.0

    def test_progress_clamped(self):
        """Test progress stays within bounds."""
        assert calculate_progress(5, 3) == 100.0
        assert calculate_progress(0, 0) == 0.0
        assert calculate_progress(1, 2, redirects=2) == 0.0
        assert calculate_progress(1, 2, redirects=5) == 0.0

    def test_average_rate(self):
        """Test responses per second."""
        assert average_rate(100, 10.0) == 10
        assert average_rate(0, 10.0) == 0
        assert average_rate(10, 0) == 0

    def test_eta(self):
        """Test remaining time estimates."""
        start = datetime(2024, 1, 1, 12, 0, 0)
        now = start + timedelta(seconds=60)

        assert eta(0, start, now) == "--:--:--"
        assert eta(50, None, now) == "--:--:--"
        assert eta(50, start, now) == "00:01:00"
        assert eta(25, start, now) == "00:03:00"
        assert eta(100, start, now) == "00:00:00"

    def test_format_duration(self):
        """Test HH:MM:SS formatting."""
        assert format_duration(3725) == "01:02:05"
        assert format_duration(-1) == "00:00:00"

    def test_clock_freezes_elapsed_time(self):
        """Test elapsed time is only recomputed on refresh."""
        clock = ScanClock()
        clock.start_datetime = datetime.now() - timedelta(seconds=10)
        first = clock.elapsed()

        clock.start_datetime = datetime.now() - timedelta(seconds=20)
        assert clock.elapsed() == first
        assert clock.elapsed(refresh=True) >= 20

    def test_clock_stop(self):
        """Test stopping fixes the finish time and delta."""
        clock = ScanClock()
        clock.start()
        delta = clock.stop()

        assert clock.finish_datetime is not None
        assert clock.elapsed() == delta

        clock.reset()
        assert clock.start_datetime is None
        assert clock.delta_time is None
