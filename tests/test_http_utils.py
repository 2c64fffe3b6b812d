"""Tests for utils/http.py — retry policy, pooled sessions, UpstreamError."""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.http import USER_AGENT, RetryStrategy, SessionManager, UpstreamError


class TestRetryStrategy:
    def test_defaults(self):
        rs = RetryStrategy()
        assert rs.max_retries == 2
        assert rs.backoff_factor == 0.5
        assert rs.status_forcelist == [429, 502, 503, 504]

    def test_retry_object(self):
        retry = RetryStrategy(max_retries=4).get_retry_object()
        assert retry.total == 4
        assert 503 in retry.status_forcelist
        assert retry.raise_on_status is False

    def test_only_idempotent_methods_retried(self):
        retry = RetryStrategy().get_retry_object()
        assert set(retry.allowed_methods) == {"GET", "HEAD"}


class TestSessionManager:
    def test_session_created_lazily_and_reused(self):
        sm = SessionManager()
        assert sm._session is None
        s1 = sm.session
        assert sm.session is s1
        sm.close()

    def test_default_headers(self):
        with SessionManager() as sm:
            headers = sm.session.headers
            assert headers["User-Agent"] == USER_AGENT
            assert headers["Accept"] == "application/json"

    def test_adapter_carries_retry_policy(self):
        sm = SessionManager(RetryStrategy(max_retries=1))
        adapter = sm.session.get_adapter("https://geo.api.gouv.fr")
        assert adapter.max_retries.total == 1
        sm.close()

    def test_close_resets_session(self):
        sm = SessionManager()
        _ = sm.session
        sm.close()
        assert sm._session is None


class TestUpstreamError:
    def test_attributes(self):
        err = UpstreamError(404, "introuvable", "detail")
        assert err.status_code == 404
        assert err.message == "introuvable"
        assert err.detail == "detail"
        assert str(err) == "introuvable"
        assert "404" in repr(err)
