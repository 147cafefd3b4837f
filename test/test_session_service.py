"""
Tests for the session registry and the session security check.
"""

from datetime import timedelta
from types import SimpleNamespace

import pytest
from utils.fakes import FakeClock, FakeIdentity, FakeSecurityLogStore, FakeSessionStore, FakeTwoFactorStore

from restaurant_security.config import Settings
from restaurant_security.repositories.records import SecurityLogRecord
from restaurant_security.services.crypto import PlaintextSecretCipher
from restaurant_security.services.session_service import SessionService
from restaurant_security.services.two_factor_service import TwoFactorService
from restaurant_security.utils.request_context import RequestContext

CHROME_WINDOWS_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
IPHONE_UA = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile/15E148 Safari/604.1"

USER = SimpleNamespace(id=1, email="owner@example.com")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sessions():
    return FakeSessionStore()


@pytest.fixture
def logs():
    return FakeSecurityLogStore()


@pytest.fixture
def service(sessions, logs, clock):
    config = Settings()
    two_factor = TwoFactorService(FakeTwoFactorStore(), logs, FakeIdentity(), PlaintextSecretCipher(), config, clock)
    return SessionService(sessions, logs, two_factor, config, clock)


class TestRegistry:
    @pytest.mark.asyncio
    async def test_touch_inserts_then_refreshes(self, service, sessions, clock):
        first = await service.touch(1, "tok-1", "198.51.100.1", CHROME_WINDOWS_UA, None)
        assert first.expires_at == clock() + timedelta(hours=24)

        clock.advance(hours=2)
        second = await service.touch(1, "tok-1", "198.51.100.9", CHROME_WINDOWS_UA, None)

        assert len(sessions.rows) == 1
        assert second.created_at == first.created_at
        assert second.last_activity == clock()
        assert second.ip_address == "198.51.100.9"
        assert second.expires_at == clock() + timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_list_active_excludes_expired(self, service, clock):
        await service.touch(1, "short", None, "", None, ttl=timedelta(hours=1))
        await service.touch(1, "long", None, "", None)
        await service.touch(2, "other-user", None, "", None)

        clock.advance(hours=2)
        active = await service.list_active(1)

        assert [s.session_token for s in active] == ["long"]

    @pytest.mark.asyncio
    async def test_token_of_another_user_is_replaced(self, service, sessions):
        await service.touch(2, "shared", "198.51.100.1", CHROME_WINDOWS_UA, None)

        session = await service.touch(1, "shared", "198.51.100.2", CHROME_WINDOWS_UA, None)

        assert session.session_token != "shared"
        assert session.user_id == 1
        assert sessions.rows["shared"].user_id == 2
        assert sessions.rows["shared"].ip_address == "198.51.100.1"


class TestCheckSession:
    @pytest.mark.asyncio
    async def test_first_check_registers_session(self, service, sessions, logs):
        ctx = RequestContext(ip_address="198.51.100.1", user_agent=CHROME_WINDOWS_UA, session_token="tok-1")

        result = await service.check_session(USER, ctx)

        assert result["user_id"] == 1
        assert result["security_status"]["risk_score"] == 0
        assert result["security_status"]["has_2fa_enabled"] is False
        assert result["device_info"] == {"type": "desktop", "browser": "Chrome", "os": "Windows", "is_mobile": False}
        assert result["session_info"]["session_token"] == "tok-1"
        assert result["session_info"]["active_sessions_count"] == 0
        assert result["recommendations"] == []
        assert "tok-1" in sessions.rows
        assert logs.entries[-1].event_type == "session_check"
        assert logs.entries[-1].device_info["browser"] == "Chrome"

    @pytest.mark.asyncio
    async def test_token_issued_when_header_missing(self, service, sessions):
        ctx = RequestContext(ip_address="198.51.100.1", user_agent=CHROME_WINDOWS_UA)

        result = await service.check_session(USER, ctx)

        token = result["session_info"]["session_token"]
        assert len(token) >= 32
        assert token in sessions.rows

    @pytest.mark.asyncio
    async def test_unfamiliar_device_recommends_two_factor(self, service):
        await service.check_session(
            USER, RequestContext(ip_address="198.51.100.1", user_agent=CHROME_WINDOWS_UA, session_token="a")
        )

        result = await service.check_session(
            USER, RequestContext(ip_address="203.0.113.9", user_agent=IPHONE_UA, session_token="b")
        )

        assert result["security_status"]["risk_score"] == 20
        assert result["security_status"]["is_suspicious"] is True
        assert result["recommendations"] == ["Consider enabling two-factor authentication"]

    @pytest.mark.asyncio
    async def test_high_risk_demands_two_factor(self, service, logs, clock):
        await service.check_session(
            USER, RequestContext(ip_address="198.51.100.1", user_agent=CHROME_WINDOWS_UA, session_token="a")
        )
        for _ in range(2):
            await logs.append(
                SecurityLogRecord(user_id=1, event_type="2fa_verification_failed", created_at=clock())
            )

        result = await service.check_session(
            USER, RequestContext(ip_address="203.0.113.9", user_agent=IPHONE_UA, session_token="b")
        )

        assert result["security_status"]["risk_score"] == 30
        assert result["security_status"]["requires_2fa"] is True
        assert result["recommendations"][0] == "Enable two-step verification immediately"

    @pytest.mark.asyncio
    async def test_too_many_sessions_counted_before_upsert(self, service):
        for token in ["a", "b", "c"]:
            await service.touch(1, token, "198.51.100.1", CHROME_WINDOWS_UA, None)

        ctx = RequestContext(ip_address="198.51.100.1", user_agent=CHROME_WINDOWS_UA, session_token="d")
        result = await service.check_session(USER, ctx)
        assert result["session_info"]["active_sessions_count"] == 3
        assert not any("Too many" in r for r in result["recommendations"])

        ctx = RequestContext(ip_address="198.51.100.1", user_agent=CHROME_WINDOWS_UA, session_token="e")
        result = await service.check_session(USER, ctx)
        assert result["session_info"]["active_sessions_count"] == 4
        assert any("Too many active sessions" in r for r in result["recommendations"])

    @pytest.mark.asyncio
    async def test_recent_logs_newest_first(self, service, logs, clock):
        await logs.append(SecurityLogRecord(user_id=1, event_type="2fa_setup_started", created_at=clock()))
        clock.advance(minutes=1)
        await logs.append(SecurityLogRecord(user_id=1, event_type="2fa_enabled", created_at=clock()))

        entries = await service.recent_logs(1)

        assert [e["event_type"] for e in entries] == ["2fa_enabled", "2fa_setup_started"]
        assert entries[0]["created_at"] == clock().isoformat()
