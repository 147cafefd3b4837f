"""
Tests for device classification and risk scoring.
"""

from datetime import datetime, timedelta, timezone

import pytest

from restaurant_security.config import Settings
from restaurant_security.repositories.records import SecurityLogRecord, SessionRecord
from restaurant_security.services.risk_service import LoginHistory, build_history, evaluate, get_device_info

IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
IPAD_UA = "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0"
ANDROID_UA = (
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Mobile Safari/537.36"
)
CHROME_WINDOWS_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
EDGE_WINDOWS_UA = CHROME_WINDOWS_UA + " Edg/120.0.0.0"
FIREFOX_LINUX_UA = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"
SAFARI_MAC_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Safari/605.1.15"
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
CONFIG = Settings()


class TestDeviceInfo:
    def test_iphone_is_mobile(self):
        info = get_device_info(IPHONE_UA)
        assert info.type == "mobile"
        assert info.is_mobile is True
        assert info.os == "iOS"
        assert info.browser == "Safari"

    def test_ipad_without_mobile_is_tablet(self):
        info = get_device_info(IPAD_UA)
        assert info.type == "tablet"
        assert info.is_mobile is False
        assert info.os == "iOS"

    def test_android_phone(self):
        info = get_device_info(ANDROID_UA)
        assert info.type == "mobile"
        assert info.os == "Android"
        assert info.browser == "Chrome"

    @pytest.mark.parametrize(
        "user_agent, browser, os_name",
        [
            (CHROME_WINDOWS_UA, "Chrome", "Windows"),
            (EDGE_WINDOWS_UA, "Edge", "Windows"),
            (FIREFOX_LINUX_UA, "Firefox", "Linux"),
            (SAFARI_MAC_UA, "Safari", "MacOS"),
        ],
    )
    def test_desktop_browsers(self, user_agent, browser, os_name):
        info = get_device_info(user_agent)
        assert info.type == "desktop"
        assert info.browser == browser
        assert info.os == os_name

    @pytest.mark.parametrize("user_agent", ["", None, "curl/8.4.0"])
    def test_unknown_agents(self, user_agent):
        info = get_device_info(user_agent)
        assert info.type == "desktop"
        assert info.browser == "Unknown"
        assert info.os == "Unknown"


def known_history(**overrides) -> LoginHistory:
    history = LoginHistory(
        known_ips={"198.51.100.1"},
        known_devices={("desktop", "Chrome", "Windows")},
        known_countries={"US"},
    )
    for name, value in overrides.items():
        setattr(history, name, value)
    return history


class TestEvaluate:
    def test_familiar_event_scores_zero(self):
        result = evaluate(1, "198.51.100.1", CHROME_WINDOWS_UA, "session_check", known_history(), "US", CONFIG)
        assert result.risk_score == 0
        assert result.is_suspicious is False
        assert result.requires_two_factor is False

    def test_first_event_for_new_user_is_not_penalised(self):
        result = evaluate(1, "198.51.100.1", CHROME_WINDOWS_UA, "session_check", LoginHistory(), "US", CONFIG)
        assert result.risk_score == 0

    def test_new_ip_and_device_recommend_two_factor(self):
        result = evaluate(1, "203.0.113.9", IPHONE_UA, "session_check", known_history(), None, CONFIG)
        assert result.risk_score == 20
        assert result.is_suspicious is True
        assert result.requires_two_factor is False
        assert result.signals == ["new_ip", "new_device"]

    def test_geo_mismatch_requires_two_factor(self):
        result = evaluate(1, "203.0.113.9", IPHONE_UA, "session_check", known_history(), "BR", CONFIG)
        assert result.risk_score == 40
        assert result.requires_two_factor is True

    def test_score_monotonic_in_failures(self):
        scores = [
            evaluate(
                1, "198.51.100.1", CHROME_WINDOWS_UA, "session_check", known_history(recent_failures=n), None, CONFIG
            ).risk_score
            for n in range(6)
        ]
        assert scores == sorted(scores)
        assert scores[-1] > scores[0]

    def test_thresholds_are_strict(self):
        config = Settings(risk_recommend_threshold=10, risk_require_threshold=20)
        result = evaluate(1, "203.0.113.9", CHROME_WINDOWS_UA, "session_check", known_history(), None, config)
        assert result.risk_score == 10
        assert result.is_suspicious is False


class TestBuildHistory:
    def test_history_from_logs_and_sessions(self):
        logs = [
            SecurityLogRecord(
                user_id=1,
                event_type="session_check",
                ip_address="198.51.100.1",
                device_info={"type": "desktop", "browser": "Chrome", "os": "Windows", "is_mobile": False},
                event_details={"country": "US"},
                created_at=NOW - timedelta(days=3),
            ),
            SecurityLogRecord(
                user_id=1,
                event_type="2fa_verification_failed",
                ip_address="203.0.113.50",
                created_at=NOW - timedelta(minutes=10),
            ),
            SecurityLogRecord(
                user_id=1,
                event_type="2fa_verification_failed",
                created_at=NOW - timedelta(hours=5),
            ),
            SecurityLogRecord(user_id=2, event_type="session_check", ip_address="192.0.2.1", created_at=NOW),
        ]
        sessions = [
            SessionRecord(
                user_id=1,
                session_token="tok",
                expires_at=NOW + timedelta(hours=1),
                ip_address="198.51.100.2",
                device_info={"type": "mobile", "browser": "Safari", "os": "iOS", "is_mobile": True},
            )
        ]

        history = build_history(logs, sessions, 1, NOW, CONFIG)

        assert history.known_ips == {"198.51.100.1", "198.51.100.2"}
        assert history.known_devices == {("desktop", "Chrome", "Windows"), ("mobile", "Safari", "iOS")}
        assert history.known_countries == {"US"}
        assert history.recent_failures == 1
