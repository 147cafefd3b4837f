"""
Risk Service

Best-effort device classification and additive login risk scoring.
The score is advisory: callers decide whether to enforce anything.
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta

from restaurant_security.config import Settings, settings as default_settings
from restaurant_security.models.security_log import SecurityEventType
from restaurant_security.repositories.records import SecurityLogRecord, SessionRecord

logger = logging.getLogger(__name__)

MOBILE_PATTERN = re.compile(r"Mobile|Android|iPhone|iPod")
TABLET_PATTERN = re.compile(r"iPad|Tablet")

# Order matters: Edge and Chrome both advertise "Chrome" and "Safari"
BROWSER_PATTERNS = (
    (re.compile(r"Edg"), "Edge"),
    (re.compile(r"Firefox"), "Firefox"),
    (re.compile(r"Chrome"), "Chrome"),
    (re.compile(r"Safari"), "Safari"),
)

# Android before Linux, iOS devices before Mac ("like Mac OS X")
OS_PATTERNS = (
    (re.compile(r"Windows"), "Windows"),
    (re.compile(r"Android"), "Android"),
    (re.compile(r"iPhone|iPad|iOS"), "iOS"),
    (re.compile(r"Mac"), "MacOS"),
    (re.compile(r"Linux"), "Linux"),
)

FAILURE_EVENTS = (
    SecurityEventType.LOGIN_FAILED.value,
    SecurityEventType.VERIFICATION_FAILED.value,
    SecurityEventType.DISABLE_FAILED.value,
)


@dataclass(frozen=True)
class DeviceInfo:
    type: str
    browser: str
    os: str
    is_mobile: bool

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class LoginHistory:
    known_ips: set[str] = field(default_factory=set)
    known_devices: set[tuple[str, str, str]] = field(default_factory=set)
    known_countries: set[str] = field(default_factory=set)
    recent_failures: int = 0


@dataclass
class RiskAssessment:
    risk_score: int
    is_suspicious: bool
    requires_two_factor: bool
    signals: list[str] = field(default_factory=list)


def _first_match(user_agent: str, patterns) -> str:
    for pattern, name in patterns:
        if pattern.search(user_agent):
            return name
    return "Unknown"


def get_device_info(user_agent: str | None) -> DeviceInfo:
    """Classify a user-agent string; mobile wins over tablet wins over desktop."""
    user_agent = user_agent or ""
    if MOBILE_PATTERN.search(user_agent):
        device_type = "mobile"
    elif TABLET_PATTERN.search(user_agent):
        device_type = "tablet"
    else:
        device_type = "desktop"

    return DeviceInfo(
        type=device_type,
        browser=_first_match(user_agent, BROWSER_PATTERNS),
        os=_first_match(user_agent, OS_PATTERNS),
        is_mobile=device_type == "mobile",
    )


def _device_key(device: DeviceInfo | dict) -> tuple[str, str, str]:
    if isinstance(device, DeviceInfo):
        return device.type, device.browser, device.os
    return device.get("type", "desktop"), device.get("browser", "Unknown"), device.get("os", "Unknown")


def build_history(
    logs: Iterable[SecurityLogRecord],
    sessions: Iterable[SessionRecord],
    user_id: int,
    now: datetime,
    config: Settings = default_settings,
) -> LoginHistory:
    """Assemble what is already known about a user from prior log rows and sessions."""
    history = LoginHistory()
    failure_cutoff = now - timedelta(minutes=config.risk_failure_window_minutes)

    for entry in logs:
        if entry.user_id != user_id:
            continue
        if entry.event_type in FAILURE_EVENTS:
            if entry.created_at is not None and entry.created_at >= failure_cutoff:
                history.recent_failures += 1
            continue
        if entry.ip_address:
            history.known_ips.add(entry.ip_address)
        if entry.device_info:
            history.known_devices.add(_device_key(entry.device_info))
        country = (entry.event_details or {}).get("country")
        if country:
            history.known_countries.add(country)

    for session in sessions:
        if session.ip_address:
            history.known_ips.add(session.ip_address)
        if session.device_info:
            history.known_devices.add(_device_key(session.device_info))

    return history


def evaluate(
    user_id: int,
    ip_address: str | None,
    user_agent: str | None,
    event_type: str,
    history: LoginHistory,
    country: str | None = None,
    config: Settings = default_settings,
) -> RiskAssessment:
    """
    Score an event against the user's history.

    Each unfamiliar signal adds its configured weight, so the score never
    decreases as an event gets less familiar or failures pile up. A user
    with no history at all is not penalised for being new.

    Returns:
        RiskAssessment with the score and the two threshold flags
    """
    score = 0
    signals: list[str] = []
    has_history = bool(history.known_ips or history.known_devices)

    if ip_address and has_history and ip_address not in history.known_ips:
        score += config.risk_new_ip_weight
        signals.append("new_ip")

    device = get_device_info(user_agent)
    if has_history and _device_key(device) not in history.known_devices:
        score += config.risk_new_device_weight
        signals.append("new_device")

    if history.recent_failures:
        score += config.risk_failed_attempt_weight * history.recent_failures
        signals.append("recent_failures")

    if country and history.known_countries and country not in history.known_countries:
        score += config.risk_geo_weight
        signals.append("geo_mismatch")

    assessment = RiskAssessment(
        risk_score=score,
        is_suspicious=score > config.risk_recommend_threshold,
        requires_two_factor=score > config.risk_require_threshold,
        signals=signals,
    )

    if assessment.is_suspicious:
        logger.info(f"Elevated risk score {score} for user {user_id} on {event_type}: {', '.join(signals)}")

    return assessment
