"""
Session Service

Active-session registry plus the session security check, which combines
device classification, risk scoring and 2FA status into advisory
recommendations for the client.
"""

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from restaurant_security.config import Settings, settings as default_settings
from restaurant_security.models.security_log import SecurityEventType
from restaurant_security.models.types import utcnow
from restaurant_security.models.user import User
from restaurant_security.repositories.records import SecurityLogRecord, SessionRecord
from restaurant_security.repositories.security_log_store import SecurityLogStore
from restaurant_security.repositories.session_store import SessionStore
from restaurant_security.services import risk_service
from restaurant_security.services.two_factor_service import TwoFactorService
from restaurant_security.utils.request_context import RequestContext
from restaurant_security.utils.store_calls import store_call

logger = logging.getLogger(__name__)


def _session_to_dict(session: SessionRecord) -> dict[str, Any]:
    return {
        "session_token": session.session_token,
        "ip_address": session.ip_address,
        "user_agent": session.user_agent,
        "device_info": session.device_info,
        "created_at": session.created_at.isoformat() if session.created_at else None,
        "last_activity": session.last_activity.isoformat() if session.last_activity else None,
        "expires_at": session.expires_at.isoformat(),
    }


class SessionService:
    def __init__(
        self,
        sessions: SessionStore,
        logs: SecurityLogStore,
        two_factor: TwoFactorService,
        config: Settings = default_settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.sessions = sessions
        self.logs = logs
        self.two_factor = two_factor
        self.config = config
        self.clock = clock

    async def touch(
        self,
        user_id: int,
        token: str,
        ip_address: str | None,
        user_agent: str | None,
        device_info: dict[str, Any] | None,
        ttl: timedelta | None = None,
    ) -> SessionRecord:
        """
        Insert or refresh the session for this token; expires_at = now + ttl.

        A token already held by another user is never reused: the session
        is registered under a freshly issued token instead.
        """
        now = self.clock()
        ttl = ttl or timedelta(hours=self.config.session_ttl_hours)
        record = SessionRecord(
            user_id=user_id,
            session_token=token,
            expires_at=now + ttl,
            ip_address=ip_address,
            user_agent=user_agent,
            device_info=device_info,
        )
        session = await self._call(self.sessions.upsert(record, now), "upsert_session")
        if session is None:
            logger.warning(f"Session token presented by user {user_id} belongs to another user, issuing a new one")
            record.session_token = secrets.token_urlsafe(32)
            session = await self._call(self.sessions.upsert(record, now), "upsert_session")
        return session

    async def list_active(self, user_id: int, now: datetime | None = None) -> list[SessionRecord]:
        return await self._call(self.sessions.list_active(user_id, now or self.clock()), "list_active_sessions")

    async def list_active_serialized(self, user_id: int) -> list[dict[str, Any]]:
        return [_session_to_dict(session) for session in await self.list_active(user_id)]

    async def recent_logs(self, user_id: int, limit: int = 50) -> list[dict[str, Any]]:
        """Latest security-log entries for a user, newest first."""
        entries = await self._call(self.logs.recent(user_id, limit), "recent_security_logs")
        return [
            {
                "id": entry.id,
                "event_type": entry.event_type,
                "event_details": entry.event_details,
                "ip_address": entry.ip_address,
                "user_agent": entry.user_agent,
                "device_info": entry.device_info,
                "created_at": entry.created_at.isoformat() if entry.created_at else None,
            }
            for entry in entries
        ]

    async def check_session(self, user: User, ctx: RequestContext) -> dict[str, Any]:
        """
        Evaluate the current session and register it.

        Active sessions are counted before this session is upserted, so the
        count reflects the sessions that already existed.
        """
        now = self.clock()
        device = risk_service.get_device_info(ctx.user_agent)

        prior_logs = await self._call(
            self.logs.recent(user.id, self.config.risk_history_limit), "recent_security_logs"
        )
        active = await self.list_active(user.id, now)
        history = risk_service.build_history(prior_logs, active, user.id, now, self.config)
        # The history window is capped, failures are counted over the full time window
        history.recent_failures = await self._call(
            self.logs.count_since(
                user.id,
                risk_service.FAILURE_EVENTS,
                now - timedelta(minutes=self.config.risk_failure_window_minutes),
            ),
            "count_recent_failures",
        )
        assessment = risk_service.evaluate(
            user.id,
            ctx.ip_address,
            ctx.user_agent,
            SecurityEventType.SESSION_CHECK.value,
            history,
            country=ctx.country,
            config=self.config,
        )

        two_factor_status = await self.two_factor.status(user.id)

        session_token = ctx.session_token or secrets.token_urlsafe(32)
        session = await self.touch(user.id, session_token, ctx.ip_address, ctx.user_agent, device.to_dict())

        await self._call(
            self.logs.append(
                SecurityLogRecord(
                    user_id=user.id,
                    event_type=SecurityEventType.SESSION_CHECK.value,
                    event_details={
                        "risk_score": assessment.risk_score,
                        "is_suspicious": assessment.is_suspicious,
                        "signals": assessment.signals,
                        "country": ctx.country,
                    },
                    ip_address=ctx.ip_address,
                    user_agent=ctx.user_agent,
                    device_info=device.to_dict(),
                    created_at=now,
                )
            ),
            "append_security_log",
        )

        recommendations = self._recommendations(assessment, two_factor_status["enabled"], len(active))

        return {
            "user_id": user.id,
            "security_status": {
                "risk_score": assessment.risk_score,
                "is_suspicious": assessment.is_suspicious,
                "requires_2fa": assessment.requires_two_factor,
                "has_2fa_enabled": two_factor_status["enabled"],
                "is_2fa_locked": two_factor_status["is_locked"],
                "signals": assessment.signals,
            },
            "device_info": device.to_dict(),
            "session_info": {
                "ip_address": ctx.ip_address,
                "session_token": session.session_token,
                "expires_at": session.expires_at.isoformat(),
                "active_sessions_count": len(active),
            },
            "recommendations": recommendations,
        }

    # ============== Private Methods ==============

    def _recommendations(
        self, assessment: risk_service.RiskAssessment, has_two_factor: bool, active_count: int
    ) -> list[str]:
        recommendations = []
        if assessment.requires_two_factor:
            recommendations.append("Enable two-step verification immediately")
        elif assessment.is_suspicious and not has_two_factor:
            recommendations.append("Consider enabling two-factor authentication")

        if active_count > self.config.max_active_sessions:
            recommendations.append("Too many active sessions. Consider logging out from unused devices")

        return recommendations

    async def _call(self, awaitable, operation: str):
        return await store_call(awaitable, operation, self.config.store_timeout_seconds)
