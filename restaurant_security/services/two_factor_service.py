"""
Two-Factor Authentication Service

Drives the 2FA lifecycle for a user:

    not configured -> pending (setup) -> enabled (first verify) -> disabled

plus a temporary lock after repeated failed verifications. Secrets are
generated and checked by services.totp; state lives only in the stores.
Every security-relevant outcome is written to the security log before the
result (or error) is returned.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from restaurant_security.config import Settings, settings as default_settings
from restaurant_security.exceptions import (
    AlreadyEnabledError,
    InvalidCredentialsError,
    InvalidTokenError,
    LockedError,
    NotConfiguredError,
    StoreFailureError,
    ValidationError,
)
from restaurant_security.models.security_log import SecurityEventType
from restaurant_security.models.types import utcnow
from restaurant_security.repositories.identity import IdentityProvider
from restaurant_security.repositories.records import SecurityLogRecord
from restaurant_security.repositories.security_log_store import SecurityLogStore
from restaurant_security.repositories.two_factor_store import TwoFactorStore
from restaurant_security.services import totp
from restaurant_security.services.crypto import SecretCipher
from restaurant_security.utils.request_context import RequestContext
from restaurant_security.utils.store_calls import store_call

logger = logging.getLogger(__name__)


class TwoFactorService:
    """Service for managing two-factor authentication."""

    def __init__(
        self,
        store: TwoFactorStore,
        logs: SecurityLogStore,
        identity: IdentityProvider,
        cipher: SecretCipher,
        config: Settings = default_settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.logs = logs
        self.identity = identity
        self.cipher = cipher
        self.config = config
        self.clock = clock

    async def setup(self, user_id: int, email: str | None, ctx: RequestContext) -> dict[str, Any]:
        """
        Start (or restart) 2FA setup.

        Generates a new secret and backup codes and stores them disabled.
        Calling again before verification replaces the pending secret.

        Returns:
            dict with secret, QR code image, provisioning URI and backup codes
        """
        existing = await self._call(self.store.get(user_id), "get_2fa_settings")
        if existing and existing.is_enabled:
            raise AlreadyEnabledError()

        secret = totp.generate_secret()
        backup_codes = totp.generate_backup_codes(self.config.backup_code_count, self.config.backup_code_length)
        code_hashes = [totp.hash_backup_code(code) for code in backup_codes]

        # One retry covers a concurrent first-time setup racing on the insert
        for _ in range(2):
            saved = await self._call(
                self.store.save_pending(user_id, self.cipher.encrypt(secret), code_hashes, email),
                "save_pending_2fa",
            )
            if saved:
                break
            current = await self._call(self.store.get(user_id), "get_2fa_settings")
            if current and current.is_enabled:
                raise AlreadyEnabledError()
        else:
            raise StoreFailureError("Could not store 2FA setup", operation="save_pending_2fa")

        qr = totp.generate_qr_payload(
            secret,
            account_label=email or f"user-{user_id}",
            issuer=self.config.totp_issuer,
            digest=self.config.totp_digest,
        )

        await self._log(user_id, SecurityEventType.SETUP_STARTED, ctx, {"action": "setup_initiated"})
        logger.info(f"2FA setup initiated for user {user_id}")

        return {
            "secret": secret,
            "qr_code": qr["image"],
            "provisioning_uri": qr["uri"],
            "backup_codes": backup_codes,
        }

    async def verify(self, user_id: int, token: str, ctx: RequestContext) -> dict[str, Any]:
        """
        Verify a TOTP or backup code.

        The first success enables 2FA; later successes gate logins the same
        way. Each attempt is counted before its code is checked, so a burst
        of concurrent guesses gets no more tries than the lockout threshold.
        Failures never reveal whether the TOTP or the backup-code check
        missed.
        """
        token = (token or "").strip()
        is_totp = totp.is_totp_format(token)
        is_backup = totp.is_backup_code_format(token, self.config.backup_code_length)
        if not (is_totp or is_backup):
            raise InvalidTokenError("Verification code must be 6 digits or a backup code", status_code=400)

        record = await self._call(self.store.get(user_id), "get_2fa_settings")
        if record is None or not record.secret:
            raise NotConfiguredError()

        now = self.clock()
        threshold = self.config.two_factor_max_failed_attempts
        reservation = await self._call(
            self.store.reserve_attempt(
                user_id, threshold, now, now + timedelta(minutes=self.config.two_factor_lockout_minutes)
            ),
            "reserve_2fa_attempt",
        )
        if reservation is None:
            await self._reject_locked(user_id, ctx)
        attempt, locked_until = reservation

        method = None
        secret = self.cipher.decrypt(record.secret)
        if is_totp and totp.verify_code(
            secret, token, now, window=self.config.totp_valid_window, digest=self.config.totp_digest
        ):
            method = "totp"
        elif is_backup and await self._call(
            self.store.consume_backup_code(user_id, totp.hash_backup_code(token)), "consume_backup_code"
        ):
            method = "backup_code"

        if method is None:
            await self._register_failure(user_id, attempt, locked_until, ctx)
            raise InvalidTokenError()

        first_time = await self._call(self.store.mark_verified(user_id, now, attempt), "mark_2fa_verified")

        if method == "backup_code":
            await self._log(
                user_id,
                SecurityEventType.BACKUP_CODE_USED,
                ctx,
                {"action": "backup_code_consumed", "remaining": max(record.backup_codes_remaining - 1, 0)},
            )

        if first_time:
            await self._log(user_id, SecurityEventType.ENABLED, ctx, {"action": "verification_successful"})
            logger.info(f"2FA enabled for user {user_id}")
            message = "2FA enabled successfully"
        else:
            await self._log(user_id, SecurityEventType.VERIFIED, ctx, {"action": "verification_successful"})
            message = "Verification successful"

        return {"success": True, "message": message}

    async def disable(self, user_id: int, password: str | None, ctx: RequestContext) -> dict[str, Any]:
        """
        Disable 2FA after re-checking the account password.

        The settings row is kept (audit trail) with secret, backup codes and
        lockout counters cleared.
        """
        if not password:
            raise ValidationError("Password is required to disable 2FA", field="password")

        if not await self._call(self.identity.verify_password(user_id, password), "verify_password"):
            await self._log(user_id, SecurityEventType.DISABLE_FAILED, ctx, {"action": "invalid_password"})
            raise InvalidCredentialsError()

        await self._call(self.store.reset(user_id), "reset_2fa")
        await self._log(user_id, SecurityEventType.DISABLED, ctx, {"action": "user_disabled_2fa"})
        logger.info(f"2FA disabled for user {user_id}")

        return {"success": True, "message": "2FA disabled successfully"}

    async def status(self, user_id: int) -> dict[str, Any]:
        """Get 2FA status for a user."""
        record = await self._call(self.store.get(user_id), "get_2fa_settings")
        if record is None:
            return {
                "enabled": False,
                "configured": False,
                "is_locked": False,
                "failed_attempts": 0,
                "backup_codes_remaining": 0,
                "last_used_at": None,
                "recovery_email": None,
            }

        now = self.clock()
        return {
            "enabled": record.is_enabled,
            "configured": bool(record.secret),
            "is_locked": record.is_locked(now),
            "failed_attempts": record.failed_attempts,
            "backup_codes_remaining": record.backup_codes_remaining,
            "last_used_at": record.last_used_at.isoformat() if record.last_used_at else None,
            "recovery_email": record.recovery_email,
        }

    async def is_locked(self, user_id: int) -> bool:
        record = await self._call(self.store.get(user_id), "get_2fa_settings")
        return record is not None and record.is_locked(self.clock())

    # ============== Private Methods ==============

    async def _reject_locked(self, user_id: int, ctx: RequestContext) -> None:
        current = await self._call(self.store.get(user_id), "get_2fa_settings")
        locked_until = current.locked_until if current else None
        await self._log(
            user_id,
            SecurityEventType.VERIFICATION_LOCKED,
            ctx,
            {
                "action": "attempt_while_locked",
                "locked_until": locked_until.isoformat() if locked_until else None,
            },
        )
        raise LockedError(locked_until)

    async def _register_failure(
        self, user_id: int, attempts: int, locked_until: datetime | None, ctx: RequestContext
    ) -> None:
        await self._log(
            user_id,
            SecurityEventType.VERIFICATION_FAILED,
            ctx,
            {"action": "invalid_token", "failed_attempts": attempts},
        )

        if locked_until is not None:
            await self._log(
                user_id,
                SecurityEventType.LOCKED,
                ctx,
                {"action": "lockout", "failed_attempts": attempts, "locked_until": locked_until.isoformat()},
            )
            logger.warning(f"2FA verification locked for user {user_id} until {locked_until.isoformat()}")

    async def _log(
        self, user_id: int, event_type: SecurityEventType, ctx: RequestContext, details: dict[str, Any]
    ) -> None:
        entry = SecurityLogRecord(
            user_id=user_id,
            event_type=event_type.value,
            event_details=details,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
            created_at=self.clock(),
        )
        await self._call(self.logs.append(entry), "append_security_log")

    async def _call(self, awaitable, operation: str):
        return await store_call(awaitable, operation, self.config.store_timeout_seconds)
