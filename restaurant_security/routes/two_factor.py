"""
Two-Factor Authentication Routes

API endpoints for 2FA setup, verification, and management.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from restaurant_security.auth import get_current_user
from restaurant_security.dependencies import get_two_factor_service
from restaurant_security.exception_handlers import SuccessEnvelopeRoute
from restaurant_security.models.user import User
from restaurant_security.services.two_factor_service import TwoFactorService
from restaurant_security.utils.request_context import RequestContext, get_request_context

router = APIRouter(prefix="/2fa", tags=["Two-Factor Authentication"])

# verify and disable answer failures with {"success": false, "error": ...}
mutation_router = APIRouter(prefix="/2fa", tags=["Two-Factor Authentication"], route_class=SuccessEnvelopeRoute)


# ============== Schemas ==============


class TwoFactorStatus(BaseModel):
    """2FA status response."""

    enabled: bool
    configured: bool
    is_locked: bool
    failed_attempts: int
    backup_codes_remaining: int
    last_used_at: str | None = None
    recovery_email: str | None = None


class TwoFactorSetupResponse(BaseModel):
    """Response for 2FA setup initiation."""

    secret: str
    qr_code: str  # data:image/png;base64 URI
    provisioning_uri: str
    backup_codes: list[str]


class VerifyCodeRequest(BaseModel):
    """A 6-digit TOTP code or a backup code."""

    token: str = Field(..., max_length=32)


class DisableRequest(BaseModel):
    password: str = ""


class MutationResponse(BaseModel):
    success: bool
    message: str


# ============== Status & Setup ==============


@router.get("/status", response_model=TwoFactorStatus)
async def get_2fa_status(
    current_user: User = Depends(get_current_user),
    service: TwoFactorService = Depends(get_two_factor_service),
) -> TwoFactorStatus:
    """Get current 2FA status for the authenticated user."""
    return TwoFactorStatus(**await service.status(current_user.id))


@router.post("/setup", response_model=TwoFactorSetupResponse)
async def setup_2fa(
    current_user: User = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    service: TwoFactorService = Depends(get_two_factor_service),
) -> TwoFactorSetupResponse:
    """
    Initialize 2FA setup.

    Returns a secret key, QR code and backup codes. 2FA is enabled by the
    first successful call to /2fa/verify.
    Backup codes are only shown once.
    """
    result = await service.setup(current_user.id, current_user.email, ctx)
    return TwoFactorSetupResponse(**result)


# ============== Verification & Management ==============


@mutation_router.post("/verify", response_model=MutationResponse)
async def verify_2fa_code(
    data: VerifyCodeRequest,
    current_user: User = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    service: TwoFactorService = Depends(get_two_factor_service),
) -> MutationResponse:
    """Verify a TOTP or backup code; the first success enables 2FA."""
    return MutationResponse(**await service.verify(current_user.id, data.token, ctx))


@mutation_router.post("/disable", response_model=MutationResponse)
async def disable_2fa(
    data: DisableRequest,
    current_user: User = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    service: TwoFactorService = Depends(get_two_factor_service),
) -> MutationResponse:
    """Disable 2FA. Requires the account password."""
    return MutationResponse(**await service.disable(current_user.id, data.password, ctx))
