"""
Security Routes

Session security check, active sessions and the security log.
"""

from fastapi import APIRouter, Depends, Query

from restaurant_security.auth import get_current_user
from restaurant_security.dependencies import get_session_service
from restaurant_security.models.user import User
from restaurant_security.services.session_service import SessionService
from restaurant_security.utils.request_context import RequestContext, get_request_context

router = APIRouter(prefix="/security", tags=["Security"])


@router.get("/session-check")
async def check_session_security(
    current_user: User = Depends(get_current_user),
    ctx: RequestContext = Depends(get_request_context),
    service: SessionService = Depends(get_session_service),
) -> dict:
    """
    Evaluate the calling session.

    Registers the session (X-Session-Token, or a newly issued token) and
    returns the risk outcome, device info and recommendations.
    """
    return await service.check_session(current_user, ctx)


@router.get("/sessions")
async def list_active_sessions(
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
) -> dict:
    sessions = await service.list_active_serialized(current_user.id)
    return {"sessions": sessions, "total": len(sessions)}


@router.get("/logs")
async def list_security_logs(
    limit: int = Query(50, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
) -> dict:
    """Latest security events for the current user, newest first."""
    return {"logs": await service.recent_logs(current_user.id, limit)}
