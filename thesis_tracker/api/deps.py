"""
FastAPI dependencies for caller identity, role gates, storage and database sessions.
"""

import uuid
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from thesis_tracker.database import get_db
from thesis_tracker.kernel.errors import NotFoundError, PermissionDeniedError
from thesis_tracker.kernel.identity.context import RequestContext, UserRole
from thesis_tracker.kernel.identity.jwt import get_jwt_manager
from thesis_tracker.kernel.models.research import ResearchProject
from thesis_tracker.kernel.storage import Storage, get_storage


# Security scheme
security = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]
StorageDep = Annotated[Storage, Depends(get_storage)]


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def get_current_context(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> RequestContext:
    """Turn the bearer token into a request context or raise 401."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    context = get_jwt_manager().context_from_token(
        credentials.credentials,
        ip_address=get_client_ip(request),
    )
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return context


CurrentContext = Annotated[RequestContext, Depends(get_current_context)]


async def require_staff(context: CurrentContext) -> RequestContext:
    """Require an adviser, program head, dean or admin."""
    if not context.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff access required",
        )
    return context


StaffContext = Annotated[RequestContext, Depends(require_staff)]


async def load_research_for(
    db: AsyncSession,
    research_id: uuid.UUID,
    context: RequestContext,
) -> ResearchProject:
    """
    Load a research project the caller may see.

    Staff see every project; students only those listing them as a member.
    """
    research = await db.get(ResearchProject, research_id)
    if research is None:
        raise NotFoundError("research", research_id)
    if context.role == UserRole.STUDENT:
        members = {str(s) for s in (research.student_ids or [])}
        if str(context.user_id) not in members:
            raise PermissionDeniedError(
                "You are not a student on this research project",
                reason="not-member",
            )
    return research
