from fastapi import Request
from typing import Optional
import logging
from auth import decode_access_token
from models import UserRole
from utils.errors import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header[len("Bearer "):].strip() or None

async def get_current_user(request: Request) -> Optional[dict]:
    """Extract and validate current user from JWT token."""
    token = _bearer_token(request)
    if not token:
        return None
    return decode_access_token(token)

async def require_auth(request: Request) -> dict:
    """Require valid authentication. Payload: {userId, role, email}."""
    token = _bearer_token(request)
    if not token:
        raise AuthenticationError("Missing token")
    
    payload = decode_access_token(token)
    if not payload or not payload.get("userId"):
        raise AuthenticationError("Invalid token")
    
    return payload

def require_roles(*roles: UserRole):
    """Dependency factory: authenticated user whose role is one of ``roles``."""
    allowed = {r.value for r in roles}

    async def guard(request: Request) -> dict:
        user = await require_auth(request)
        if user.get("role") not in allowed:
            logger.info(f"Role {user.get('role')} denied on {request.url.path}")
            raise AuthorizationError("Forbidden")
        return user

    return guard

staff_route_guard = require_roles(UserRole.ADMIN, UserRole.CREATOR)
