from fastapi import APIRouter, Depends
from database import get_db
from models import LoginRequest, TokenResponse, UserRole, AuditAction
from auth import verify_password, create_access_token
from utils.audit import create_audit_log
from utils.errors import AuthenticationError, ValidationError
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/login", response_model=TokenResponse)
async def login(credentials: LoginRequest, db=Depends(get_db)):
    """Email + password login. Returns a 7-day bearer token."""
    email = (credentials.email or "").strip().lower()
    if not email or not credentials.password:
        raise ValidationError("Missing credentials")
    
    user = await db.users.find_one({"email": email}, {"_id": 0})
    if not user:
        await create_audit_log(
            db,
            action=AuditAction.USER_LOGIN_FAILED,
            metadata={"email": email, "reason": "user_not_found"}
        )
        raise AuthenticationError("Invalid credentials")
    
    # Verify password
    if not verify_password(credentials.password, user.get("password_hash") or ""):
        await create_audit_log(
            db,
            action=AuditAction.USER_LOGIN_FAILED,
            actor_id=user["user_id"],
            metadata={"email": email, "reason": "invalid_password"}
        )
        raise AuthenticationError("Invalid credentials")
    
    token = create_access_token({
        "userId": user["user_id"],
        "role": user["role"],
        "email": user["email"],
    })
    
    await create_audit_log(
        db,
        action=AuditAction.USER_LOGIN_SUCCESS,
        actor_id=user["user_id"],
        metadata={"role": user["role"]}
    )
    logger.info(f"Login success: {email}")
    
    return TokenResponse(token=token, role=UserRole(user["role"]))
