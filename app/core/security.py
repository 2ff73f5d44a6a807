"""
Security module — Firebase JWT verification + Mock auth + Role guard.

Auth Flow:
1. User signs in via Firebase → gets JWT
2. Frontend sends JWT to FastAPI
3. FastAPI verifies JWT using Firebase Admin SDK
4. Backend fetches user profile from Supabase (by firebase_uid)
5. Backend resolves the role profile (students / teachers / parents row)
6. Backend injects: user_id, role, profile_id

Unknown Firebase UIDs are rejected.
"""

import logging
import os
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from app.core.config import settings
from app.core.database import get_supabase, first_row

logger = logging.getLogger(__name__)

security_scheme = HTTPBearer()

# role -> table holding that role's profile row
PROFILE_TABLES = {
    "student": "students",
    "teacher": "teachers",
    "parent": "parents",
}

# ---------------------------------------------------------------------------
# Firebase initialization (lazy)
# ---------------------------------------------------------------------------
_firebase_app = None


def _init_firebase():
    global _firebase_app
    if _firebase_app is not None:
        return
    import firebase_admin
    from firebase_admin import credentials as fb_credentials

    cred_path = settings.FIREBASE_CREDENTIALS_PATH
    if os.path.exists(cred_path):
        cred = fb_credentials.Certificate(cred_path)
        _firebase_app = firebase_admin.initialize_app(cred)
    else:
        # Try default credentials
        _firebase_app = firebase_admin.initialize_app()


# ---------------------------------------------------------------------------
# Mock users (local development without Firebase)
# ---------------------------------------------------------------------------
MOCK_USERS = {
    "admin-token": {
        "uid": "admin-firebase-uid",
        "email": "admin@mathmates.app",
        "role": "admin",
        "name": "Platform Admin",
        "user_id": "a0000000-0000-0000-0000-000000000001",
        "profile_id": None,
    },
}


def _resolve_profile_id(db, user_id: str, role: str) -> str | None:
    table = PROFILE_TABLES.get(role)
    if table is None:
        return None
    profile = first_row(
        db.table(table).select("id").eq("user_id", user_id).limit(1).execute()
    )
    return profile["id"] if profile else None


def _build_user(db, user_data: dict, uid: str | None = None) -> dict:
    return {
        "uid": uid or user_data.get("firebase_uid") or user_data["id"],
        "email": user_data.get("email", ""),
        "role": user_data["role"],
        "name": user_data.get("name", ""),
        "user_id": user_data["id"],
        "profile_id": _resolve_profile_id(db, user_data["id"], user_data["role"]),
    }


# ---------------------------------------------------------------------------
# Token verification — the core auth function
# ---------------------------------------------------------------------------
async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
) -> dict:
    """
    Validate the Bearer token and return user dict.
    Only users already registered in Supabase can authenticate.
    """
    token = credentials.credentials

    if settings.AUTH_MODE == "mock":
        return await _mock_auth(token)

    return await _firebase_auth(token)


async def _mock_auth(token: str) -> dict:
    """Mock mode: look up token in MOCK_USERS dict or try DB lookup."""
    user = MOCK_USERS.get(token)
    if user:
        return user

    # Email-based token: "mock-email@example.com"
    if token.startswith("mock-"):
        email = token[5:]
        db = get_supabase()
        user_data = first_row(
            db.table("users").select("*").eq("email", email).limit(1).execute()
        )
        if user_data:
            return _build_user(db, user_data)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid token. Only registered users can login.",
    )


async def _firebase_auth(token: str) -> dict:
    """Firebase mode: verify JWT, fetch profile from Supabase."""
    _init_firebase()
    from firebase_admin import auth as fb_auth

    try:
        decoded = fb_auth.verify_id_token(token)
    except Exception:
        logger.info("Rejected Firebase token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired Firebase token",
        )

    uid = decoded["uid"]

    db = get_supabase()
    user_data = first_row(
        db.table("users").select("*").eq("firebase_uid", uid).limit(1).execute()
    )

    if not user_data:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account not registered. Sign up before logging in.",
        )

    user = _build_user(db, user_data, uid=uid)
    if not user["email"]:
        user["email"] = decoded.get("email", "")
    return user


# ---------------------------------------------------------------------------
# Role guard dependency
# ---------------------------------------------------------------------------
def require_role(allowed_roles: list[str]):
    """
    Usage:
        @router.get("/teacher-only")
        async def endpoint(user=Depends(require_role(["teacher"]))):
    """

    async def role_checker(
        user: dict = Depends(get_current_user),
    ) -> dict:
        if user["role"] not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{user['role']}' not authorized. Required: {allowed_roles}",
            )
        return user

    return role_checker
