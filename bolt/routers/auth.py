from typing import Optional

from fastapi import APIRouter, Depends

from bolt.auth.dependencies import AuthContext, get_optional_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/status")
def auth_status(auth: Optional[AuthContext] = Depends(get_optional_user)):
    if auth is None:
        return {"isAuthenticated": False, "user": None}
    return {
        "isAuthenticated": True,
        "user": {
            "id": str(auth.user_id),
            "email": auth.email,
            "name": auth.name,
            "picture": auth.picture,
        },
    }
