"""
Health check API route
"""

from datetime import datetime
from fastapi import APIRouter, HTTPException, Depends

from config.settings import USERS_STORE
from services.users_service import UsersService, get_users_service

router = APIRouter()

@router.get("/")
async def health_check(
    users_service: UsersService = Depends(get_users_service)
):
    """Health check - reports unhealthy only when the users store is unreachable"""
    try:
        await users_service.check_store()

        return {
            "status": "healthy",
            "timestamp": datetime.utcnow().isoformat(),
            "store": USERS_STORE,
            "database": "connected"
        }

    except Exception as e:
        raise HTTPException(status_code=503, detail=f"Health check failed: {str(e)}")
