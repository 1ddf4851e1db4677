"""Authenticated identity endpoint"""

from fastapi import APIRouter, Depends, status

from forpharma.api.dependencies import get_current_user
from forpharma.schemas.tenant import CurrentUser

router = APIRouter(prefix="/api/v1", tags=["Identity"])


@router.get("/me", response_model=CurrentUser, status_code=status.HTTP_200_OK)
async def get_me(current_user: CurrentUser = Depends(get_current_user)):
    """Return the identity resolved from the bearer token"""
    return current_user
