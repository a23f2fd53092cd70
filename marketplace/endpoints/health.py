from fastapi import APIRouter

from marketplace.core.config import settings
from marketplace.schemas.response import APIResponse

router = APIRouter()


@router.get("/health", response_model=APIResponse[dict])
def health_check():
    return APIResponse(message="Service is healthy", data={"status": "ok", "version": settings.VERSION})
