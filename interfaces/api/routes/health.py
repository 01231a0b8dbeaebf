"""健康检查路由"""

from fastapi import APIRouter
from pydantic import BaseModel, Field


router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """健康检查响应"""

    status: str = Field(..., description="服务状态")
    message: str = Field(..., description="说明")


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """健康检查（不反映各账号的同步状态）"""
    return HealthResponse(status="ok", message="Backend is up")
