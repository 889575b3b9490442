"""
Health endpoint.

Liveness only; pipeline state is under /control/status.
"""

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: str


@router.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(status="ok")
