import time

from fastapi import APIRouter

from hls_cache_proxy.schemas import SelfCheckResponse

health_router = APIRouter()


@health_router.get("/self-check", response_model=SelfCheckResponse)
async def self_check():
    return SelfCheckResponse(ok=True, time=int(time.time() * 1000))
