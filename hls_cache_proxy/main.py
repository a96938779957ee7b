import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
from starlette.staticfiles import StaticFiles

from hls_cache_proxy.configs import settings
from hls_cache_proxy.routes import health_router, stream_router
from hls_cache_proxy.utils.self_check import self_check_monitor

logging.basicConfig(level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    self_check_monitor.start()
    yield
    await self_check_monitor.stop()


app = FastAPI(lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(stream_router, tags=["stream"])
app.include_router(health_router, tags=["health"])

Path(settings.cache_dir).mkdir(parents=True, exist_ok=True)
app.mount(settings.cache_url_path, StaticFiles(directory=settings.cache_dir), name="stream_cache")


def run():
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level="info")


if __name__ == "__main__":
    run()
