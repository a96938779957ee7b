import logging
from typing import Optional

from fastapi import APIRouter

from hls_cache_proxy.handlers import StreamRequestError, handle_best_stream_request
from hls_cache_proxy.schemas import ErrorResponse, StreamManifest

logger = logging.getLogger(__name__)

stream_router = APIRouter()


@stream_router.get("/get_best_stream", response_model=StreamManifest | ErrorResponse)
async def get_best_stream(url: Optional[str] = None, referer: Optional[str] = None):
    """
    Rewrite an HLS master playlist so its segments are served through the proxy.

    Args:
        url (str): The URL of the HLS master playlist.
        referer (str, optional): A URL whose origin is sent as Origin and Referer upstream.

    Returns:
        The cached master playlist path with its variants, or an error payload.
        Errors are returned with a 200 status.
    """
    try:
        return await handle_best_stream_request(url, referer)
    except StreamRequestError as e:
        return ErrorResponse(error=e.message)
    except Exception as e:
        logger.exception(f"Internal server error while handling {url}: {e}")
        return ErrorResponse(error="Internal server error")
