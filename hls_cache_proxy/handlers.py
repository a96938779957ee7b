import asyncio
import logging
from typing import Optional

import httpx

from .configs import settings
from .schemas import StreamManifest, StreamRequest, VariantEntry
from .utils.cache_utils import CacheEntry, FetchedVariant, PlaylistCache
from .utils.hls_utils import VariantDescriptor, parse_hls_playlist
from .utils.http_utils import DownloadError, create_httpx_client, fetch_text, normalize_referer
from .utils.m3u8_processor import M3U8Processor

logger = logging.getLogger(__name__)


class StreamRequestError(Exception):
    """A failure reported to the caller through the error field of the response."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def build_manifest(entry: CacheEntry) -> StreamManifest:
    """
    Build the response manifest of a cache entry, with paths relative to the static cache mount.

    Args:
        entry (CacheEntry): The cache entry.

    Returns:
        StreamManifest: The master path and the variant descriptors.
    """
    base_path = f"{settings.cache_url_path.strip('/')}/{entry.key}"
    return StreamManifest(
        master=f"{base_path}/{entry.master_path.name}",
        all=[
            VariantEntry(bandwidth=v.bandwidth, resolution=v.resolution, file=f"{base_path}/{v.file_name}")
            for v in entry.variants
        ],
    )


async def fetch_variant(
    client: httpx.AsyncClient, index: int, variant: VariantDescriptor, processor: M3U8Processor, referer: str
) -> Optional[FetchedVariant]:
    """
    Download and rewrite a single variant playlist.

    Returns:
        Optional[FetchedVariant]: The rewritten variant, or None if it could not be downloaded.
    """
    try:
        content = await fetch_text(client, variant.source_url, referer)
    except DownloadError as e:
        logger.warning(f"Dropping variant {variant.source_url}: {e}")
        return None
    return FetchedVariant(index=index, descriptor=variant, content=processor.process_m3u8(content, variant.source_url))


async def handle_best_stream_request(
    url: Optional[str],
    referer: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
    cache: Optional[PlaylistCache] = None,
) -> StreamManifest:
    """
    Rewrite an HLS master playlist and its variants so every segment is routed through the proxy.

    The rewritten playlists are cached on disk per (url, referer). A fresh
    cache entry is returned without contacting the upstream server.

    Args:
        url (str): The URL of the master playlist.
        referer (str, optional): A URL whose origin is sent as Origin and Referer upstream.
        client (httpx.AsyncClient, optional): The client for upstream requests. A new one is created if omitted.
        cache (PlaylistCache, optional): The playlist cache. Defaults to the configured cache directory.

    Returns:
        StreamManifest: The master playlist path and the variant descriptors.

    Raises:
        StreamRequestError: If the request cannot be served.
    """
    if not url:
        raise StreamRequestError("Missing URL")

    stream_request = StreamRequest(target_url=url, referer=normalize_referer(referer))
    cache = cache or PlaylistCache()
    key = cache.key_for(stream_request.target_url, stream_request.referer)

    entry = await cache.lookup(key)
    if entry is not None:
        logger.info(f"Serving {stream_request.target_url} from cache {key}")
        return build_manifest(entry)

    if client is None:
        async with create_httpx_client() as client:
            entry = await process_master_playlist(stream_request, key, client, cache)
    else:
        entry = await process_master_playlist(stream_request, key, client, cache)
    return build_manifest(entry)


async def process_master_playlist(
    stream_request: StreamRequest, key: str, client: httpx.AsyncClient, cache: PlaylistCache
) -> CacheEntry:
    """
    Fetch, parse, rewrite and store the master playlist of a request.

    Args:
        stream_request (StreamRequest): The normalized request.
        key (str): The cache key of the request.
        client (httpx.AsyncClient): The client for upstream requests.
        cache (PlaylistCache): The playlist cache.

    Returns:
        CacheEntry: The stored entry.
    """
    try:
        master_content = await fetch_text(client, stream_request.target_url, stream_request.referer)
    except DownloadError as e:
        logger.error(f"Could not load master playlist {stream_request.target_url}: {e}")
        raise StreamRequestError("Could not load master playlist")

    variants = parse_hls_playlist(master_content, stream_request.target_url)
    if not variants:
        logger.warning(f"No streams found in {stream_request.target_url}")
        raise StreamRequestError("No streams found")

    processor = M3U8Processor(stream_request.referer)
    results = await asyncio.gather(
        *[
            fetch_variant(client, index, variant, processor, stream_request.referer)
            for index, variant in enumerate(variants)
        ],
        return_exceptions=True,
    )
    fetched = []
    for variant, result in zip(variants, results):
        if isinstance(result, BaseException):
            logger.error(f"Dropping variant {variant.source_url} after unexpected error: {result!r}")
        elif result is not None:
            fetched.append(result)
    if not fetched:
        raise StreamRequestError("Could not load variant playlists")
    logger.info(f"Loaded {len(fetched)} of {len(variants)} variants for {stream_request.target_url}")

    try:
        return await cache.store(key, fetched)
    except OSError as e:
        logger.exception(f"Could not write stream cache {key}: {e}")
        raise StreamRequestError("Could not write stream cache")
