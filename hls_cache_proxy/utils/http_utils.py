import logging
from urllib import parse

import httpx

from hls_cache_proxy.configs import settings
from hls_cache_proxy.const import UPSTREAM_REQUEST_HEADERS

logger = logging.getLogger(__name__)


class DownloadError(Exception):
    def __init__(self, status_code, message):
        self.status_code = status_code
        self.message = message
        super().__init__(message)


def create_httpx_client(follow_redirects: bool = True, **kwargs) -> httpx.AsyncClient:
    """
    Create an HTTPX AsyncClient configured from the transport settings.

    Args:
        follow_redirects (bool): Whether to follow 3xx redirects automatically.
        **kwargs: Additional AsyncClient keyword arguments.

    Returns:
        httpx.AsyncClient: Configured client.
    """
    kwargs.setdefault("timeout", settings.transport_config.timeout)
    if "transport" not in kwargs:
        kwargs.setdefault("mounts", settings.transport_config.get_mounts())
    return httpx.AsyncClient(follow_redirects=follow_redirects, **kwargs)


def get_upstream_headers(referer: str) -> dict:
    """
    Build the fixed header set sent with every upstream playlist request.

    Args:
        referer (str): The normalized referer, sent as both Origin and Referer.

    Returns:
        dict: Request headers.
    """
    headers = dict(UPSTREAM_REQUEST_HEADERS)
    headers.update({"origin": referer, "referer": referer, "user-agent": settings.user_agent})
    return headers


async def fetch_text(client: httpx.AsyncClient, url: str, referer: str) -> str:
    """
    Fetch a remote playlist as text. No retries are attempted.

    Args:
        client (httpx.AsyncClient): HTTP client to use for the request.
        url (str): Target URL.
        referer (str): The normalized referer for the upstream headers.

    Returns:
        str: Response text.

    Raises:
        DownloadError: If the request times out, fails or returns a non-success status.
    """
    try:
        response = await client.get(url, headers=get_upstream_headers(referer))
        response.raise_for_status()
        return response.text
    except httpx.TimeoutException:
        logger.warning(f"Timeout while downloading {url}")
        raise DownloadError(504, f"Timeout while downloading {url}")
    except httpx.HTTPStatusError as e:
        logger.error(f"HTTP error {e.response.status_code} while downloading {url}")
        raise DownloadError(e.response.status_code, f"HTTP error {e.response.status_code} while downloading {url}")
    except httpx.InvalidURL as e:
        logger.error(f"Invalid URL {url!r}: {e}")
        raise DownloadError(400, f"Invalid URL {url!r}: {e}")
    except httpx.HTTPError as e:
        logger.error(f"Error downloading {url}: {e}")
        raise DownloadError(502, f"Error downloading {url}: {e}")


def resolve_url(base_url: str | None, url: str) -> str:
    """
    Resolve a possibly relative playlist reference against its base URL.

    References that already carry a scheme are returned unchanged. When the
    reference cannot be resolved it is returned as-is.
    """
    try:
        if parse.urlsplit(url).scheme or not base_url:
            return url
        return parse.urljoin(base_url, url)
    except ValueError:
        logger.debug(f"Could not resolve {url!r} against {base_url!r}")
        return url


def normalize_referer(referer: str | None, default_referer: str | None = None) -> str:
    """
    Reduce a referer to its origin in the form ``scheme://host/``.

    Args:
        referer (str, optional): The referer supplied by the caller.
        default_referer (str, optional): Fallback for a missing or unparsable referer.
            Defaults to the configured default referer.

    Returns:
        str: The normalized referer.
    """
    default_referer = default_referer or settings.default_referer
    if not referer:
        return default_referer
    try:
        parsed = parse.urlsplit(referer)
        hostname = parsed.hostname
    except ValueError:
        return default_referer
    if not parsed.scheme or not hostname:
        return default_referer
    if ":" in hostname:
        hostname = f"[{hostname}]"
    return f"{parsed.scheme}://{hostname}/"


def encode_proxy_url(proxy_prefix: str, destination_url: str, referer: str) -> str:
    """
    Route an absolute URL through the proxy endpoint, carrying the referer along.

    Args:
        proxy_prefix (str): The proxy endpoint prefix, ending where the encoded URL begins.
        destination_url (str): The absolute upstream URL.
        referer (str): The normalized referer.

    Returns:
        str: The proxied URL.
    """
    return f"{proxy_prefix}{parse.quote(destination_url, safe='')}&referer={parse.quote(referer, safe='')}"
