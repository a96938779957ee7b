import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from hls_cache_proxy.const import STREAM_INF_TAG
from hls_cache_proxy.utils.http_utils import resolve_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VariantDescriptor:
    """A variant stream announced by a master playlist."""

    bandwidth: Optional[int]
    resolution: Optional[str]
    source_url: str


def parse_stream_inf_attributes(line: str) -> Tuple[Optional[int], Optional[str]]:
    """
    Extracts BANDWIDTH and RESOLUTION from an #EXT-X-STREAM-INF line.

    Args:
        line (str): The stream information line.

    Returns:
        Tuple[Optional[int], Optional[str]]: The bandwidth and resolution, None where absent.
    """
    bandwidth = None
    resolution = None
    attributes_str = line.strip().replace(f"{STREAM_INF_TAG}:", "", 1)

    for part in attributes_str.split(","):
        part = part.strip()
        if part.startswith("BANDWIDTH="):
            try:
                value = int(part[len("BANDWIDTH=") :].strip())
            except ValueError:
                logger.warning(f"Ignoring malformed bandwidth in: {line}")
                continue
            bandwidth = value if value >= 0 else None
        elif part.startswith("RESOLUTION="):
            resolution = part[len("RESOLUTION=") :].strip() or None

    return bandwidth, resolution


def parse_hls_playlist(playlist_content: str, base_url: Optional[str] = None) -> List[VariantDescriptor]:
    """
    Parses an HLS master playlist to extract its variant streams.

    The URL of a variant is the first non-blank line following its
    #EXT-X-STREAM-INF tag. Tags without such a line are skipped.

    Args:
        playlist_content (str): The content of the M3U8 master playlist.
        base_url (str, optional): The URL of the playlist for resolving relative stream URLs. Defaults to None.

    Returns:
        List[VariantDescriptor]: The variants in declaration order.
    """
    variants = []
    lines = playlist_content.splitlines()

    for i, line in enumerate(lines):
        if not line.strip().startswith(STREAM_INF_TAG):
            continue
        bandwidth, resolution = parse_stream_inf_attributes(line)

        j = i + 1
        while j < len(lines) and not lines[j].strip():
            j += 1
        if j >= len(lines) or lines[j].strip().startswith("#"):
            logger.debug(f"Stream information without a URL: {line}")
            continue

        stream_url = resolve_url(base_url, lines[j].strip())
        variants.append(VariantDescriptor(bandwidth=bandwidth, resolution=resolution, source_url=stream_url))

    return variants


def build_master_playlist(variants: Iterable[VariantDescriptor]) -> str:
    """
    Builds a master playlist listing the given variants in order.

    Args:
        variants (Iterable[VariantDescriptor]): Variants whose source_url is written as the stream URI.

    Returns:
        str: The master playlist text.
    """
    lines = ["#EXTM3U", "#EXT-X-VERSION:3"]
    for variant in variants:
        stream_inf = f"{STREAM_INF_TAG}:BANDWIDTH={variant.bandwidth or 0}"
        if variant.resolution:
            stream_inf += f",RESOLUTION={variant.resolution}"
        lines.append(stream_inf)
        lines.append(variant.source_url)
    return "\n".join(lines)
