from hls_cache_proxy.configs import settings
from hls_cache_proxy.utils.http_utils import encode_proxy_url, resolve_url


class M3U8Processor:
    def __init__(self, referer: str, proxy_prefix: str = None):
        """
        Initializes the M3U8Processor with the referer and proxy prefix.

        Args:
            referer (str): The normalized referer forwarded with every proxied URL.
            proxy_prefix (str, optional): The proxy endpoint prefix. Defaults to the configured prefix.
        """
        self.referer = referer
        self.proxy_prefix = settings.proxy_prefix if proxy_prefix is None else proxy_prefix

    def process_m3u8(self, content: str, base_url: str) -> str:
        """
        Processes the m3u8 content, routing every segment and sub-playlist URL through the proxy.

        Args:
            content (str): The m3u8 content to process.
            base_url (str): The URL of the playlist, used to resolve relative URLs.

        Returns:
            str: The processed m3u8 content, lines joined with "\\n".
        """
        return "\n".join(self.process_line(line, base_url) for line in content.splitlines())

    def process_line(self, line: str, base_url: str) -> str:
        """
        Process a single line from the m3u8 content.

        Args:
            line (str): The line to process.
            base_url (str): The base URL to resolve relative URLs.

        Returns:
            str: The processed line.
        """
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            return line
        return self.proxy_content_url(stripped, base_url)

    def proxy_content_url(self, url: str, base_url: str) -> str:
        full_url = resolve_url(base_url, url)
        return encode_proxy_url(self.proxy_prefix, full_url, self.referer)
