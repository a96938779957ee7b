STREAM_INF_TAG = "#EXT-X-STREAM-INF"

MASTER_PLAYLIST_NAME = "master.m3u8"

PLAYLIST_EXTENSION = ".m3u8"

UPSTREAM_REQUEST_HEADERS = {
    "accept": "*/*",
    "accept-encoding": "gzip, deflate, br, zstd",
    "accept-language": "en-US,en;q=0.9",
}
