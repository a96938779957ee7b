import hashlib
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

import aiofiles
import aiofiles.os

from hls_cache_proxy.configs import settings
from hls_cache_proxy.const import MASTER_PLAYLIST_NAME, PLAYLIST_EXTENSION
from hls_cache_proxy.utils.hls_utils import VariantDescriptor, build_master_playlist, parse_hls_playlist

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedVariant:
    """A variant playlist that was downloaded and rewritten, ready to be written to disk."""

    index: int  # Position of the variant in the upstream master playlist.
    descriptor: VariantDescriptor
    content: str


@dataclass(frozen=True)
class RewrittenVariant:
    """A variant playlist stored in a cache entry."""

    bandwidth: Optional[int]
    resolution: Optional[str]
    file_name: str
    file_path: Path


@dataclass(frozen=True)
class CacheEntry:
    """The rewritten master and variant playlists stored under one cache key."""

    key: str
    directory: Path
    variants: List[RewrittenVariant] = field(default_factory=list)

    @property
    def master_path(self) -> Path:
        return self.directory / MASTER_PLAYLIST_NAME


class PlaylistCache:
    """File based cache of rewritten HLS playlists, one directory per request identity."""

    def __init__(self, cache_dir: str | Path = None, ttl: int = None):
        self.cache_dir = Path(settings.cache_dir if cache_dir is None else cache_dir)
        self.ttl = settings.cache_ttl if ttl is None else ttl

    @staticmethod
    def key_for(target_url: str, referer: str) -> str:
        """
        Derive the cache key of a request.

        Args:
            target_url (str): The master playlist URL.
            referer (str): The normalized referer.

        Returns:
            str: A SHA-1 hex digest, safe to use as a directory name.
        """
        return hashlib.sha1(f"{target_url}|{referer}".encode()).hexdigest()

    def _get_entry_dir(self, key: str) -> Path:
        return self.cache_dir / key

    async def lookup(self, key: str) -> Optional[CacheEntry]:
        """
        Get a fresh cache entry.

        Args:
            key: Cache key

        Returns:
            The entry if its master playlist exists and is younger than the TTL, otherwise None.
        """
        entry_dir = self._get_entry_dir(key)
        master_path = entry_dir / MASTER_PLAYLIST_NAME
        try:
            stat_result = await aiofiles.os.stat(master_path)
        except (FileNotFoundError, NotADirectoryError):
            return None

        age = time.time() - stat_result.st_mtime
        if age >= self.ttl:
            logger.info(f"Cache entry {key} is stale ({age:.0f}s old)")
            return None

        async with aiofiles.open(master_path, "r", encoding="utf-8") as f:
            master_content = await f.read()

        variants = []
        for descriptor in parse_hls_playlist(master_content):
            file_name = Path(descriptor.source_url).name
            file_path = entry_dir / file_name
            if not await aiofiles.os.path.exists(file_path):
                logger.warning(f"Cache entry {key} lists missing file {file_name}")
                continue
            variants.append(
                RewrittenVariant(
                    bandwidth=descriptor.bandwidth or None,
                    resolution=descriptor.resolution,
                    file_name=file_name,
                    file_path=file_path,
                )
            )
        return CacheEntry(key=key, directory=entry_dir, variants=variants)

    async def store(self, key: str, variants: Sequence[FetchedVariant]) -> CacheEntry:
        """
        Write the variant playlists and a master playlist listing them.

        Files of an earlier entry under the same key that are not part of this
        set are removed, the master playlist is written last.

        Args:
            key: Cache key
            variants: The rewritten variants, in master playlist order

        Returns:
            CacheEntry: The stored entry.

        Raises:
            OSError: If the directory or a file cannot be written.
        """
        entry_dir = self._get_entry_dir(key)
        await aiofiles.os.makedirs(entry_dir, exist_ok=True)

        stored = []
        used_names = set()
        for variant in variants:
            file_name = self._get_variant_file_name(variant, used_names)
            used_names.add(file_name)
            file_path = entry_dir / file_name
            async with aiofiles.open(file_path, "w", encoding="utf-8") as f:
                await f.write(variant.content)
            stored.append(
                RewrittenVariant(
                    bandwidth=variant.descriptor.bandwidth or None,
                    resolution=variant.descriptor.resolution,
                    file_name=file_name,
                    file_path=file_path,
                )
            )

        await self._remove_unlisted_files(entry_dir, used_names)

        master_content = build_master_playlist(
            VariantDescriptor(bandwidth=v.bandwidth, resolution=v.resolution, source_url=v.file_name) for v in stored
        )
        async with aiofiles.open(entry_dir / MASTER_PLAYLIST_NAME, "w", encoding="utf-8") as f:
            await f.write(master_content)

        logger.info(f"Stored {len(stored)} variant playlists under {key}")
        return CacheEntry(key=key, directory=entry_dir, variants=stored)

    @staticmethod
    def _get_variant_file_name(variant: FetchedVariant, used_names: set) -> str:
        bandwidth = variant.descriptor.bandwidth
        file_name = f"{bandwidth or f'v{variant.index}'}{PLAYLIST_EXTENSION}"
        if file_name in used_names:
            # Several variants may share a bandwidth, e.g. when they differ only in codecs.
            file_name = f"{bandwidth}_{variant.index}{PLAYLIST_EXTENSION}"
        return file_name

    async def _remove_unlisted_files(self, entry_dir: Path, keep: set) -> None:
        for name in await aiofiles.os.listdir(entry_dir):
            if name == MASTER_PLAYLIST_NAME or name in keep or not name.endswith(PLAYLIST_EXTENSION):
                continue
            try:
                await aiofiles.os.remove(entry_dir / name)
            except FileNotFoundError:
                pass
