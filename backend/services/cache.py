"""
Text cache for parsed PDB header info.

Write-once memo keyed by a string (e.g. "PDB_FILE_1a2b"). Entries never expire;
clear() is the only way to drop them.
"""
import hashlib
import re
from pathlib import Path
from typing import Optional, Union

from services.logger import log_warning

# Cache directory (in backend/cache/)
DEFAULT_CACHE_DIR = Path(__file__).parent.parent / "cache"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def cache_filename(key: str) -> str:
    """
    Filename-safe name for a cache key.

    Keys with characters outside [A-Za-z0-9_.-] get a short hash suffix so that
    two keys never share a file after sanitizing.
    """
    safe = _UNSAFE_CHARS.sub("_", key)
    if safe != key:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]
        safe = f"{safe}_{digest}"
    return f"{safe}.json"


class FileTextCache:
    """One text file per key under cache_dir"""

    def __init__(self, cache_dir: Union[str, Path, None] = None):
        self.cache_dir = Path(cache_dir) if cache_dir else DEFAULT_CACHE_DIR
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def get_cache_path(self, key: str) -> Path:
        return self.cache_dir / cache_filename(key)

    def get_text(self, key: str) -> Optional[str]:
        """
        Retrieve cached text for a key.

        Returns:
            Cached text or None if not cached
        """
        cache_file = self.get_cache_path(key)
        if not cache_file.exists():
            return None
        return cache_file.read_text(encoding="utf-8")

    def put_text(self, key: str, text: str) -> None:
        """Store text for a key. Written to a temp file first so readers never see a partial entry."""
        cache_file = self.get_cache_path(key)
        tmp_file = cache_file.with_suffix(".tmp")
        tmp_file.write_text(text, encoding="utf-8")
        tmp_file.replace(cache_file)

    def clear(self, key: Optional[str] = None) -> int:
        """
        Clear cache entries.

        Args:
            key: If provided, clear only this entry. Otherwise clear all.

        Returns:
            Number of files deleted
        """
        if key:
            cache_file = self.get_cache_path(key)
            if cache_file.exists():
                cache_file.unlink()
                return 1
            return 0

        count = 0
        for cache_file in self.cache_dir.glob("*.json"):
            try:
                cache_file.unlink()
                count += 1
            except OSError as e:
                log_warning("cache_clear_failed", f"Failed to delete {cache_file.name}: {e}", stage="cache")
        return count
