"""
PDB header info service.

Fetches PDB headers from the remote file service, parses TITLE / COMPND / SOURCE
records into StructureInfo and memoizes the result in a text cache.
"""
import contextvars
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, Optional

import httpx
from pydantic import ValidationError
from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from schemas.pdb_data import StructureInfo
from services.logger import log_debug, log_error, log_info, log_warning
from services.pdb_header import HEADER_RECORDS, parse_compound, parse_title, split_records

CACHE_KEY_PREFIX = "PDB_FILE_"


class StructureInfoError(Exception):
    """Base class for per-id PDB info failures"""


class StructureFetchError(StructureInfoError):
    """Remote header could not be retrieved"""


class StructureParseError(StructureInfoError):
    """Header text or cached payload could not be parsed"""


def cache_key(pdb_id: str) -> str:
    return CACHE_KEY_PREFIX + pdb_id


def is_header_line(line: str) -> bool:
    return line.lower().startswith(HEADER_RECORDS)


def is_transient(exc: BaseException) -> bool:
    """Transport failures and 5xx responses are worth another attempt."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, httpx.TransportError)


class StructureInfoFetcher:
    """
    Retrieves StructureInfo for PDB ids, from the cache when possible.

    Args:
        base_url: Remote file service root; requests go to {base_url}/{ID}.pdb?headerOnly=YES
        cache: Text cache exposing get_text(key) / put_text(key, text)
        timeout: Per-request timeout in seconds
        retries: Extra attempts on transport errors and 5xx responses
        backoff: Initial delay between attempts in seconds, doubled each retry
        max_workers: Thread pool size for batch lookups (1 = sequential)
        client: Optional httpx.Client (tests inject one with a MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        cache,
        timeout: float = 10.0,
        retries: int = 2,
        backoff: float = 0.5,
        max_workers: int = 1,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.cache = cache
        self.timeout = timeout
        self.retries = max(0, retries)
        self.backoff = backoff
        self.max_workers = max(1, max_workers)
        self._client = client

    def build_url(self, pdb_id: str) -> str:
        return f"{self.base_url}/{pdb_id.upper()}.pdb?headerOnly=YES"

    def _read_header_lines(self, client: httpx.Client, url: str) -> str:
        lines = []
        with client.stream("GET", url, timeout=self.timeout) as response:
            response.raise_for_status()
            # read to the end; header records are not guaranteed to be contiguous
            for line in response.iter_lines():
                if is_header_line(line):
                    lines.append(line)
        return "\n".join(lines) + ("\n" if lines else "")

    def _request_header(self, url: str) -> str:
        if self._client is not None:
            return self._read_header_lines(self._client, url)
        with httpx.Client(follow_redirects=True) as client:
            return self._read_header_lines(client, url)

    def fetch_header(self, pdb_id: str) -> str:
        """
        Fetch the raw TITLE / COMPND / SOURCE lines for one PDB id.

        Transport errors and 5xx responses are retried with exponential backoff.

        Raises:
            StructureFetchError: on invalid ids, HTTP errors, or once retries are exhausted
        """
        url = self.build_url(pdb_id)

        def log_retry(retry_state: RetryCallState) -> None:
            log_warning("pdb_fetch_retry",
                        f"Retrying {url} ({retry_state.attempt_number}/{self.retries}): "
                        f"{retry_state.outcome.exception()}",
                        pdb_id=pdb_id, stage="fetch")

        retrying = Retrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=self.backoff),
            retry=retry_if_exception(is_transient),
            before_sleep=log_retry,
            reraise=True,
        )

        try:
            return retrying(self._request_header, url)
        except httpx.HTTPStatusError as e:
            raise StructureFetchError(f"{url} returned HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise StructureFetchError(f"{url} failed: {e}") from e

    def parse_header(self, raw: str) -> StructureInfo:
        """Build StructureInfo from raw header lines."""
        try:
            content = split_records(raw)
            return StructureInfo(
                title=parse_title(content.get("title")),
                compound=parse_compound(content.get("compnd")),
                source=parse_compound(content.get("source")),
            )
        except (ValueError, TypeError) as e:
            raise StructureParseError(f"Malformed PDB header: {e}") from e

    def get_info(self, pdb_id: str) -> StructureInfo:
        """
        StructureInfo for one PDB id: cached copy if present, otherwise fetched,
        parsed and cached.

        Raises:
            StructureFetchError, StructureParseError
        """
        key = cache_key(pdb_id)
        cached = self.cache.get_text(key)

        if cached is not None:
            try:
                return StructureInfo.model_validate_json(cached)
            except ValidationError as e:
                raise StructureParseError(f"Corrupt cache entry {key}: {e}") from e

        log_debug("pdb_cache_miss", f"No cached info for {pdb_id}", pdb_id=pdb_id, stage="cache")
        info = self.parse_header(self.fetch_header(pdb_id))

        try:
            self.cache.put_text(key, info.model_dump_json())
        except OSError as e:
            log_warning("cache_write_failed", f"Failed to cache {key}: {e}", pdb_id=pdb_id, stage="cache")

        return info

    def _get_info_or_none(self, pdb_id: str) -> Optional[StructureInfo]:
        try:
            return self.get_info(pdb_id)
        except (StructureInfoError, OSError, UnicodeDecodeError) as e:
            log_warning("pdb_info_failed", f"Unable to retrieve PDB info for {pdb_id}: {e}",
                        pdb_id=pdb_id, stage="fetch")
            return None
        except Exception as e:
            # one bad id must not take the rest of the batch down
            log_error("pdb_info_failed", f"Unexpected error retrieving PDB info for {pdb_id}: {e}",
                      pdb_id=pdb_id, stage="fetch", exc_info=True)
            return None

    def get_info_batch(self, pdb_ids: Iterable[str]) -> Dict[str, Optional[StructureInfo]]:
        """
        StructureInfo for each id; ids that fail map to None without affecting the others.
        """
        ids = list(dict.fromkeys(pdb_ids))
        log_info("pdb_info_batch", f"Retrieving PDB info for {len(ids)} ids", stage="fetch",
                 ids=len(ids), workers=self.max_workers)

        if self.max_workers == 1 or len(ids) < 2:
            return {pdb_id: self._get_info_or_none(pdb_id) for pdb_id in ids}

        # each task runs in its own copy of the caller's context so log lines keep the traceId
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(ids))) as pool:
            futures = {
                pdb_id: pool.submit(contextvars.copy_context().run, self._get_info_or_none, pdb_id)
                for pdb_id in ids
            }
            return {pdb_id: future.result() for pdb_id, future in futures.items()}
