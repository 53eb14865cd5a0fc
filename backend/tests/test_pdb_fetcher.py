"""
Test PDB header fetching, caching and per-id failure isolation.
"""
import httpx
import pytest

from schemas.pdb_data import StructureInfo
from services.pdb_fetcher import (
    StructureFetchError,
    StructureInfoFetcher,
    StructureParseError,
    cache_key,
)
from services.logger import get_trace_id, set_trace_id
from conftest import BASE_URL, HEADER_1TUP, HeaderService


def make_fetcher(cache, handler, **kwargs):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    kwargs.setdefault("backoff", 0)
    return StructureInfoFetcher(BASE_URL, cache, client=client, **kwargs)


def test_build_url_uppercases_id():
    fetcher = StructureInfoFetcher(BASE_URL + "/", cache=None)

    assert fetcher.build_url("1tup") == f"{BASE_URL}/1TUP.pdb?headerOnly=YES"


def test_fetch_header_keeps_only_header_records(fetcher, header_service):
    raw = fetcher.fetch_header("1tup")

    request = header_service.requests[0]
    assert request.url.path == "/header/1TUP.pdb"
    assert request.url.params["headerOnly"] == "YES"

    records = {line.split()[0] for line in raw.splitlines()}
    assert records == {"TITLE", "COMPND", "SOURCE"}
    assert len(raw.splitlines()) == 19


def test_get_info_parses_header(fetcher):
    info = fetcher.get_info("1tup")

    assert info.title == "TUMOR SUPPRESSOR P53 COMPLEXED WITH DNA: CRYSTAL STRUCTURE AT 2-ANGSTROM RESOLUTION"
    assert info.compound["2"]["chain"] == ["A", "B", "C"]
    assert info.source["2"]["organism_common"] == "HUMAN"


def test_get_info_writes_and_reads_cache(fetcher, cache, header_service):
    fresh = fetcher.get_info("1tup")

    cached_text = cache.get_text(cache_key("1tup"))
    assert cached_text is not None

    cached = fetcher.get_info("1tup")
    assert len(header_service.requests) == 1
    assert cached == fresh
    assert StructureInfo.model_validate_json(cached_text).model_dump() == fresh.model_dump()


def test_cache_hit_skips_remote(cache):
    info = StructureInfo(title="CACHED", compound={"1": {"mol_id": "1", "chain": ["A"]}})
    cache.put_text(cache_key("9xyz"), info.model_dump_json())

    def handler(request):
        raise AssertionError("remote service should not be called")

    assert make_fetcher(cache, handler).get_info("9xyz") == info


def test_corrupt_cache_entry_is_parse_error(cache, fetcher):
    cache.put_text(cache_key("1tup"), "{not json")

    with pytest.raises(StructureParseError):
        fetcher.get_info("1tup")


def test_not_found_is_not_retried(fetcher, header_service):
    with pytest.raises(StructureFetchError):
        fetcher.fetch_header("0000")

    assert len(header_service.requests) == 1


def test_transport_error_retried_then_succeeds(cache):
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, text=HEADER_1TUP)

    info = make_fetcher(cache, handler, retries=2).get_info("1tup")

    assert len(calls) == 2
    assert info.compound["1"]["molecule"] == "DNA 21-MER"


def test_server_errors_exhaust_retries(cache):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, text="busy")

    with pytest.raises(StructureFetchError):
        make_fetcher(cache, handler, retries=2).fetch_header("1tup")

    assert len(calls) == 3


def test_cache_write_failure_still_returns_info(header_service):
    class ReadOnlyCache:
        def get_text(self, key):
            return None

        def put_text(self, key, text):
            raise OSError("read-only file system")

    info = make_fetcher(ReadOnlyCache(), header_service).get_info("1tup")

    assert info.source["2"]["gene"] == ["TP53", "P53"]


@pytest.mark.parametrize("workers", [1, 3])
def test_get_info_batch_isolates_failures(cache, workers):
    service = HeaderService({"1TUP": HEADER_1TUP, "2OCJ": "TITLE     SECOND STRUCTURE\n"})
    fetcher = make_fetcher(cache, service, retries=0, max_workers=workers)

    result = fetcher.get_info_batch(["1tup", "0bad", "2ocj"])

    assert set(result) == {"1tup", "0bad", "2ocj"}
    assert result["0bad"] is None
    assert result["2ocj"].title == "SECOND STRUCTURE"
    assert result["2ocj"].compound == {}
    assert result["1tup"].compound["2"]["fragment"] == "CORE DOMAIN"


def test_get_info_batch_corrupt_cache_is_none(cache, fetcher):
    cache.put_text(cache_key("1tup"), "[]")

    assert fetcher.get_info_batch(["1tup"]) == {"1tup": None}


@pytest.mark.parametrize("workers", [1, 3])
def test_get_info_batch_invalid_id_is_none(cache, header_service, workers):
    fetcher = make_fetcher(cache, header_service, retries=0, max_workers=workers)

    result = fetcher.get_info_batch(["1tup", "bad\x01id"])

    assert result["bad\x01id"] is None
    assert result["1tup"].title.startswith("TUMOR SUPPRESSOR P53")


def test_invalid_id_is_fetch_error(fetcher):
    with pytest.raises(StructureFetchError):
        fetcher.fetch_header("bad\x01id")


def test_get_info_batch_keeps_trace_id_in_workers(cache):
    seen = []

    def handler(request):
        seen.append(get_trace_id())
        return httpx.Response(200, text=HEADER_1TUP)

    fetcher = make_fetcher(cache, handler, max_workers=3)
    set_trace_id("batch-trace")
    try:
        fetcher.get_info_batch(["1tup", "2ocj", "3kmd"])
    finally:
        set_trace_id(None)

    assert seen == ["batch-trace"] * 3
