# backend/server.py
import os
import uuid
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, Form, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from services.cache import DEFAULT_CACHE_DIR, FileTextCache
from services.logger import log_error, log_info, set_trace_id
from services.pdb_data import MissingParameterError, PdbDataQuery, PdbDataService
from services.pdb_fetcher import StructureInfoFetcher
from services.residue_store import DEFAULT_DB_PATH, PersistenceError, SqliteResidueStore

from dotenv import load_dotenv
# Explicitly point to backend/.env
dotenv_path = os.path.join(os.path.dirname(__file__), ".env")
load_dotenv(dotenv_path)

PDB_DATA_SERVICE = os.getenv("PDB_DATA_SERVICE", "https://files.rcsb.org/header")
PDB_FETCH_TIMEOUT = float(os.getenv("PDB_FETCH_TIMEOUT", "10"))
PDB_FETCH_RETRIES = int(os.getenv("PDB_FETCH_RETRIES", "2"))
PDB_FETCH_WORKERS = int(os.getenv("PDB_FETCH_WORKERS", "4"))
PDB_DB_PATH = os.getenv("PDB_DB_PATH", str(DEFAULT_DB_PATH))
PDB_CACHE_DIR = os.getenv("PDB_CACHE_DIR", str(DEFAULT_CACHE_DIR))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

app = FastAPI(title="PDB Data Service")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.middleware("http")
async def trace_requests(request: Request, call_next):
    trace_id = request.headers.get("X-Trace-Id") or uuid.uuid4().hex[:16]
    set_trace_id(trace_id)
    response = await call_next(request)
    response.headers["X-Trace-Id"] = trace_id
    return response


@lru_cache(maxsize=1)
def get_service() -> PdbDataService:
    """Service wired from environment configuration (built once per process)."""
    store = SqliteResidueStore(PDB_DB_PATH)
    fetcher = StructureInfoFetcher(
        base_url=PDB_DATA_SERVICE,
        cache=FileTextCache(PDB_CACHE_DIR),
        timeout=PDB_FETCH_TIMEOUT,
        retries=PDB_FETCH_RETRIES,
        max_workers=PDB_FETCH_WORKERS,
    )
    log_info("startup", f"PDB data service using {PDB_DATA_SERVICE}", stage="config",
             db_path=PDB_DB_PATH, cache_dir=PDB_CACHE_DIR)
    return PdbDataService(store, fetcher)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    """Database failures, including ones while building the service, answer 503."""
    log_error("persistence_failed", f"PDB data query failed: {exc}", stage="persistence",
              path=request.url.path)
    return JSONResponse(status_code=503, content={"detail": f"Alignment database unavailable: {exc}"})


def answer(service: PdbDataService, query: PdbDataQuery):
    try:
        return service.handle(query)
    except MissingParameterError as e:
        raise HTTPException(status_code=400, detail=str(e))

# ---------- Endpoints ----------

@app.get("/api/health")
def health():
    return {"ok": True}


@app.get("/api/pdb-data")
def pdb_data(
    uniprotId: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    positions: Optional[str] = Query(None),
    alignments: Optional[str] = Query(None),
    pdbIds: Optional[str] = Query(None),
    service: PdbDataService = Depends(get_service),
):
    """
    PDB data for one of three parameter sets:
    {uniprotId} (optionally type=summary), {positions, alignments} or {pdbIds}.
    """
    query = PdbDataQuery.from_params(uniprotId, type, positions, alignments, pdbIds)
    return answer(service, query)


@app.post("/api/pdb-data")
def pdb_data_form(
    uniprotId: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    positions: Optional[str] = Form(None),
    alignments: Optional[str] = Form(None),
    pdbIds: Optional[str] = Form(None),
    service: PdbDataService = Depends(get_service),
):
    """Form-encoded variant of GET /api/pdb-data (long id lists)."""
    query = PdbDataQuery.from_params(uniprotId, type, positions, alignments, pdbIds)
    return answer(service, query)
