"""Kintree - Genealogical Relationship Engine Backend.

FastAPI server exposing family tree traversal, kinship computation and
duplicate person detection over a record store.
"""

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import Any

import config

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("kintree")

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from duplicate_detection import describe_match_reasons, get_confidence_level, score_candidate
from duplicate_queue import (
    InMemoryDuplicateQueueStore,
    QueueFilters,
    build_relative_index,
    count_shared_relatives,
    list_duplicate_queue,
    run_duplicate_scan,
)
from errors import NotFoundError, RecordStoreError, ScoringSkipped
from kinship import describe_relationship_path, resolve_kinship
from kinship_labels import generate_label
from models import DuplicateStatus, Gender, RelationshipQualifiers, ScanOptions, TreeMode
from record_store import InMemoryRecordStore, RestRecordStore
from relationship_path import DEFAULT_PATH_DEPTH, load_relationship_path
from tree_traversal import load_relationships_by_depth, query_tree

# Global state
record_store: InMemoryRecordStore | RestRecordStore = InMemoryRecordStore()
queue_store = InMemoryDuplicateQueueStore()


def create_record_store() -> InMemoryRecordStore | RestRecordStore:
    """Record store selected by configuration: REST API, JSON snapshot, or empty."""
    if config.RECORD_STORE_URL:
        logger.info(f"Using REST record store at {config.RECORD_STORE_URL}")
        return RestRecordStore(
            config.RECORD_STORE_URL,
            api_key=config.RECORD_STORE_API_KEY,
            timeout=config.RECORD_STORE_TIMEOUT,
        )
    if config.SNAPSHOT_PATH:
        return InMemoryRecordStore.from_file(config.SNAPSHOT_PATH)
    logger.info("No record store configured; starting with an empty in-memory store")
    return InMemoryRecordStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - open and close the record store."""
    global record_store

    record_store = create_record_store()
    logger.info("✓ Record store ready")

    yield

    if isinstance(record_store, RestRecordStore):
        logger.info("Closing REST record store client...")
        record_store.close()


# Create FastAPI app
app = FastAPI(
    title="Kintree",
    description="Genealogical relationship engine: trees, kinship labels and duplicate detection",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response models
class SnapshotRequest(BaseModel):
    """Record snapshot to load into the in-memory store."""
    persons: list[dict[str, Any]] = []
    declarations: list[dict[str, Any]] = []


class KinshipComputeRequest(BaseModel):
    """Two-hop kinship request: how the intermediate relates to me, and the new person to them."""
    intermediate: str
    new: str
    gender: Gender | None = None


class LabelRequest(BaseModel):
    """Label generation request."""
    code: str
    gender: Gender = "unknown"
    qualifiers: RelationshipQualifiers | None = None
    locale: str = "ru"


class PathRequest(BaseModel):
    """A chain of direct relations, starting from me."""
    hops: list[str] = Field(min_length=1)
    gender: Gender | None = None


class CompareRequest(BaseModel):
    """Score a single pair of person records."""
    profile_a_id: str
    profile_b_id: str
    include_relationship_matching: bool = True
    locale: str = "en"


# Endpoints

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    logger.debug("Health check requested")
    return {
        "status": "healthy",
        "record_store": type(record_store).__name__,
    }


@app.post("/snapshot")
async def load_snapshot(request: SnapshotRequest):
    """Replace the in-memory store contents with a record snapshot."""
    if not isinstance(record_store, InMemoryRecordStore):
        raise HTTPException(status_code=400, detail="Snapshots can only be loaded into the in-memory record store")
    try:
        persons, declarations = record_store.load_snapshot(request.model_dump())
    except RecordStoreError as e:
        logger.warning(f"Rejected snapshot: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    return {"persons": persons, "declarations": declarations}


@app.get("/tree/{proband_id}")
async def get_tree(
    proband_id: str,
    mode: TreeMode = Query(default="hourglass"),
    depth: int = Query(default=3),
):
    """Bounded ancestor / descendant / hourglass subgraph around a person."""
    logger.info(f"Tree requested for {proband_id} (mode={mode}, depth={depth})")
    try:
        return await asyncio.to_thread(query_tree, record_store, proband_id, mode, depth)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RecordStoreError as e:
        logger.error(f"Record store failure building tree for {proband_id}: {e}")
        raise HTTPException(status_code=503, detail=str(e))


@app.get("/relationships-depth/{proband_id}")
async def get_relationships_by_depth(proband_id: str):
    """Parents, grandparents, children, grandchildren, siblings and spouses of a person."""
    logger.info(f"Depth classification requested for {proband_id}")
    try:
        return await asyncio.to_thread(load_relationships_by_depth, record_store, proband_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RecordStoreError as e:
        logger.error(f"Record store failure classifying {proband_id}: {e}")
        raise HTTPException(status_code=503, detail=str(e))


@app.get("/relationship-path")
async def get_relationship_path(
    person1: str,
    person2: str,
    locale: str = Query(default="en"),
    max_depth: int = Query(default=DEFAULT_PATH_DEPTH, ge=1),
):
    """Shortest chain of direct relations from person1 to person2 and what it makes them."""
    logger.info(f"Relationship path requested: {person1} -> {person2} (max_depth={max_depth})")
    try:
        return await asyncio.to_thread(
            load_relationship_path, record_store, person1, person2, locale, max_depth
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RecordStoreError as e:
        logger.error(f"Record store failure finding path {person1} -> {person2}: {e}")
        raise HTTPException(status_code=503, detail=str(e))


@app.post("/kinship/compute")
async def compute_kinship(request: KinshipComputeRequest):
    """Resolve a two-hop relationship with English and Russian labels."""
    return resolve_kinship(request.intermediate, request.new, request.gender)


@app.post("/kinship/label")
async def kinship_label(request: LabelRequest):
    """Localized label for a relationship code."""
    return {"label": generate_label(request.code, request.gender, request.qualifiers, request.locale)}


@app.post("/kinship/path")
async def kinship_path(request: PathRequest):
    """Describe the relationship at the end of a chain of direct relations."""
    return describe_relationship_path(request.hops, request.gender)


@app.post("/duplicates/scan")
async def scan_duplicates(options: ScanOptions | None = None):
    """Scan person records for duplicates and queue the candidates."""
    options = options or ScanOptions()
    cancel_event = threading.Event()
    try:
        result = await asyncio.to_thread(
            run_duplicate_scan,
            record_store,
            queue_store,
            options,
            cancel_event,
            config.SCAN_TIMEOUT_SECONDS,
        )
    except asyncio.CancelledError:
        # Client went away; let the worker thread wind down
        cancel_event.set()
        raise
    except RecordStoreError as e:
        logger.error(f"Record store failure during duplicate scan: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    return result.model_dump(by_alias=True)


@app.get("/duplicates/queue")
async def get_duplicate_queue(
    status: DuplicateStatus | None = Query(default=None),
    min_confidence: int = Query(default=0, ge=0, le=100),
    max_confidence: int = Query(default=100, ge=0, le=100),
    deceased_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    sort_by: str = Query(default="confidence", pattern="^(confidence|created_at|shared_relatives)$"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
):
    """One page of the duplicate review queue."""
    filters = QueueFilters(
        status=status,
        min_confidence=min_confidence,
        max_confidence=max_confidence,
        deceased_only=deceased_only,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    try:
        return await asyncio.to_thread(list_duplicate_queue, queue_store, filters, record_store)
    except RecordStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))


@app.post("/duplicates/compare")
async def compare_duplicates(request: CompareRequest):
    """Score one pair of person records without queueing it."""
    try:
        profile_a = record_store.get_person(request.profile_a_id)
        profile_b = record_store.get_person(request.profile_b_id)
        if profile_a is None:
            raise NotFoundError(request.profile_a_id)
        if profile_b is None:
            raise NotFoundError(request.profile_b_id)

        shared = 0
        if request.include_relationship_matching:
            index = build_relative_index(record_store.list_relationship_declarations())
            shared = count_shared_relatives(index, profile_a.id, profile_b.id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RecordStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))

    try:
        candidate = score_candidate(profile_a, profile_b, shared)
    except ScoringSkipped as e:
        raise HTTPException(status_code=422, detail=str(e))

    return {
        **candidate.model_dump(),
        "confidence_level": get_confidence_level(candidate.confidence_score),
        "descriptions": describe_match_reasons(candidate.match_reasons, request.locale),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
