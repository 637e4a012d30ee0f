"""
Memora Server

FastAPI server exposing each recall step and moment ingestion.
Authentication happens upstream; the owner arrives in the X-User-Id header.

Endpoints:
- POST /plan: Question -> QueryPlan
- POST /query: Question (+ optional plan) -> retrieval result
- POST /evidence: Artifacts -> signed evidence items
- POST /answer: Retrieved facts -> grounded answer
- POST /ask: Question -> grounded answer (all steps)
- POST /moments: Store a moment
- POST /moments/{moment_id}/files: Attach already-uploaded files to a moment
- GET /health: Health check
"""

import base64
import binascii
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Header
from pydantic import BaseModel, ConfigDict, Field

from .common.config import load_config, ensure_directories, MemoraConfig
from .common.errors import RetrievalError, RetrievalUnavailableError, UpdateConflictError
from .ingest import MomentWriter, FileIngestor, UploadedFile
from .retriever import RecallPipeline, QueryPlan, EvidenceItem

logger = logging.getLogger("memora.server")

# Global state
config: Optional[MemoraConfig] = None
pipeline: Optional[RecallPipeline] = None
moment_writer: Optional[MomentWriter] = None
file_ingestor: Optional[FileIngestor] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, pipeline, moment_writer, file_ingestor

    ensure_directories()
    load_dotenv()
    config = load_config()
    pipeline = RecallPipeline.from_config(config)

    store = pipeline.searcher.store
    embedding = pipeline.searcher.embedding_service
    moment_writer = MomentWriter(store, embedding, embedding_timeout=config.embedding.timeout_seconds)
    file_ingestor = FileIngestor(store, embedding, embedding_timeout=config.embedding.timeout_seconds)

    logger.info(
        "Memora ready (es=%s, llm=%s, embedding=%s)",
        config.elasticsearch.host, config.llm.provider, config.embedding.mode,
    )

    yield

    logger.info("Shutting down")
    await pipeline.aclose()


app = FastAPI(
    title="Memora",
    description="Grounded answers about your own history",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Request Models
# =============================================================================

class QuestionRequest(BaseModel):
    text: str


class QueryRequest(BaseModel):
    text: str
    plan: Optional[Dict[str, Any]] = None


class EvidenceRequest(BaseModel):
    artifacts: List[Dict[str, Any]] = Field(default_factory=list)
    highlights: List[str] = Field(default_factory=list)


class AnswerRequest(BaseModel):
    query: str
    hit: Optional[Dict[str, Any]] = None
    highlights: List[str] = Field(default_factory=list)
    evidence: List[Dict[str, Any]] = Field(default_factory=list)
    file_content: Optional[Dict[str, Any]] = None


class FileUpload(BaseModel):
    """
    A file already in object storage.

    ``content_base64`` carries the file bytes for extraction; ``text`` is
    content the client already extracted and is used as-is.
    """
    filename: str
    mime_type: str = "application/octet-stream"
    size: int = 0
    gcs_path: str
    thumb_path: Optional[str] = None
    description: Optional[str] = None
    text: Optional[str] = None
    content_base64: Optional[str] = None


class MomentRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    moment_id: Optional[str] = None
    timestamp: Optional[str] = None
    type: str = "note"
    title: Optional[str] = None
    text: Optional[str] = None


# =============================================================================
# Helpers
# =============================================================================

def _require_owner(x_user_id: Optional[str]) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    return x_user_id.strip()


def _require_pipeline() -> RecallPipeline:
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return pipeline


def _decode_content(upload: FileUpload) -> bytes:
    if not upload.content_base64:
        return b""
    try:
        return base64.b64decode(upload.content_base64, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=422, detail=f"content_base64 of {upload.filename} is not valid base64")


def _evidence_item(data: Dict[str, Any]) -> EvidenceItem:
    return EvidenceItem(
        kind=data.get("kind") or "file",
        name=data.get("name") or "file",
        signed_url=data.get("signed_url") or "",
        thumb_url=data.get("thumb_url"),
        mime=data.get("mime"),
        highlight=data.get("highlight"),
    )


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "memora",
        "initialized": pipeline is not None,
        "llm_available": pipeline.composer.is_available if pipeline else False,
    }


@app.post("/plan")
async def plan(request: QuestionRequest):
    outcome = await _require_pipeline().planner.plan_with_outcome(request.text)
    return {"plan": outcome.value.to_dict(), "degraded": outcome.reason}


@app.post("/query")
async def query(request: QueryRequest, x_user_id: Optional[str] = Header(None)):
    owner_id = _require_owner(x_user_id)
    active = _require_pipeline()

    if request.plan is not None:
        query_plan = QueryPlan.from_dict(request.plan)
    else:
        query_plan = await active.planner.plan(request.text)

    try:
        result = await active.searcher.retrieve(owner_id, query_plan, request.text)
    except RetrievalError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return {"plan": query_plan.to_dict(), **result.to_dict()}


@app.post("/evidence")
async def evidence(request: EvidenceRequest, x_user_id: Optional[str] = Header(None)):
    _require_owner(x_user_id)
    items = await _require_pipeline().resolver.resolve(request.artifacts, request.highlights)
    return {"evidence": [item.to_dict() for item in items]}


@app.post("/answer")
async def answer(request: AnswerRequest, x_user_id: Optional[str] = Header(None)):
    _require_owner(x_user_id)
    try:
        grounded = await _require_pipeline().composer.compose(
            request.query,
            request.hit,
            request.highlights,
            [_evidence_item(e) for e in request.evidence],
            file_content=request.file_content,
        )
    except RetrievalUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Question could not be answered: {e}")
    return {"answer": grounded.to_dict()}


@app.post("/ask")
async def ask(request: QuestionRequest, x_user_id: Optional[str] = Header(None)):
    owner_id = _require_owner(x_user_id)
    try:
        grounded = await _require_pipeline().ask(owner_id, request.text)
    except RetrievalUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Question could not be answered: {e}")
    except RetrievalError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"answer": grounded.to_dict()}


@app.post("/moments")
async def create_moment(request: MomentRequest, x_user_id: Optional[str] = Header(None)):
    owner_id = _require_owner(x_user_id)
    if moment_writer is None:
        raise HTTPException(status_code=503, detail="Moment writer not initialized")

    moment = await moment_writer.ingest_moment(owner_id, request.model_dump(exclude_none=True))
    return {"moment_id": moment.moment_id, "timestamp": moment.timestamp, "language": moment.language}


@app.post("/moments/{moment_id}/files")
async def attach_files(moment_id: str, files: List[FileUpload], x_user_id: Optional[str] = Header(None)):
    owner_id = _require_owner(x_user_id)
    if file_ingestor is None:
        raise HTTPException(status_code=503, detail="File ingestor not initialized")

    uploads = [
        UploadedFile(
            filename=f.filename,
            mime_type=f.mime_type,
            size=f.size,
            gcs_path=f.gcs_path,
            data=_decode_content(f),
            thumb_path=f.thumb_path,
            description=f.description,
            text=f.text,
        )
        for f in files
    ]
    try:
        artifacts = await file_ingestor.ingest_files(moment_id, owner_id, uploads)
    except UpdateConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"moment_id": moment_id, "artifacts": [a.model_dump(exclude_none=True) for a in artifacts]}


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the Memora server"""
    import uvicorn

    logging.basicConfig(
        level=os.getenv("MEMORA_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    port = int(os.getenv("MEMORA_PORT", "8000"))

    logger.info("Starting server on port %d", port)
    uvicorn.run(
        "memora.server:app",
        host="0.0.0.0",
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
