"""
HTTP adapter over the document store and the QA pipeline.

Run:
    docqa serve
or:
    uvicorn docqa.app.api:create_app --factory
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from docqa.app.container import Container, build_container
from docqa.app.pipeline import answer_query
from docqa.domain.errors import (
    DeadlineExceeded,
    DocQAError,
    IndexUnavailable,
    InvalidInput,
    NotFound,
    ProviderRejected,
    ProviderUnavailable,
)
from docqa.domain.models import Document, Query, RetrievedMatch
from docqa.settings import load_settings

logger = logging.getLogger(__name__)


# =============================================================================
# SCHEMAS
# =============================================================================

class DocumentCreate(BaseModel):
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DocumentUpdate(BaseModel):
    content: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class DocumentOut(BaseModel):
    id: str
    content: str
    metadata: Dict[str, Any]
    created_at: datetime
    updated_at: datetime


class DocumentPage(BaseModel):
    items: List[DocumentOut]
    next_cursor: Optional[str] = None


class SearchRequest(BaseModel):
    question: str
    filters: Optional[Dict[str, Any]] = None
    top_k: Optional[int] = None
    min_score: Optional[float] = None


class MatchOut(BaseModel):
    document_id: str
    content: str
    metadata: Dict[str, Any]
    score: float


class AnswerOut(BaseModel):
    text: str
    sources: List[str]
    insufficient_context: bool


class SearchResponse(BaseModel):
    answer: AnswerOut
    matches: List[MatchOut]


def _document_out(doc: Document) -> DocumentOut:
    return DocumentOut(
        id=doc.id,
        content=doc.content,
        metadata=dict(doc.metadata),
        created_at=doc.created_at,
        updated_at=doc.updated_at,
    )


def _match_out(match: RetrievedMatch) -> MatchOut:
    return MatchOut(
        document_id=match.document_id,
        content=match.content,
        metadata=dict(match.metadata),
        score=match.score,
    )


# =============================================================================
# ERRORS
# =============================================================================

_STATUS_BY_ERROR: list[tuple[type[DocQAError], int]] = [
    (InvalidInput, 400),
    (NotFound, 404),
    (ProviderRejected, 502),
    (DeadlineExceeded, 504),
    (ProviderUnavailable, 503),
    (IndexUnavailable, 503),
]


def status_for(exc: DocQAError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def _error_body(kind: str, message: str) -> Dict[str, Any]:
    return {"error": {"type": kind, "message": message}}


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DocQAError)
    async def _docqa_error(request: Request, exc: DocQAError) -> JSONResponse:
        status = status_for(exc)
        log = logger.warning if status < 500 else logger.error
        log("%s %s -> %d %s: %s", request.method, request.url.path, status, type(exc).__name__, exc)
        return JSONResponse(status_code=status, content=_error_body(type(exc).__name__, str(exc)))

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content=_error_body("InvalidInput", str(exc.errors())))

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("%s %s -> 500", request.method, request.url.path)
        return JSONResponse(status_code=500, content=_error_body("InternalError", "internal server error"))


# =============================================================================
# ROUTES
# =============================================================================

def build_router(container: Container) -> APIRouter:
    router = APIRouter()
    store = container.documents

    @router.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @router.post("/documents", response_model=DocumentOut, status_code=201)
    def create_document(body: DocumentCreate) -> DocumentOut:
        doc = store.create(body.content, body.metadata, deadline=container.deadline())
        return _document_out(doc)

    @router.get("/documents", response_model=DocumentPage)
    def list_documents(cursor: Optional[str] = None, limit: Optional[int] = None) -> DocumentPage:
        page = store.list(cursor=cursor, limit=limit)
        return DocumentPage(items=[_document_out(d) for d in page.items], next_cursor=page.next_cursor)

    @router.get("/documents/{doc_id}", response_model=DocumentOut)
    def get_document(doc_id: str) -> DocumentOut:
        return _document_out(store.get(doc_id))

    @router.put("/documents/{doc_id}", response_model=DocumentOut)
    def update_document(doc_id: str, body: DocumentUpdate) -> DocumentOut:
        if body.content is None and body.metadata is None:
            raise InvalidInput("update needs content and/or metadata")
        doc = store.update(doc_id, content=body.content, metadata=body.metadata, deadline=container.deadline())
        return _document_out(doc)

    @router.delete("/documents/{doc_id}")
    def delete_document(doc_id: str) -> Dict[str, str]:
        store.delete(doc_id)
        return {"deleted": doc_id}

    @router.post("/search", response_model=SearchResponse)
    def search(body: SearchRequest) -> SearchResponse:
        query = Query(
            text=body.question,
            filters=body.filters,
            top_k=body.top_k,
            min_score=body.min_score,
        )
        result = answer_query(
            query,
            retriever=container.retriever,
            synthesizer=container.synthesizer,
            tracer=container.tracer,
            deadline=container.deadline(),
        )
        return SearchResponse(
            answer=AnswerOut(
                text=result.answer.text,
                sources=list(result.answer.sources),
                insufficient_context=result.answer.insufficient_context,
            ),
            matches=[_match_out(m) for m in result.matches],
        )

    return router


def create_app(container: Optional[Container] = None) -> FastAPI:
    if container is None:
        container = build_container(load_settings())

    app = FastAPI(
        title="docqa",
        version="0.1.0",
        description="Store documents, search them by meaning, get cited answers",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
    )
    _install_error_handlers(app)
    app.include_router(build_router(container))
    app.state.container = container
    return app
