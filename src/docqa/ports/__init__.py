from .context_builder import ContextBuilder
from .document_repository import DocumentRepository
from .embedder import EmbeddingProvider
from .generator import GenerationProvider
from .logger import QueryLogger
from .retriever import Retriever
from .vector_store import VectorIndex

__all__ = [
    "ContextBuilder",
    "DocumentRepository",
    "EmbeddingProvider",
    "GenerationProvider",
    "QueryLogger",
    "Retriever",
    "VectorIndex",
]
