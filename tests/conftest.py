"""
Shared fixtures. Environment is set before any app module reads settings.
"""
import os
import tempfile

_workdir = tempfile.mkdtemp(prefix="rag-tests-")
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_workdir, "metadata.db")
os.environ["UPLOAD_DIR"] = os.path.join(_workdir, "uploads")
os.environ["CHROMA_PERSIST_DIRECTORY"] = os.path.join(_workdir, "chroma")
os.environ["ERROR_LOG_DIR"] = os.path.join(_workdir, "logs")
os.environ["ERROR_LOGGING"] = "0"
os.environ["INGESTION_WORKERS"] = "1"

import pytest
from unittest.mock import AsyncMock, MagicMock
from langchain_core.embeddings import DeterministicFakeEmbedding
from langchain_core.vectorstores import InMemoryVectorStore

from app.core.database import Base, SessionLocal, engine, create_tables
from app.services.document_processor import DocumentProcessor
from app.services.file_storage import FileStorage
from app.services.ingestion import IngestionService
from app.services.status_tracker import StatusTracker
from app.services.vector_store import VectorStoreService


@pytest.fixture
def session_factory():
    """Fresh schema for every test."""
    Base.metadata.drop_all(bind=engine)
    create_tables(engine)
    yield SessionLocal
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def vector_store():
    """A real LangChain vector store backed by deterministic fake embeddings."""
    return VectorStoreService(InMemoryVectorStore(DeterministicFakeEmbedding(size=32)), "test")


@pytest.fixture
def status_tracker():
    return StatusTracker(max_events=100, subscriber_queue_size=100)


@pytest.fixture
def file_storage(tmp_path):
    return FileStorage(str(tmp_path / "uploads"))


@pytest.fixture
def ingestion_service(session_factory, vector_store, file_storage, status_tracker):
    return IngestionService(
        session_factory=session_factory,
        processor=DocumentProcessor(chunk_size=1000, chunk_overlap=200),
        vector_store=vector_store,
        file_storage=file_storage,
        status_tracker=status_tracker,
        max_file_size=10 * 1024 * 1024,
    )


@pytest.fixture
def mock_llm_service():
    llm = MagicMock()
    llm.model_name = "test-model"
    llm.generate = AsyncMock(return_value="Retrieval augments generation [Source: notes.txt]")
    llm.health_check = AsyncMock(return_value=True)
    return llm


@pytest.fixture
def notes_text():
    """About 2,500 characters of repeated sentences."""
    sentence = "Retrieval augmented generation grounds answers in documents. "
    return (sentence * 41)[:2500]
