"""
API dependencies for FastAPI routes.
"""
from fastapi import Request

from ..services.container import ServiceContainer
from ..services.generation import GenerationService
from ..services.ingestion import IngestionService
from ..services.ingestion_queue import IngestionQueue
from ..services.query_cache import QueryCache
from ..services.retrieval import RetrievalService
from ..services.status_tracker import StatusTracker


def get_container(request: Request) -> ServiceContainer:
    """Services built at startup and kept on the application state."""
    return request.app.state.services


def get_ingestion_service(request: Request) -> IngestionService:
    return get_container(request).ingestion


def get_ingestion_queue(request: Request) -> IngestionQueue:
    return get_container(request).ingestion_queue


def get_generation_service(request: Request) -> GenerationService:
    return get_container(request).generation


def get_retrieval_service(request: Request) -> RetrievalService:
    return get_container(request).retrieval


def get_query_cache(request: Request) -> QueryCache:
    return get_container(request).cache


def get_status_tracker(request: Request) -> StatusTracker:
    return get_container(request).status_tracker
