"""
Generation pipeline: cache lookup, retrieval, prompting, model call,
citation extraction, cache write and query logging.
"""
import logging
import time
import uuid
from typing import Callable, Optional

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..models.query import QueryLog
from ..schemas.query import Citation, GenerationOptions, GenerationResult
from .llm_service import LLMService
from .prompt_builder import build_system_prompt, build_user_prompt, extract_citations
from .query_cache import QueryCache
from .retrieval import RetrievalService
from .status_tracker import StatusTracker

logger = logging.getLogger(__name__)

RETRIEVAL_ERROR_ANSWER = (
    "I encountered an error while searching the knowledge base. "
    "Please try again or rephrase your question."
)
NO_RESULTS_ANSWER = "I couldn't find any relevant information in the knowledge base to answer your question."
CITATION_PREVIEW_CHARS = 200


class GenerationService:
    """Main service that answers one question end to end."""

    def __init__(
        self,
        cache: QueryCache,
        retrieval: RetrievalService,
        llm_service: LLMService,
        status_tracker: StatusTracker,
        session_factory: Callable[[], Session],
    ):
        self.cache = cache
        self.retrieval = retrieval
        self.llm_service = llm_service
        self.status_tracker = status_tracker
        self.session_factory = session_factory

    async def generate_answer(
        self,
        question: str,
        options: Optional[GenerationOptions] = None,
    ) -> GenerationResult:
        """
        Answer a question from the knowledge base.

        Progress is published on the status tracker under a fresh query id:
        retrieving -> generating -> llm_processing -> completed, or one of
        cached / no_results / error. A failed search yields an apology
        answer; a failed model call raises LLMError.
        """
        options = options or GenerationOptions()
        start_time = time.monotonic()
        query_id = uuid.uuid4().hex
        cache_options = options.cache_options()

        def elapsed_ms() -> int:
            return round((time.monotonic() - start_time) * 1000)

        if options.use_cache:
            cached = self.cache.get(question, cache_options)
            if cached is not None:
                logger.info(f"Returning cached answer for query: {question[:50]}")
                self._emit(query_id, "cached", "Returning cached result", 100)
                # the stored answer, stamped with this request's id and timing
                return cached.model_copy(update={"metadata": {
                    **cached.metadata,
                    "query_id": query_id,
                    "response_time": elapsed_ms(),
                    "cached": True,
                }})

        logger.info(f"Generating answer (top_k={options.top_k}, temperature={options.temperature}): {question[:50]}")
        self._emit(query_id, "retrieving", "Searching knowledge base", 20)

        try:
            outcome = await self.retrieval.retrieve(
                question,
                top_k=options.top_k,
                filter=options.filter,
                min_score=options.min_score,
            )
        except Exception as e:
            logger.error(f"Document retrieval failed: {str(e)}")
            self._emit(query_id, "error", "Retrieval failed", 0)
            return GenerationResult(
                answer=RETRIEVAL_ERROR_ANSWER,
                metadata={"response_time": elapsed_ms(), "query_id": query_id},
            )

        results = outcome.results
        if not results:
            logger.warning(f"No documents retrieved for query: {question[:50]}")
            self._emit(query_id, "no_results", "No relevant documents found", 0)
            return GenerationResult(
                answer=NO_RESULTS_ANSWER,
                metadata={
                    "response_time": elapsed_ms(),
                    "query_id": query_id,
                    "filter_fallback": outcome.filter_fallback,
                },
            )

        self._emit(query_id, "generating", f"Generating answer from {len(results)} relevant chunks", 50)

        system_prompt = build_system_prompt()
        user_prompt = build_user_prompt(results, question)

        self._emit(query_id, "llm_processing", "LLM is generating answer", 70)
        try:
            answer = await self.llm_service.generate(
                system_prompt,
                user_prompt,
                temperature=options.temperature,
                max_tokens=options.max_tokens,
            )
        except Exception as e:
            logger.error(f"Failed to generate answer: {str(e)}")
            self._emit(query_id, "error", "Answer generation failed", 0)
            raise

        citations = [
            Citation(
                source=r.source,
                page=r.page,
                chunk_index=r.metadata["chunk_index"],
                content=r.content[:CITATION_PREVIEW_CHARS],
            )
            for r in results
        ]
        sources = list(dict.fromkeys(r.source for r in results))
        response_time = elapsed_ms()

        result = GenerationResult(
            answer=answer,
            citations=citations,
            sources=sources,
            metadata={
                "model": self.llm_service.model_name,
                "response_time": response_time,
                "query_id": query_id,
                "filter_fallback": outcome.filter_fallback,
                "cited_sources": extract_citations(answer),
            },
        )

        logger.info(
            f"Answer generated in {response_time}ms "
            f"({len(answer)} chars, {len(citations)} citations)"
        )
        self._emit(
            query_id,
            "completed",
            "Answer generated successfully",
            100,
            data={"response_time": response_time, "citations_count": len(citations)},
        )

        if options.use_cache:
            self.cache.set(question, result, cache_options)

        await self._log_query(question, response_time)
        return result

    def _emit(self, query_id: str, status: str, message: str, progress: int, data=None) -> None:
        self.status_tracker.emit("query", query_id, status, message=message, progress=progress, data=data)

    async def _log_query(self, question: str, response_time: int) -> None:
        """Store the query for analytics; never fails the request."""
        def write():
            with self.session_factory() as db:
                db.add(QueryLog(query_text=question, response_time_ms=response_time))
                db.commit()

        try:
            await run_in_threadpool(write)
        except Exception as e:
            logger.warning(f"Failed to store query in database: {str(e)}")
