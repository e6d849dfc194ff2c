"""
Prompt rendering and citation extraction for the generation pipeline.
"""
import re
from typing import Any, Dict, List

from ..schemas.query import RetrievalResult

SYSTEM_PROMPT = """You are a helpful assistant that answers questions based on provided context documents.
Answer only from the provided context.
Always cite your sources using the format: [Source: {filename}, Page: {page}]
Omit the Page part when the context gives no page for a source.
If the context doesn't contain enough information to answer the question, say so clearly.
Be concise and accurate."""

CITATION_PATTERN = re.compile(r"\[Source:\s*([^,\]\s][^,\]]*?)\s*(?:,\s*Page:\s*(\d+))?\]")


def build_system_prompt() -> str:
    return SYSTEM_PROMPT


def format_source(source: str, page=None) -> str:
    if page is not None:
        return f"[Source: {source}, Page: {page}]"
    return f"[Source: {source}]"


def build_user_prompt(context_chunks: List[RetrievalResult], question: str) -> str:
    """Number each chunk, tag it with its source line, then ask the question."""
    prompt = "Context:\n\n"
    for index, result in enumerate(context_chunks, start=1):
        prompt += f"[{index}] {result.content}\n"
        prompt += format_source(result.source or "unknown", result.page) + "\n\n"

    prompt += f"Question: {question}\n\n"
    prompt += "Answer:"
    return prompt


def extract_citations(answer: str) -> List[Dict[str, Any]]:
    """Citations written by the model, in order of appearance."""
    citations = []
    for match in CITATION_PATTERN.finditer(answer):
        citation: Dict[str, Any] = {"source": match.group(1).strip()}
        if match.group(2):
            citation["page"] = int(match.group(2))
        citations.append(citation)
    return citations
