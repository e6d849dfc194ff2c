"""
Test cases for prompt rendering and citation extraction
"""
from app.schemas.query import RetrievalResult
from app.services.prompt_builder import (
    build_system_prompt,
    build_user_prompt,
    extract_citations,
)


def result(content, source="notes.txt", page=None, index=0):
    metadata = {"source": source, "chunk_index": index, "document_id": "doc-1"}
    if page is not None:
        metadata["page"] = page
    return RetrievalResult(content=content, score=1.0, metadata=metadata)


class TestPromptBuilder:
    def test_system_prompt_states_citation_format(self):
        prompt = build_system_prompt()
        assert "[Source: {filename}, Page: {page}]" in prompt
        assert "doesn't contain enough information" in prompt

    def test_system_prompt_is_deterministic(self):
        assert build_system_prompt() == build_system_prompt()

    def test_user_prompt_enumerates_chunks_with_sources(self):
        prompt = build_user_prompt(
            [result("First chunk.", page=3), result("Second chunk.", source="guide.md", index=1)],
            "What is in the docs?",
        )

        assert prompt == (
            "Context:\n\n"
            "[1] First chunk.\n[Source: notes.txt, Page: 3]\n\n"
            "[2] Second chunk.\n[Source: guide.md]\n\n"
            "Question: What is in the docs?\n\n"
            "Answer:"
        )

    def test_user_prompt_keeps_page_zero(self):
        prompt = build_user_prompt([result("Cover.", page=0)], "q")
        assert "[Source: notes.txt, Page: 0]" in prompt


class TestExtractCitations:
    def test_extracts_in_order_of_appearance(self):
        answer = (
            "RAG retrieves first [Source: paper.pdf, Page: 4]. "
            "Then it generates [Source: notes.txt]."
        )
        assert extract_citations(answer) == [
            {"source": "paper.pdf", "page": 4},
            {"source": "notes.txt"},
        ]

    def test_repeated_citations_are_all_returned(self):
        answer = "[Source: a.txt] and again [Source: a.txt]"
        assert extract_citations(answer) == [{"source": "a.txt"}, {"source": "a.txt"}]

    def test_no_citations(self):
        assert extract_citations("Plain answer without sources.") == []

    def test_malformed_citations_are_skipped(self):
        answer = "[Source: ] [Sources: x.txt] [Source: ok.md, Page: 2]"
        assert extract_citations(answer) == [{"source": "ok.md", "page": 2}]

    def test_non_numeric_page_is_not_a_page(self):
        assert extract_citations("[Source: a.txt, Page: two]") == []
