"""
Document processing service: text extraction by file type and chunking.
"""
import uuid
import logging
from typing import List, Dict, Any, Callable
from pathlib import Path

# Document processing imports
import PyPDF2
from markdown_it import MarkdownIt

# LangChain imports
from langchain_text_splitters import RecursiveCharacterTextSplitter

from ..core.exceptions import FileProcessingError
from ..schemas.document import ParsedDocument, DocumentChunk

logger = logging.getLogger(__name__)

SEPARATORS = ["\n\n", "\n", ". ", " ", ""]


class DocumentProcessor:
    """Service for turning uploaded files into chunks."""

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200):
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

        # Paragraph, then line, then sentence, then word, then hard cut
        self.text_splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            length_function=len,
            separators=SEPARATORS,
        )
        self.markdown_parser = MarkdownIt()

        self.parsers: Dict[str, Callable[[str, str, str], ParsedDocument]] = {
            ".pdf": self.parse_pdf,
            ".md": self.parse_markdown,
            ".markdown": self.parse_markdown,
            ".txt": self.parse_text,
        }

    def parse_pdf(self, file_path: str, filename: str, document_id: str) -> ParsedDocument:
        """Extract text content from PDF file, page by page."""
        try:
            with open(file_path, 'rb') as file:
                pdf_reader = PyPDF2.PdfReader(file)
                pages = [(page.extract_text() or "") for page in pdf_reader.pages]
                info = dict(pdf_reader.metadata or {})
        except Exception as e:
            logger.error(f"Error extracting text from PDF {file_path}: {str(e)}")
            raise FileProcessingError(f"Failed to parse PDF: {str(e)}") from e

        logger.info(f"PDF parsed: {filename} ({len(pages)} pages)")
        return ParsedDocument(
            id=document_id,
            filename=filename,
            content="\n".join(pages).strip(),
            pages=pages,
            metadata={
                "file_type": "pdf",
                "page_count": len(pages),
                "info": {str(k).lstrip("/"): str(v) for k, v in info.items()},
            },
        )

    def parse_markdown(self, file_path: str, filename: str, document_id: str) -> ParsedDocument:
        """Read a Markdown file and collect its headings."""
        content = self._read_text(file_path, "Markdown")

        headings = []
        tokens = self.markdown_parser.parse(content)
        for i, token in enumerate(tokens):
            if token.type == "heading_open" and i + 1 < len(tokens):
                headings.append(tokens[i + 1].content)

        logger.info(f"Markdown parsed: {filename} ({len(headings)} headings)")
        return ParsedDocument(
            id=document_id,
            filename=filename,
            content=content,
            metadata={"file_type": "markdown", "headings": headings},
        )

    def parse_text(self, file_path: str, filename: str, document_id: str) -> ParsedDocument:
        """Read a plain text file."""
        content = self._read_text(file_path, "text")
        logger.info(f"Text file parsed: {filename}")
        return ParsedDocument(
            id=document_id,
            filename=filename,
            content=content,
            metadata={"file_type": "text"},
        )

    def _read_text(self, file_path: str, kind: str) -> str:
        try:
            with open(file_path, 'r', encoding='utf-8') as file:
                return file.read().strip()
        except UnicodeDecodeError:
            # Try with different encoding
            with open(file_path, 'r', encoding='latin-1') as file:
                return file.read().strip()
        except OSError as e:
            logger.error(f"Error reading {kind} file {file_path}: {str(e)}")
            raise FileProcessingError(f"Failed to parse {kind} file: {str(e)}") from e

    def parse_document(self, file_path: str, filename: str, document_id: str) -> ParsedDocument:
        """
        Extract text from a file, choosing the parser by extension.

        Raises:
            FileProcessingError: unsupported extension or unreadable file
        """
        extension = Path(filename).suffix.lower()
        parser = self.parsers.get(extension)
        if not parser:
            raise FileProcessingError(f"Unsupported file type: {extension or filename}")
        return parser(file_path, filename, document_id)

    def chunk_document(self, document: ParsedDocument, document_id: str) -> List[DocumentChunk]:
        """
        Split a parsed document into overlapping chunks.

        PDFs are split page by page so each chunk knows its page number.
        Every chunk carries source, chunk_index, document_id and file_type.
        """
        base_metadata: Dict[str, Any] = {"file_type": document.metadata.get("file_type", "unknown")}

        if document.pages:
            texts = document.pages
            metadatas = [dict(base_metadata, page=number) for number in range(1, len(texts) + 1)]
        else:
            texts = [document.content]
            metadatas = [dict(base_metadata)]

        split_docs = self.text_splitter.create_documents(texts, metadatas=metadatas)

        chunks = []
        for index, doc in enumerate(split_docs):
            metadata = dict(doc.metadata)
            metadata.update({
                "source": document.filename,
                "chunk_index": index,
                "document_id": document_id,
            })
            chunks.append(DocumentChunk(id=uuid.uuid4().hex, content=doc.page_content, metadata=metadata))

        logger.info(f"Document {document_id} split into {len(chunks)} chunks")
        return chunks

    def get_supported_file_types(self) -> List[str]:
        """Get list of supported file extensions."""
        return list(self.parsers)

    def validate_file_type(self, filename: str) -> bool:
        """Validate if file type is supported."""
        return Path(filename).suffix.lower() in self.parsers
