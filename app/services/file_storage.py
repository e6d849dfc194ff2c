"""
Upload storage on the local filesystem, addressed by document id.
"""
import os
import logging
from pathlib import Path

import aiofiles

from ..core.exceptions import FileProcessingError

logger = logging.getLogger(__name__)


class FileStorage:
    """Saves uploads as <document_id><extension> under the upload directory."""

    def __init__(self, upload_dir: str):
        self.upload_dir = Path(upload_dir)
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, document_id: str, original_filename: str) -> Path:
        return self.upload_dir / f"{document_id}{Path(original_filename).suffix.lower()}"

    async def save(self, file_content: bytes, document_id: str, original_filename: str) -> str:
        """
        Save uploaded file to disk and return the file path.

        Args:
            file_content: Raw file content as bytes
            document_id: Id of the owning document
            original_filename: Name the file was uploaded with

        Returns:
            str: Path to saved file
        """
        file_path = self.path_for(document_id, original_filename)
        try:
            async with aiofiles.open(file_path, 'wb') as f:
                await f.write(file_content)
        except OSError as e:
            logger.error(f"Failed to save file for document {document_id}: {str(e)}")
            raise FileProcessingError(f"Failed to save file: {str(e)}") from e

        logger.info(f"File saved: {file_path}")
        return str(file_path)

    async def delete(self, file_path: str) -> None:
        """Remove file from disk; a missing file is not an error."""
        if not file_path:
            return
        try:
            os.remove(file_path)
            logger.info(f"File deleted: {file_path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Error deleting file {file_path}: {str(e)}")
            raise FileProcessingError(f"Failed to delete file: {str(e)}") from e
