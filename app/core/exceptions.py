"""
Application error hierarchy. Each error carries the HTTP status it maps to.
"""


class AppError(Exception):
    """Base class for errors raised by the application."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found")


class FileProcessingError(AppError):
    status_code = 422

    def __init__(self, message: str):
        super().__init__(f"File processing error: {message}")


class DatabaseError(AppError):
    def __init__(self, message: str):
        super().__init__(f"Database error: {message}")


class VectorStoreError(AppError):
    def __init__(self, message: str):
        super().__init__(f"Vector store error: {message}")


class EmbeddingError(AppError):
    def __init__(self, message: str):
        super().__init__(f"Embedding generation error: {message}")


class LLMError(AppError):
    def __init__(self, message: str):
        super().__init__(f"LLM error: {message}")
