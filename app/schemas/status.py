"""
Status event wire shape shared by the tracker and the status stream.
"""
from typing import Optional, Any, Literal
from pydantic import BaseModel, Field


class StatusEvent(BaseModel):
    type: Literal["document", "query", "system"]
    id: str
    status: str
    message: Optional[str] = None
    progress: Optional[int] = Field(None, ge=0, le=100)
    data: Optional[Any] = None
    timestamp: str
