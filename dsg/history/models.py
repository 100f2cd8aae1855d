from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class HistoryEntry(BaseModel):
    id: int
    prompt: str
    response: str  # raw model output, opaque JSON text
    schema_name: Optional[str] = None
    schema_urn: Optional[str] = None
    dataset_name: Optional[str] = None
    created_at: datetime
