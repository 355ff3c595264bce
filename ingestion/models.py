"""Pydantic models for the catalog."""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any


class CandidateRecord(BaseModel):
    """A novel scraped from the listing page, before it is stored."""
    name: str
    cover_url: str = ""
    pdf_url: str


class Novel(BaseModel):
    """A stored catalog entry."""
    id: int
    name: str
    cover_url: str = ""
    pdf_url: str
    timestamp: int  # epoch millis

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Novel":
        """Build from a database row."""
        return cls(
            id=row['id'],
            name=row['name'],
            cover_url=row['cover_url'] or "",
            pdf_url=row['pdf_url'],
            timestamp=row['timestamp']
        )


class InsertOutcome(BaseModel):
    inserted: bool
    novel: Optional[Novel] = None


class ProgressEvent(BaseModel):
    loaded: int
    total: int

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 100.0
        return min(100.0, self.loaded * 100.0 / self.total)


class IngestionState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    MERGING = "merging"
    FAILED = "failed"


class IngestionReport(BaseModel):
    """Summary of one ingestion run."""
    total_candidates: int = 0
    inserted: int = 0
    duplicates: int = 0
    skipped: int = 0
    failed: int = 0
    chunks_committed: int = 0
    duration_seconds: float = 0.0
    errors: Dict[str, int] = Field(default_factory=dict)
