"""
Default source-row collaborator for the row cache scheduler.

Stands in for the inventory lookup that materializes fresh row data. Each
call stamps the time it was read, so successive refreshes of the same row
produce different payloads.
"""
import time

from pydantic import BaseModel, Field


class Inventory(BaseModel):
    """A materialized inventory row, cached as JSON under inv:{id}."""
    id: str = Field(..., description="Row id")
    data: str = Field(default="data to cache...", description="Row payload")
    cached: float = Field(default_factory=time.time, description="Unix time the row was read")

    @classmethod
    def get(cls, row_id: str) -> "Inventory":
        return cls(id=row_id)
