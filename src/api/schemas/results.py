"""Response envelopes returned by the handler groups.

Key models:
- **ResultPage**: One page of documents plus the collection total
- **ServiceStatus**: Identification returned by the root endpoint
- **HealthStatus**: Liveness and database connectivity
- **CollectionStats**: Document counts per collection
"""

from typing import Any, Literal

from pydantic import BaseModel, Field


class ResultPage(BaseModel):
    """A page of documents from one collection."""

    items: list[dict[str, Any]] = Field(
        ...,
        description="Documents on this page, each with its _id",
    )

    total: int = Field(
        ...,
        ge=0,
        description="Number of documents in the whole collection",
    )

    limit: int = Field(..., gt=0, description="Page size applied")

    skip: int = Field(..., ge=0, description="Number of documents skipped")


class ServiceStatus(BaseModel):
    """Service identification."""

    name: str = Field(..., examples=["Civitas"])
    version: str = Field(..., examples=["0.4.0"])
    status: Literal["ok"] = "ok"


class HealthStatus(BaseModel):
    """Health check result."""

    status: Literal["healthy", "degraded"]
    database: bool = Field(..., description="Whether the database answered a ping")


class CollectionStats(BaseModel):
    """Document counts, keyed by collection name."""

    counts: dict[str, int] = Field(
        ...,
        examples=[{"person": 12, "organization": 3}],
    )
