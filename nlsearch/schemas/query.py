"""Schemas for the query endpoint."""

from typing import Any

from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    """Request body for POST /api/query."""

    query: str = Field("", description="Natural-language description of the code search to run.")


class QueryResponse(BaseModel):
    """Response for POST /api/query. Exactly one of answer or error is meaningful."""

    answer: str = Field("", description="Generated Sourcegraph search query.")
    sources: list[dict[str, Any]] | None = Field(None, description="Source records Deep Search cited.")
    error: str | None = Field(None, description="User-visible failure message.")

    model_config = {
        "json_schema_extra": {
            "examples": [{"answer": "repo:^github\\.com/sourcegraph/sourcegraph$ lang:go func main", "sources": []}]
        }
    }
