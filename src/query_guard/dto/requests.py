"""Request DTOs for API endpoints."""

from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    """Request DTO for the chatbot query endpoint.

    Length and content checks happen in the gateway so that rejected
    queries get a 400 with a readable reason instead of a schema error.
    """

    query: str = Field(..., description="The user's question")
    cacheable: bool = Field(
        True,
        description="Set to false for queries whose answer must not come from the semantic cache",
    )
