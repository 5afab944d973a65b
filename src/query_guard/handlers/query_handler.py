"""HTTP handler for client queries."""

from fastapi import Request, status
from fastapi.responses import JSONResponse

from query_guard.dto import QueryRequest, QueryResponse
from query_guard.entities import AdmissionOutcome, AdmissionResult
from query_guard.services import AdmissionGateway

_STATUS_CODES = {
    AdmissionOutcome.ANSWERED: status.HTTP_200_OK,
    AdmissionOutcome.CACHE_HIT: status.HTTP_200_OK,
    # Degraded answers still carry a user-facing explanation
    AdmissionOutcome.BUDGET_EXCEEDED: status.HTTP_200_OK,
    AdmissionOutcome.UPSTREAM_UNAVAILABLE: status.HTTP_200_OK,
    AdmissionOutcome.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    AdmissionOutcome.INVALID_QUERY: status.HTTP_400_BAD_REQUEST,
    AdmissionOutcome.RATE_LIMITER_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def client_id_from(request: Request) -> str:
    """Client key for rate limiting: first X-Forwarded-For hop, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None:
        return request.client.host
    return "unknown"


def _to_response(result: AdmissionResult) -> QueryResponse:
    return QueryResponse(
        outcome=result.outcome.value,
        explanation=result.explanation,
        payload=result.payload,
        error_code=result.error_code,
        cache_hit=result.cache_hit,
        similarity=result.similarity,
        cost=float(result.cost) if result.cost is not None else None,
    )


class QueryHandler:
    """Runs client queries through the admission gateway.

    Example:
        ```python
        handler = QueryHandler(gateway=gateway)

        @app.post("/api/chatbot/query", response_model=QueryResponse)
        async def query(body: QueryRequest, request: Request):
            return await handler.handle(body, client_id_from(request))
        ```
    """

    def __init__(self, gateway: AdmissionGateway) -> None:
        self._gateway = gateway

    async def handle(self, body: QueryRequest, client_id: str) -> JSONResponse:
        """Handle POST /api/chatbot/query requests.

        Returns:
            JSONResponse with the QueryResponse body and an outcome-specific
            status code (429 responses carry Retry-After)
        """
        result = await self._gateway.admit(client_id, body.query, cacheable=body.cacheable)

        headers = {}
        if result.retry_after is not None:
            headers["Retry-After"] = str(result.retry_after)

        return JSONResponse(
            status_code=_STATUS_CODES[result.outcome],
            content=_to_response(result).model_dump(mode="json"),
            headers=headers,
        )
