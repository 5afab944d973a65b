from typing import Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from query_guard.api.dependencies import AdminHandlerDep, QueryHandlerDep, lifespan
from query_guard.config import settings
from query_guard.dto import (
    AdminActionResponse,
    CacheStatsResponse,
    CostStatsResponse,
    HealthResponse,
    QueryRequest,
    QueryResponse,
    RateLimitOverviewResponse,
    RateLimitResetResponse,
    RateLimitStatusResponse,
)
from query_guard.handlers import client_id_from

API_NAME = "Query Guard API"
API_VERSION = "0.1.0"
API_DESCRIPTION = "Rate limiting, daily cost budget and semantic caching in front of a paid LLM"

admin_router = APIRouter(prefix="/api/admin", tags=["admin"])
chatbot_router = APIRouter(prefix="/api/chatbot", tags=["chatbot"])


@admin_router.get("/cost/today", response_model=CostStatsResponse)
async def cost_today(handler: AdminHandlerDep) -> CostStatsResponse:
    """Today's spend, limit, query count and remaining budget."""
    return await handler.cost_today()


@admin_router.post("/cost/reset", response_model=AdminActionResponse)
async def reset_cost(handler: AdminHandlerDep) -> AdminActionResponse:
    """Reset today's cost counter. Emergency use only."""
    return await handler.reset_cost()


@admin_router.get("/ratelimit/status", response_model=RateLimitOverviewResponse)
async def rate_limit_status(handler: AdminHandlerDep) -> RateLimitOverviewResponse:
    """Number of clients with open rate limit windows."""
    return await handler.rate_limit_overview()


@admin_router.get("/ratelimit/ip/{client}", response_model=RateLimitStatusResponse)
async def rate_limit_for_client(client: str, handler: AdminHandlerDep) -> RateLimitStatusResponse:
    """Counters for one client (read-only)."""
    return await handler.rate_limit_for(client)


@admin_router.post("/ratelimit/reset", response_model=RateLimitResetResponse)
async def reset_rate_limits(handler: AdminHandlerDep) -> RateLimitResetResponse:
    """Clear every rate limit counter."""
    return await handler.reset_rate_limits()


@admin_router.get("/cache/semantic/stats", response_model=CacheStatsResponse)
async def semantic_cache_stats(handler: AdminHandlerDep) -> CacheStatsResponse:
    """Semantic cache size, hit rate and threshold."""
    return await handler.cache_stats()


@admin_router.post("/cache/semantic/clear", response_model=AdminActionResponse)
async def clear_semantic_cache(handler: AdminHandlerDep) -> AdminActionResponse:
    """Remove every cached response and reset the hit counters."""
    return await handler.clear_cache()


@admin_router.get("/health", response_model=HealthResponse)
async def health(handler: AdminHandlerDep) -> HealthResponse:
    """System health summary."""
    return await handler.health()


@chatbot_router.post(
    "/query",
    response_model=QueryResponse,
    responses={400: {"model": QueryResponse}, 429: {"model": QueryResponse}, 503: {"model": QueryResponse}},
)
async def query(body: QueryRequest, request: Request, handler: QueryHandlerDep) -> JSONResponse:
    """Answer a query through the rate limiter, semantic cache and cost budget."""
    return await handler.handle(body, client_id_from(request))


def create_app() -> FastAPI:
    """Create the FastAPI application with every router mounted."""
    application = FastAPI(
        title=API_NAME,
        description=API_DESCRIPTION,
        version=API_VERSION,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": API_NAME,
            "version": API_VERSION,
            "description": API_DESCRIPTION,
            "endpoints": {
                "query": "/api/chatbot/query",
                "admin": "/api/admin",
                "health": "/api/admin/health",
                "docs": "/docs",
            },
        }

    application.include_router(admin_router)
    application.include_router(chatbot_router)
    return application


app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run(
        "query_guard.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )


if __name__ == "__main__":
    main()
