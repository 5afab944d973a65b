"""Handler layer for HTTP endpoints.

This layer contains the HTTP request/response handlers.
Handlers depend on services (business logic), not directly on repositories.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)
"""

from .admin_handler import AdminHandler
from .query_handler import QueryHandler, client_id_from

__all__ = [
    "AdminHandler",
    "QueryHandler",
    "client_id_from",
]
