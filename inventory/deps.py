from fastapi import Request

from inventory.cache import QueryClient


def get_query_client(request: Request) -> QueryClient:
    """The process-wide query client the app was built with."""
    return request.app.state.query_client
