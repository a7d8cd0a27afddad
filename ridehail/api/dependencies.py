"""FastAPI dependency injection helpers."""

from fastapi.requests import HTTPConnection

from ridehail.services.container import RideServices


def get_services(connection: HTTPConnection) -> RideServices:
    """Return the services built at startup (works for HTTP and WebSocket)."""
    return connection.app.state.services
