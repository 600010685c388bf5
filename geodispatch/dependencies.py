"""
FastAPI dependencies.

The dispatch service is created once per application (see main.create_app)
and stored on ``app.state``; handlers receive it through Depends so tests can
run against isolated instances.
"""

from fastapi import Request

from geodispatch.services.dispatch_service import DispatchService


def get_dispatch_service(request: Request) -> DispatchService:
    """Return the dispatch service bound to the running application."""
    return request.app.state.dispatch
