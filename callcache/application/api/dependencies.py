"""
FastAPI Dependencies

The orchestrator is created by whoever builds the app and stored on
app.state; routes receive it through OrchestratorDep.
"""

from typing import Annotated

from fastapi import Depends, Request

from callcache.core.exceptions import ConfigurationError
from callcache.infrastructure.cache.orchestrator import CacheOrchestrator


def get_orchestrator(request: Request) -> CacheOrchestrator:
    """
    Retrieve the CacheOrchestrator from application state.

    Raises:
        ConfigurationError: If the app was built without an orchestrator
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise ConfigurationError("No cache orchestrator attached to the application")
    return orchestrator


OrchestratorDep = Annotated[CacheOrchestrator, Depends(get_orchestrator)]
