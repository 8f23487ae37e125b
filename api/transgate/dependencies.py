import logging
from typing import Annotated

from fastapi import Depends, Header, Request

from transgate.services.config_store import ConfigStore
from transgate.services.orchestrator import TranslationOrchestrator

logger = logging.getLogger("transgate")


def get_config_store(request: Request) -> ConfigStore:
    return request.app.state.config_store


def get_orchestrator(request: Request) -> TranslationOrchestrator:
    return request.app.state.orchestrator


async def get_auth_header(
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    # AuthMiddleware has already verified it; forwarded to the record store
    return (authorization or "").strip()


ConfigStoreDep = Annotated[ConfigStore, Depends(get_config_store)]
OrchestratorDep = Annotated[TranslationOrchestrator, Depends(get_orchestrator)]
AuthHeaderDep = Annotated[str, Depends(get_auth_header)]
