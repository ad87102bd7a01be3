# rerank_service/dependencies.py
from typing import Optional

from fastapi import FastAPI, Request

from rerank_service.application.ports.ranker_model_port import RankerModelPort
from rerank_service.application.use_cases.rank_documents_use_case import RankDocumentsUseCase
from rerank_service.domain.exceptions import RankerNotReady

# Shared instances live on app.state, set once by the lifespan and read-only afterwards.


def set_dependencies(
    app: FastAPI,
    ranker_model: Optional[RankerModelPort],
    use_case: Optional[RankDocumentsUseCase],
    service_ready: bool
):
    """
    Called during application startup (lifespan) to set the shared instances.
    """
    app.state.ranker_model = ranker_model
    app.state.rank_use_case = use_case
    app.state.service_ready = service_ready


def get_ranker_model(request: Request) -> Optional[RankerModelPort]:
    return getattr(request.app.state, "ranker_model", None)


def is_service_ready(request: Request) -> bool:
    return bool(getattr(request.app.state, "service_ready", False))


def get_rank_use_case(request: Request) -> RankDocumentsUseCase:
    """
    FastAPI dependency getter for RankDocumentsUseCase.
    Ensures the use case and its underlying model adapter are ready.
    """
    use_case: Optional[RankDocumentsUseCase] = getattr(request.app.state, "rank_use_case", None)
    ranker_model = get_ranker_model(request)
    if use_case is None or ranker_model is None or not ranker_model.is_ready():
        raise RankerNotReady(
            "Rerank service is not ready. Dependencies (model or use case) not initialized or model failed to load."
        )
    return use_case
