# rerank_service/api/v1/endpoints/rerank_endpoint.py
from fastapi import APIRouter, Depends, Body, status as fastapi_status
import structlog
from typing import Annotated

from rerank_service.api.v1.schemas import ErrorResponse, RerankRequest, RerankResponse
from rerank_service.application.use_cases.rank_documents_use_case import RankDocumentsUseCase
from rerank_service.dependencies import get_rank_use_case
from rerank_service.domain.exceptions import RerankServiceError

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/rerank",
    response_model=RerankResponse,
    summary="Rank a list of documents by relevance to a query",
    status_code=fastapi_status.HTTP_200_OK,
    responses={
        422: {"model": ErrorResponse, "description": "Invalid input data."},
        fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse, "description": "Ranking model failed."},
        fastapi_status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse, "description": "Ranking model not ready."},
    }
)
async def rerank_documents_endpoint(
    request_body: RerankRequest = Body(...),
    use_case: Annotated[RankDocumentsUseCase, Depends(get_rank_use_case)] = None
):
    endpoint_log = logger.bind(
        action="rerank_documents_endpoint",
        requested_model=request_body.model,
        query_length=len(request_body.query),
        num_documents_input=len(request_body.documents),
        top_n_requested=request_body.top_n
    )
    endpoint_log.info("Received rerank request.")

    try:
        response = await use_case.execute(request_body)
    except RerankServiceError as e:
        # Mapped to an HTTP error body by the application's exception handlers.
        endpoint_log.warning("Rerank request failed.", error_type=type(e).__name__, error_message=e.message)
        raise

    endpoint_log.info("Reranking successful.", response_id=response.id, num_results_output=len(response.results))
    return response
