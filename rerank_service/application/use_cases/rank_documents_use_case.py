# rerank_service/application/use_cases/rank_documents_use_case.py
import uuid
from typing import Callable, List, Optional
import structlog

from rerank_service.application.services.document_output_projector import project_document
from rerank_service.application.services.document_text_extractor import extract_text
from rerank_service.application.services.ranking_invoker import RankingInvoker
from rerank_service.domain.exceptions import InvalidTopN, RerankServiceError
from rerank_service.domain.models import (
    RankRequest, RankResponse, RankResponseMeta, ScoredResult, as_document
)

logger = structlog.get_logger(__name__)


def _new_response_id() -> str:
    return str(uuid.uuid4())


class RankDocumentsUseCase:
    """
    Use case for ranking documents. It turns a RankRequest into a RankResponse:
    extraction of every passage, one ranking call, projection of the echoed
    documents, top_n truncation and the response envelope.
    """
    def __init__(self, ranking_invoker: RankingInvoker, id_factory: Optional[Callable[[], str]] = None):
        self.ranking_invoker = ranking_invoker
        self.id_factory = id_factory or _new_response_id
        logger.debug("RankDocumentsUseCase initialized")

    async def execute(self, request: RankRequest) -> RankResponse:
        use_case_log = logger.bind(
            action="execute_rank_documents_use_case",
            query_preview=request.query[:50] + "..." if len(request.query) > 50 else request.query,
            num_documents_input=len(request.documents),
            requested_top_n=request.top_n,
            rank_fields=request.rank_fields,
            return_documents=request.return_documents
        )
        use_case_log.info("Executing rank documents use case.")

        if request.top_n is not None and request.top_n < 0:
            use_case_log.warning("Rejecting request with negative top_n.")
            raise InvalidTopN(request.top_n)

        if request.max_chunks_per_doc is not None:
            use_case_log.debug("max_chunks_per_doc is reserved and has no effect.", max_chunks_per_doc=request.max_chunks_per_doc)

        try:
            documents = [as_document(raw) for raw in request.documents]
            passages = [extract_text(doc, request.rank_fields) for doc in documents]
            use_case_log.debug("Extracted passages.", num_passages=len(passages))

            ranked = await self.ranking_invoker.invoke(request.query, passages)

            results: List[ScoredResult] = [
                ScoredResult(
                    document=project_document(documents[index], request.return_documents),
                    index=index,
                    relevance_score=score
                )
                for index, score in ranked
            ]
        except RerankServiceError as e:
            use_case_log.warning("Rank documents use case aborted.", error_type=type(e).__name__, error_message=e.message)
            raise

        if request.top_n is not None:
            results = results[:request.top_n]

        response = RankResponse(id=self.id_factory(), results=results, meta=RankResponseMeta())
        use_case_log.info(
            "Rank documents use case execution successful.",
            response_id=response.id,
            num_results_output=len(response.results)
        )
        return response
