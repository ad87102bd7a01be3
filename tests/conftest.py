import pytest

from rerank_service.application.services.ranking_invoker import RankingInvoker
from rerank_service.application.use_cases.rank_documents_use_case import RankDocumentsUseCase

from tests.fakes import FakeRanker


@pytest.fixture
def fake_ranker() -> FakeRanker:
    return FakeRanker()


@pytest.fixture
def use_case(fake_ranker) -> RankDocumentsUseCase:
    return RankDocumentsUseCase(ranking_invoker=RankingInvoker(fake_ranker))
