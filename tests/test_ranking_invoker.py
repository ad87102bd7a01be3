import asyncio

import pytest

from rerank_service.application.services.ranking_invoker import RankingInvoker
from rerank_service.domain.exceptions import RankerNotReady, ScoringFailure
from rerank_service.domain.models import RankingOutput

from tests.fakes import FakeRanker


class FixedOutputRanker(FakeRanker):
    def __init__(self, output):
        super().__init__()
        self.output = output

    def rank(self, query, passages):
        self.calls.append((query, list(passages)))
        return self.output


@pytest.mark.asyncio
async def test_returns_pairs_in_model_order():
    invoker = RankingInvoker(FakeRanker())
    ranked = await invoker.invoke("capital of France", ["Berlin is in Germany.", "Paris is the capital of France."])
    assert [index for index, _ in ranked] == [1, 0]
    assert ranked[0][1] > ranked[1][1]


@pytest.mark.asyncio
async def test_does_not_re_sort_model_output():
    ranker = FixedOutputRanker(RankingOutput(positions=[0, 2, 1], scores=[0.1, 0.9, 0.5]))
    ranked = await RankingInvoker(ranker).invoke("q", ["a", "b", "c"])
    assert ranked == [(0, 0.1), (2, 0.9), (1, 0.5)]


@pytest.mark.asyncio
async def test_one_based_positions_are_normalized():
    ranker = FakeRanker(index_base=1)
    ranked = await RankingInvoker(ranker).invoke("capital of France", ["Berlin", "Paris capital France"])
    assert [index for index, _ in ranked] == [1, 0]


@pytest.mark.asyncio
async def test_empty_passages_skip_model_call():
    ranker = FakeRanker()
    assert await RankingInvoker(ranker).invoke("q", []) == []
    assert ranker.calls == []


@pytest.mark.asyncio
async def test_model_is_called_once_with_all_passages():
    ranker = FakeRanker()
    await RankingInvoker(ranker).invoke("q", ["a", "b", "c"])
    assert ranker.calls == [("q", ["a", "b", "c"])]


@pytest.mark.asyncio
async def test_model_error_becomes_scoring_failure():
    ranker = FakeRanker(fail_with=ValueError("tokenizer exploded"))
    with pytest.raises(ScoringFailure) as exc_info:
        await RankingInvoker(ranker).invoke("q", ["a"])
    assert exc_info.value.message == "tokenizer exploded"
    assert isinstance(exc_info.value.__cause__, ValueError)


@pytest.mark.asyncio
async def test_not_ready_model_is_reported():
    ranker = FakeRanker(ready=False)
    with pytest.raises(RankerNotReady):
        await RankingInvoker(ranker).invoke("q", ["a"])
    assert ranker.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "output",
    [
        RankingOutput(positions=[0, 1], scores=[0.5]),
        RankingOutput(positions=[0], scores=[0.5]),
        RankingOutput(positions=[0, 5], scores=[0.5, 0.4]),
        RankingOutput(positions=[1, 1], scores=[0.5, 0.4]),
        RankingOutput(positions=[0, -1], scores=[0.5, 0.4]),
    ],
    ids=["length-mismatch", "missing-passage", "out-of-range", "duplicate", "negative"],
)
async def test_malformed_output_is_a_scoring_failure(output):
    with pytest.raises(ScoringFailure) as exc_info:
        await RankingInvoker(FixedOutputRanker(output)).invoke("q", ["a", "b"])
    assert "malformed" in exc_info.value.message


@pytest.mark.asyncio
async def test_wrong_output_type_is_a_scoring_failure():
    with pytest.raises(ScoringFailure):
        await RankingInvoker(FixedOutputRanker([(0, 0.5)])).invoke("q", ["a"])


@pytest.mark.asyncio
async def test_calls_are_serialized_when_model_is_not_concurrency_safe():
    ranker = FakeRanker(supports_concurrent_calls=False, delay_seconds=0.05)
    invoker = RankingInvoker(ranker)
    await asyncio.gather(*(invoker.invoke("q", ["a", "b"]) for _ in range(4)))
    assert len(ranker.calls) == 4
    assert ranker.max_active_calls == 1


@pytest.mark.asyncio
async def test_slow_model_call_times_out():
    ranker = FakeRanker(delay_seconds=0.5)
    invoker = RankingInvoker(ranker, timeout_seconds=0.05)
    with pytest.raises(ScoringFailure) as exc_info:
        await invoker.invoke("q", ["a"])
    assert "did not respond" in exc_info.value.message


@pytest.mark.asyncio
async def test_timed_out_call_keeps_model_serialized_until_it_returns():
    ranker = FakeRanker(supports_concurrent_calls=False, delay_seconds=0.3)
    invoker = RankingInvoker(ranker, timeout_seconds=0.1)

    for _ in range(2):
        with pytest.raises(ScoringFailure):
            await invoker.invoke("q", ["a"])

    # Both abandoned worker threads still run to completion in the background.
    await asyncio.sleep(0.8)
    assert len(ranker.calls) == 2
    assert ranker.max_active_calls == 1
