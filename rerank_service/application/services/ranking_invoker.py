# rerank_service/application/services/ranking_invoker.py
import asyncio
import threading
from typing import List, Optional, Sequence, Tuple

import structlog

from rerank_service.application.ports.ranker_model_port import RankerModelPort
from rerank_service.domain.exceptions import RankerNotReady, RerankServiceError, ScoringFailure
from rerank_service.domain.models import RankingOutput

logger = structlog.get_logger(__name__)


class RankingInvoker:
    """
    Runs one ranking call against the model port and returns
    `(original_index, score)` pairs in the model's order, 0-based.

    The blocking model call runs in a worker thread. If the port says its model
    cannot take concurrent calls, calls from this invoker are serialized by a
    lock taken inside that thread, so a timed-out call keeps the model busy
    until it really returns.
    """

    def __init__(self, ranker_model: RankerModelPort, timeout_seconds: Optional[float] = None):
        self.ranker_model = ranker_model
        self.timeout_seconds = timeout_seconds
        self._model_lock: Optional[threading.Lock] = (
            None if ranker_model.supports_concurrent_calls else threading.Lock()
        )
        logger.debug(
            "RankingInvoker initialized",
            ranker_model_type=type(ranker_model).__name__,
            serialized_calls=self._model_lock is not None,
            timeout_seconds=timeout_seconds
        )

    async def invoke(self, query: str, passages: Sequence[str]) -> List[Tuple[int, float]]:
        invoke_log = logger.bind(action="invoke_ranking", num_passages=len(passages))

        # Some models reject empty batches, so the model is never called with none.
        if not passages:
            invoke_log.debug("No passages to rank, skipping model call.")
            return []

        if not self.ranker_model.is_ready():
            invoke_log.error("Ranking model is not ready. Cannot rank passages.")
            raise RankerNotReady("Ranking model is not ready or failed to load.")

        output = await self._call_model(query, list(passages))
        ranked = self._normalize(output, len(passages))
        invoke_log.debug("Ranking completed by model port.", num_ranked=len(ranked))
        return ranked

    async def _call_model(self, query: str, passages: List[str]) -> RankingOutput:
        call = asyncio.to_thread(self._rank_blocking, query, passages)
        try:
            if self.timeout_seconds is None:
                return await call
            # Time spent queued behind the lock counts against the timeout.
            return await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise ScoringFailure(
                f"Ranking model did not respond within {self.timeout_seconds} seconds.", cause=e
            ) from e
        except RerankServiceError:
            raise
        except Exception as e:
            raise ScoringFailure(str(e) or type(e).__name__, cause=e) from e

    def _rank_blocking(self, query: str, passages: List[str]) -> RankingOutput:
        if self._model_lock is None:
            return self.ranker_model.rank(query, passages)
        with self._model_lock:
            return self.ranker_model.rank(query, passages)

    @staticmethod
    def _normalize(output: RankingOutput, num_passages: int) -> List[Tuple[int, float]]:
        if not isinstance(output, RankingOutput):
            raise ScoringFailure(f"Ranking model returned malformed output of type {type(output).__name__}.")
        if len(output.positions) != len(output.scores):
            raise ScoringFailure(
                f"Ranking model returned malformed output: {len(output.positions)} positions "
                f"but {len(output.scores)} scores."
            )
        if len(output.positions) != num_passages:
            raise ScoringFailure(
                f"Ranking model returned malformed output: ranked {len(output.positions)} "
                f"of {num_passages} passages."
            )

        ranked: List[Tuple[int, float]] = []
        seen = set()
        for position, score in zip(output.positions, output.scores):
            index = position - output.index_base
            if index < 0 or index >= num_passages:
                raise ScoringFailure(f"Ranking model returned malformed output: position {position} is out of range.")
            if index in seen:
                raise ScoringFailure(f"Ranking model returned malformed output: position {position} is repeated.")
            seen.add(index)
            ranked.append((index, float(score)))
        return ranked
