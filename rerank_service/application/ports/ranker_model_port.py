# rerank_service/application/ports/ranker_model_port.py
from abc import ABC, abstractmethod
from typing import List

from rerank_service.domain.models import RankingOutput


class RankerModelPort(ABC):
    """
    Abstract port defining the contract for a ranking model adapter.
    """

    # Adapters whose model cannot be called from several threads at once set
    # this to False; callers then serialize access.
    supports_concurrent_calls: bool = True

    @abstractmethod
    def rank(self, query: str, passages: List[str]) -> RankingOutput:
        """
        Ranks passages by relevance to the query. Blocking.

        Args:
            query: The query string.
            passages: The texts to rank. Never empty.

        Returns:
            A RankingOutput whose positions are ordered by descending relevance.

        Raises:
            Exception: Whatever the underlying model raises.
        """
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        """
        Returns the name of the underlying ranking model.
        """
        pass

    @abstractmethod
    def is_ready(self) -> bool:
        """
        Checks if the model is loaded and ready to rank.
        """
        pass

    def load_model(self) -> None:
        """
        Loads the model. Blocking, called once at startup. Adapters that are
        ready on construction keep this no-op.
        """

    def get_model_status(self) -> str:
        return "loaded" if self.is_ready() else "unloaded"
