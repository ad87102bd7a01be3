# rerank_service/infrastructure/rankers/cross_encoder_adapter.py
import time
from typing import List, Optional

import structlog
from sentence_transformers import CrossEncoder  # type: ignore

from rerank_service.application.ports.ranker_model_port import RankerModelPort
from rerank_service.core.config import settings
from rerank_service.domain.models import RankingOutput

logger = structlog.get_logger(__name__)


class CrossEncoderRankerAdapter(RankerModelPort):
    """
    Ranking model backed by a sentence-transformers CrossEncoder.

    One instance owns one model handle. It is built once during application
    startup; `load_model` is blocking and meant to run in a worker thread.
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        device: Optional[str] = None,
        max_length: Optional[int] = None,
        batch_size: Optional[int] = None,
        hf_cache_dir: Optional[str] = None,
        serialize_calls: Optional[bool] = None,
    ):
        self.model_name = model_name or settings.MODEL_NAME
        self.device = device or settings.MODEL_DEVICE
        self.max_length = max_length or settings.MAX_SEQ_LENGTH
        self.batch_size = batch_size or settings.BATCH_SIZE
        self.hf_cache_dir = hf_cache_dir if hf_cache_dir is not None else settings.HF_CACHE_DIR
        if serialize_calls is None:
            serialize_calls = settings.SERIALIZE_MODEL_CALLS
        self.supports_concurrent_calls = not serialize_calls

        self._model: Optional[CrossEncoder] = None
        self._model_status: str = "unloaded"
        logger.debug("CrossEncoderRankerAdapter instance created.", model_name=self.model_name, device=self.device)

    def load_model(self) -> None:
        if self._model_status == "loaded":
            logger.info("Ranking model already loaded.", model_name=self.model_name)
            return

        self._model_status = "loading"
        self._model = None
        init_log = logger.bind(
            adapter_action="load_model",
            model_name=self.model_name,
            device=self.device,
            configured_hf_cache_dir=self.hf_cache_dir
        )
        init_log.info("Attempting to load CrossEncoder model...")

        start_time = time.time()
        try:
            self._model = CrossEncoder(
                self.model_name,
                max_length=self.max_length,
                device=self.device,
                cache_folder=self.hf_cache_dir,
            )

            if self.device.startswith("cuda"):
                try:
                    self._model.model.half()  # type: ignore
                    init_log.info("CrossEncoder model converted to FP16 for GPU optimization.")
                except Exception as e_fp16:
                    init_log.warning("Failed to convert CrossEncoder model to FP16.", error_message=str(e_fp16))

            self._model_status = "loaded"
            init_log.info("CrossEncoder model loaded successfully.", duration_seconds=round(time.time() - start_time, 3))
        except Exception as e:
            self._model_status = "error"
            self._model = None
            init_log.error("Failed to load CrossEncoder model.", error_message=str(e), exc_info=True)

    def rank(self, query: str, passages: List[str]) -> RankingOutput:
        if self._model is None or not self.is_ready():
            raise RuntimeError("Ranking model is not available for prediction.")

        rank_log = logger.bind(adapter_action="rank", num_passages=len(passages), batch_size_used=self.batch_size)
        rank_log.debug("Starting CrossEncoder ranking.")
        start_time = time.time()

        # CrossEncoder.rank returns [{"corpus_id": int, "score": float}, ...], best first.
        ranked = self._model.rank(
            query,
            passages,
            return_documents=False,
            batch_size=self.batch_size,
            show_progress_bar=False,
        )

        rank_log.debug("CrossEncoder ranking finished.", duration_ms=round((time.time() - start_time) * 1000, 2))
        return RankingOutput(
            positions=[int(item["corpus_id"]) for item in ranked],
            scores=[float(item["score"]) for item in ranked],
            index_base=0,
        )

    def get_model_name(self) -> str:
        return self.model_name

    def is_ready(self) -> bool:
        return self._model is not None and self._model_status == "loaded"

    def get_model_status(self) -> str:
        return self._model_status
