# rerank_service/domain/models.py
from collections.abc import Mapping
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, model_serializer
from typing import List, Dict, Any, Optional, Union

from rerank_service.domain.exceptions import UnsupportedDocumentType


class PlainTextDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = Field(..., description="The document, given as a bare string.")


class RecordDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    record: Dict[str, Any] = Field(..., description="The document's named fields, in the order they were received.")


Document = Union[PlainTextDocument, RecordDocument]


def as_document(raw: Any) -> Document:
    """
    Normalizes one inbound document into its closed variant.

    Strings become PlainTextDocument, mappings become RecordDocument (a shallow
    copy, key order kept). Anything else aborts the request.
    """
    if isinstance(raw, (PlainTextDocument, RecordDocument)):
        return raw
    if isinstance(raw, str):
        return PlainTextDocument(text=raw)
    if isinstance(raw, Mapping):
        return RecordDocument(record={str(key): value for key, value in raw.items()})
    raise UnsupportedDocumentType(type(raw).__name__)


class RankRequest(BaseModel):
    model: Optional[str] = Field(
        None,
        description="Informational only. The ranking model is fixed when the service starts."
    )
    query: str = Field(..., description="The query to rank documents against. May be empty.")
    documents: List[Any] = Field(
        ...,
        description="Documents to rank: bare strings or objects with named fields. May be empty."
    )
    top_n: Optional[StrictInt] = Field(
        None,
        description="Optional. If provided, only the first top_n ranked results are returned."
    )
    rank_fields: Optional[List[str]] = Field(
        None,
        description="Optional. Fields of object documents that are joined (space separated) into the ranked text."
    )
    return_documents: StrictBool = Field(True, description="Whether each result echoes its document.")
    max_chunks_per_doc: Optional[StrictInt] = Field(
        None,
        description="Reserved for future chunking support. Accepted and ignored."
    )


class RankingOutput(BaseModel):
    """
    What a ranking model hands back: `positions[i]` is the input passage that
    the i-th ranked result refers to, `scores[i]` its relevance.
    """
    positions: List[int]
    scores: List[float]
    index_base: int = Field(0, ge=0, le=1, description="0 if positions are 0-based, 1 if 1-based.")


class ScoredResult(BaseModel):
    document: Optional[Dict[str, Any]] = Field(
        None,
        description="The original document, present only when return_documents is true."
    )
    index: int = Field(..., description="Zero-based position of the document in the request.")
    relevance_score: float = Field(..., description="Relevance assigned by the ranking model. Higher is more relevant.")

    @model_serializer(mode="wrap")
    def _omit_absent_document(self, handler):
        data = handler(self)
        if data.get("document") is None:
            data.pop("document", None)
        return data


def _default_api_version() -> Dict[str, Any]:
    return {"version": "1.0", "is_deprecated": False, "is_experimental": False}


def _default_billed_units() -> Dict[str, int]:
    return {"input_tokens": 0, "output_tokens": 0, "search_units": 0, "classifications": 0}


def _default_tokens() -> Dict[str, int]:
    return {"input_tokens": 0, "output_tokens": 0}


class RankResponseMeta(BaseModel):
    # No token accounting is performed; the counters are always zero.
    api_version: Dict[str, Any] = Field(default_factory=_default_api_version)
    billed_units: Dict[str, int] = Field(default_factory=_default_billed_units)
    tokens: Dict[str, int] = Field(default_factory=_default_tokens)
    warnings: List[str] = Field(default_factory=list)


class RankResponse(BaseModel):
    id: str = Field(..., description="Unique identifier generated for this response.")
    results: List[ScoredResult] = Field(..., description="Results ordered by descending relevance.")
    meta: RankResponseMeta = Field(default_factory=RankResponseMeta)
