# rerank_service/application/services/document_text_extractor.py
import json
from typing import Any, List, Optional

from rerank_service.domain.exceptions import UnsupportedDocumentType
from rerank_service.domain.models import Document, PlainTextDocument, RecordDocument

TEXT_FIELD = "text"
RANK_FIELDS_SEPARATOR = " "


def field_value_to_text(value: Any) -> str:
    """Strings are used verbatim; any other JSON value is rendered as compact JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


def extract_text(document: Document, rank_fields: Optional[List[str]] = None) -> str:
    """
    Produces the passage that is scored for one document.

    Plain strings are returned unchanged and ignore `rank_fields`. Records give
    their "text" field when no `rank_fields` are requested, otherwise the
    requested fields joined by a single space; missing fields count as "".
    """
    if isinstance(document, PlainTextDocument):
        return document.text
    if isinstance(document, RecordDocument):
        if rank_fields is None:
            return field_value_to_text(document.record.get(TEXT_FIELD, ""))
        return RANK_FIELDS_SEPARATOR.join(
            field_value_to_text(document.record.get(field, "")) for field in rank_fields
        )
    raise UnsupportedDocumentType(type(document).__name__)
