# rerank_service/application/services/document_output_projector.py
from typing import Any, Dict, Optional

from rerank_service.domain.exceptions import UnsupportedDocumentType
from rerank_service.domain.models import Document, PlainTextDocument, RecordDocument


def project_document(document: Document, return_documents: bool) -> Optional[Dict[str, Any]]:
    # Echoes the whole record; rank_fields only affects what gets scored.
    if not return_documents:
        return None
    if isinstance(document, PlainTextDocument):
        return {"text": document.text}
    if isinstance(document, RecordDocument):
        return dict(document.record)
    raise UnsupportedDocumentType(type(document).__name__)
