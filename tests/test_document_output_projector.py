import pytest

from rerank_service.application.services.document_output_projector import project_document
from rerank_service.domain.exceptions import UnsupportedDocumentType
from rerank_service.domain.models import PlainTextDocument, RecordDocument


def test_nothing_is_echoed_when_return_documents_is_false():
    assert project_document(PlainTextDocument(text="a"), False) is None
    assert project_document(RecordDocument(record={"text": "a"}), False) is None


def test_plain_text_is_wrapped_in_text_field():
    assert project_document(PlainTextDocument(text="hello"), True) == {"text": "hello"}


def test_record_is_echoed_with_all_fields():
    record = {"title": "Germany", "text": "Berlin is in Germany.", "year": 1990}
    projected = project_document(RecordDocument(record=record), True)
    assert projected == record
    assert list(projected) == ["title", "text", "year"]


def test_record_echo_is_a_copy():
    doc = RecordDocument(record={"text": "a"})
    projected = project_document(doc, True)
    projected["text"] = "changed"
    assert doc.record == {"text": "a"}


def test_unsupported_document_type_is_rejected():
    with pytest.raises(UnsupportedDocumentType):
        project_document(["not", "a", "document"], True)  # type: ignore[arg-type]


def test_unsupported_type_is_not_checked_when_nothing_is_echoed():
    assert project_document(3.14, False) is None  # type: ignore[arg-type]
