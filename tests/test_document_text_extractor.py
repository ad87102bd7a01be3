import pytest

from rerank_service.application.services.document_text_extractor import extract_text, field_value_to_text
from rerank_service.domain.exceptions import UnsupportedDocumentType
from rerank_service.domain.models import PlainTextDocument, RecordDocument


def test_plain_text_is_returned_verbatim():
    doc = PlainTextDocument(text="  Paris is the capital of France.  ")
    assert extract_text(doc) == "  Paris is the capital of France.  "


def test_plain_text_ignores_rank_fields():
    doc = PlainTextDocument(text="hello")
    assert extract_text(doc, ["title", "body"]) == "hello"


def test_record_without_rank_fields_uses_text_field():
    doc = RecordDocument(record={"title": "t", "text": "the body"})
    assert extract_text(doc) == "the body"


def test_record_without_text_field_gives_empty_string():
    doc = RecordDocument(record={"title": "t"})
    assert extract_text(doc) == ""


def test_rank_fields_are_joined_in_requested_order():
    doc = RecordDocument(record={"a": "x", "b": "y", "c": "z"})
    assert extract_text(doc, ["a", "b"]) == "x y"
    assert extract_text(doc, ["c", "a"]) == "z x"


def test_missing_rank_field_counts_as_empty_string():
    doc = RecordDocument(record={"a": "x"})
    assert extract_text(doc, ["a", "b"]) == "x "


def test_empty_rank_fields_gives_empty_string():
    doc = RecordDocument(record={"text": "ignored"})
    assert extract_text(doc, []) == ""


def test_non_string_field_values_are_rendered_as_json():
    doc = RecordDocument(record={"year": 2024, "score": 1.5, "draft": True, "owner": None, "tags": ["a", "b"]})
    assert extract_text(doc, ["year", "score", "draft", "owner", "tags"]) == '2024 1.5 true null ["a", "b"]'


def test_non_string_text_field_is_rendered():
    assert extract_text(RecordDocument(record={"text": 42})) == "42"


def test_field_value_to_text_keeps_non_ascii():
    assert field_value_to_text({"city": "Zürich"}) == '{"city": "Zürich"}'
    assert field_value_to_text("Zürich") == "Zürich"


def test_unsupported_document_type_is_rejected():
    with pytest.raises(UnsupportedDocumentType) as exc_info:
        extract_text(42, None)  # type: ignore[arg-type]
    assert exc_info.value.type_name == "int"
    assert "int" in str(exc_info.value)
