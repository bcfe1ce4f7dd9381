"""Tests for the document wire models."""

import json
from datetime import date

import pytest

from crptapi.exceptions import SerializationError
from crptapi.models import (
    Description,
    Document,
    Product,
    decode_document,
    encode_document,
)


@pytest.fixture
def document():
    return Document(
        description=Description(participant_inn="7700000001"),
        doc_id="doc-42",
        doc_status="DRAFT",
        doc_type="LP_INTRODUCE_GOODS",
        import_request=True,
        owner_inn="7700000001",
        participant_inn="7700000001",
        producer_inn="7700000002",
        production_date=date(2024, 2, 29),
        production_type="OWN_PRODUCTION",
        reg_date=date(2024, 3, 1),
        reg_number="R-1",
        products=[
            Product(
                certificate_document="CONFORMITY_CERTIFICATE",
                certificate_document_date="2024-01-15",
                certificate_document_number="C-1",
                owner_inn="7700000001",
                producer_inn="7700000002",
                production_date=date(2024, 2, 28),
                tnved_code="6401100000",
                uit_code="010461111111111121",
                uitu_code=None,
            ),
            Product(uit_code="010461111111111122", tnved_code="6401100000"),
        ],
    )


class TestWireFormat:
    """Tests for the JSON produced for the remote API."""

    def test_field_names_match_wire_schema(self, document):
        """Test that contractual field names are used."""
        data = json.loads(encode_document(document))
        assert set(data) == {
            "description", "doc_id", "doc_status", "doc_type", "importRequest",
            "owner_inn", "participant_inn", "producer_inn", "production_date",
            "production_type", "reg_date", "reg_number", "products",
        }
        assert data["description"] == {"participantInn": "7700000001"}
        assert data["importRequest"] is True
        assert set(data["products"][0]) == {
            "certificate_document", "certificate_document_date",
            "certificate_document_number", "owner_inn", "producer_inn",
            "production_date", "tnved_code", "uit_code", "uitu_code",
        }

    def test_dates_are_plain_iso_dates(self, document):
        """Test that dates carry no time or timezone component."""
        data = json.loads(encode_document(document))
        assert data["production_date"] == "2024-02-29"
        assert data["reg_date"] == "2024-03-01"
        assert data["products"][0]["production_date"] == "2024-02-28"

    def test_absent_fields_are_null(self):
        """Test that unset optional fields are sent as null."""
        data = json.loads(encode_document(Document(doc_id="x")))
        assert data["doc_status"] is None
        assert data["description"] is None
        assert data["importRequest"] is False
        assert data["products"] == []


class TestRoundTrip:
    """Tests for decoding what was encoded."""

    def test_round_trip_preserves_document(self, document):
        """Test field-for-field equality after a round trip."""
        decoded = decode_document(encode_document(document))
        assert decoded == document
        assert decoded.doc_id == "doc-42"
        assert [p.uit_code for p in decoded.products] == [
            "010461111111111121",
            "010461111111111122",
        ]
        assert decoded.production_date == date(2024, 2, 29)

    def test_accepts_wire_and_python_names(self):
        """Test population by alias and by attribute name."""
        by_alias = Document.model_validate(
            {"importRequest": True, "description": {"participantInn": "1"}}
        )
        by_name = Document.model_validate(
            {"import_request": True, "description": {"participant_inn": "1"}}
        )
        assert by_alias == by_name


class TestEncodingErrors:
    """Tests for serialization failures."""

    def test_mapping_is_validated(self):
        """Test that plain mappings are accepted."""
        payload = encode_document({"doc_id": "m-1", "reg_date": "2024-05-06"})
        assert json.loads(payload)["reg_date"] == "2024-05-06"

    def test_invalid_mapping_raises(self):
        """Test that an invalid date in a mapping is a serialization error."""
        with pytest.raises(SerializationError) as exc_info:
            encode_document({"doc_id": "m-1", "reg_date": "not-a-date"})
        assert exc_info.value.cause is not None

    def test_unsupported_type_raises(self):
        """Test that arbitrary objects are rejected."""
        with pytest.raises(SerializationError):
            encode_document(object())

    def test_decode_invalid_payload_raises(self):
        """Test that malformed JSON is reported as a serialization error."""
        with pytest.raises(SerializationError):
            decode_document("{not json")
