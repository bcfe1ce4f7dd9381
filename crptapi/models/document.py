"""Wire models for the document creation request.

Field names follow the remote schema exactly. Python attributes are
snake_case throughout; the two camelCase wire names (``importRequest`` and
``participantInn``) are aliases, and either spelling is accepted on input.
Absent values are sent as ``null``.
"""

from collections.abc import Mapping
from datetime import date
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_core import PydanticSerializationError

from crptapi.exceptions import SerializationError


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Description(WireModel):
    participant_inn: Optional[str] = Field(default=None, alias="participantInn")


class Product(WireModel):
    certificate_document: Optional[str] = None
    # Free-form on the wire, unlike production_date
    certificate_document_date: Optional[str] = None
    certificate_document_number: Optional[str] = None
    owner_inn: Optional[str] = None
    producer_inn: Optional[str] = None
    production_date: Optional[date] = None
    tnved_code: Optional[str] = None
    uit_code: Optional[str] = None
    uitu_code: Optional[str] = None


class Document(WireModel):
    description: Optional[Description] = None
    doc_id: Optional[str] = None
    doc_status: Optional[str] = None
    doc_type: Optional[str] = None
    import_request: bool = Field(default=False, alias="importRequest")
    owner_inn: Optional[str] = None
    participant_inn: Optional[str] = None
    producer_inn: Optional[str] = None
    production_date: Optional[date] = None
    production_type: Optional[str] = None
    reg_date: Optional[date] = None
    reg_number: Optional[str] = None
    products: List[Product] = Field(default_factory=list)

    def to_json(self) -> str:
        """Serialize using the wire field names."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> "Document":
        return cls.model_validate_json(data)


def encode_document(document: Union[Document, Mapping[str, Any]]) -> str:
    """Encode a document, or a mapping shaped like one, to wire JSON.

    Raises:
        SerializationError: If the value cannot be turned into a Document or
            cannot be encoded
    """
    try:
        if isinstance(document, Mapping):
            document = Document.model_validate(document)
        elif not isinstance(document, Document):
            raise SerializationError(
                f"Expected a Document or mapping, got {type(document).__name__}"
            )
        return document.to_json()
    except ValidationError as e:
        raise SerializationError(f"Invalid document: {e.error_count()} validation error(s)", cause=e) from e
    except PydanticSerializationError as e:
        raise SerializationError(f"Document could not be encoded: {e}", cause=e) from e


def decode_document(data: Union[str, bytes]) -> Document:
    """Decode wire JSON back into a Document.

    Raises:
        SerializationError: If the payload is not a valid document
    """
    try:
        return Document.from_json(data)
    except ValidationError as e:
        raise SerializationError(f"Invalid document payload: {e.error_count()} validation error(s)", cause=e) from e
