"""Document wire models."""

from crptapi.models.document import (
    Description,
    Document,
    Product,
    decode_document,
    encode_document,
)

__all__ = [
    "Description",
    "Document",
    "Product",
    "decode_document",
    "encode_document",
]
