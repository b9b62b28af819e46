import json
from typing import Any, Dict, Union

from errors import ParseError

Document = Dict[str, Any]


def encode_document(doc: Document) -> str:
    """
    Serializes a document to the compact JSON string stored in the primary slot.
    Field order is preserved.
    """
    if not isinstance(doc, dict):
        raise TypeError(f"Document must be a mapping, got {type(doc).__name__}")
    return json.dumps(doc, separators=(",", ":"), ensure_ascii=False)


def decode_document(raw: Union[str, bytes]) -> Document:
    """
    Parses a stored value back into a document.
    Raises ParseError when the value is not JSON or not a JSON object.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"Stored value is not UTF-8: {e}") from e
    if not isinstance(raw, str):
        raise ParseError(f"Stored value must be a string, got {type(raw).__name__}")

    try:
        doc = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"Stored value is not valid JSON: {e}") from e

    if not isinstance(doc, dict):
        raise ParseError(f"Stored value is not a JSON object: {type(doc).__name__}")
    return doc
