import re
from typing import Any

from errors import InvalidQuery

SEPARATOR = ":"

# Query fields may use ':' or '.' between segments ("pets:status", "pets.tags.name").
_FIELD_SPLIT = re.compile(r"[.:]")


def primary_key(collection: str, doc_id: Any) -> str:
    """Key of a document's serialized form: `collection:id`."""
    return f"{collection}{SEPARATOR}{doc_id}"


def membership_key(collection: str) -> str:
    """The membership set is keyed by the bare collection name."""
    return collection


def field_namespace(collection: str, field: str) -> str:
    return f"{collection}{SEPARATOR}{field}"


def index_key(namespace: str, value: Any) -> str:
    return f"{namespace}{SEPARATOR}{value}"


def field_index_key(collection: str, field: str, value: Any) -> str:
    """
    Key of the id set for one (collection, field, value) triple.
    Tag indexes share the layout: `pets:tags:dog`.
    """
    return index_key(field_namespace(collection, field), value)


def normalize_field(collection: str, field: str) -> str:
    """
    Maps a query field onto the index namespace that holds its value sets.

    "pets:status", "pets.status" and "status" all become "pets:status".
    Nested attributes address their parent's index, so "pets.tags.name"
    becomes "pets:tags".
    """
    if not isinstance(field, str) or not field.strip():
        raise InvalidQuery("Query field must be a non-empty string")

    parts = [p for p in _FIELD_SPLIT.split(field.strip()) if p]
    if len(parts) > 1 and parts[0] == collection:
        parts = parts[1:]
    if not parts:
        raise InvalidQuery(f"Query field '{field}' does not name a field")

    return field_namespace(collection, parts[0])
