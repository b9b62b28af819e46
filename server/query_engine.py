import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from batch_executor import BatchExecutor, Command
from document_codec import Document, decode_document
from errors import InvalidQuery, NotFound, ParseError
import index_keys

logger = logging.getLogger(__name__)

EQUALITY_OPERATORS = {"eq", "$eq", "=", "=="}

@dataclass
class GetParams:
    # Multi-value queries return a document once per matching value unless set.
    distinct: bool = False

@dataclass
class Query:
    """Field-equality query: `{"operator": "eq", "field": "pets:status", "value": [...]}`."""
    operator: str
    field: str
    value: Union[str, List[str]]

    @classmethod
    def from_dict(cls, data: Any) -> "Query":
        if isinstance(data, Query):
            return data
        if not isinstance(data, Mapping):
            raise InvalidQuery("Query must be an object with operator, field and value")
        for name in ("operator", "field", "value"):
            if data.get(name) is None:
                raise InvalidQuery(f"Query is missing '{name}'")

        operator = data["operator"]
        if not isinstance(operator, str) or operator.lower() not in EQUALITY_OPERATORS:
            raise InvalidQuery(f"Unsupported query operator: {operator!r}")

        value = data["value"]
        if isinstance(value, list):
            if not all(isinstance(v, str) for v in value):
                raise InvalidQuery("Every query value must be a string")
        elif not isinstance(value, str):
            raise InvalidQuery(f"Query value must be a string or an array of strings, got {type(value).__name__}")

        return cls(operator=operator, field=data["field"], value=value)

    def values(self) -> List[str]:
        return list(self.value) if isinstance(self.value, list) else [self.value]

def _id_order(doc_id: str) -> Tuple[int, int, str]:
    # numeric ids ascending, anything else after them
    try:
        return (0, int(doc_id), "")
    except ValueError:
        return (1, 0, doc_id)

class QueryEngine:
    """
    Answers lookups by walking index sets and fetching primary slots.

    Ids whose slot is missing or does not decode are skipped by `find` and
    `find_all`, so an index that drifted from the documents never fails a
    whole query.
    """
    def __init__(self, executor: BatchExecutor):
        self.executor = executor

    def find_one(self, collection: str, doc_id: Any) -> Document:
        key = index_keys.primary_key(collection, doc_id)
        raw = self.executor.execute_one(Command.get(key), check_replies=False)
        if not isinstance(raw, str):
            logger.warning("No document found at %s", key)
            raise NotFound(f"No document with id {doc_id} in {collection}")
        try:
            return decode_document(raw)
        except ParseError:
            logger.error("Stored value at %s is not a valid document", key)
            raise

    def find(self, collection: str, query: Union[Query, Dict[str, Any]], params: Optional[GetParams] = None) -> List[Document]:
        query = Query.from_dict(query)
        namespace = index_keys.normalize_field(collection, query.field)
        values = query.values()
        if not values:
            return []

        # One SMEMBERS per requested value; results are OR-ed in value order.
        set_keys = [index_keys.index_key(namespace, v) for v in values]
        member_sets = self.executor.execute([Command.smembers(k) for k in set_keys])

        ids = []
        for members in member_sets:
            ids.extend(sorted(members, key=_id_order))
        if params and params.distinct:
            ids = list(dict.fromkeys(ids))

        logger.debug("Query %s=%s matched %d ids", namespace, values, len(ids))
        return self._fetch_many(collection, ids)

    def find_all(self, collection: str) -> List[Document]:
        members = self.executor.execute_one(Command.smembers(index_keys.membership_key(collection)))
        return self._fetch_many(collection, sorted(members, key=_id_order))

    def _fetch_many(self, collection: str, ids: List[str]) -> List[Document]:
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            return []

        commands = [Command.get(index_keys.primary_key(collection, i)) for i in unique_ids]
        replies = self.executor.execute(commands, check_replies=False)

        docs: Dict[str, Document] = {}
        for doc_id, raw in zip(unique_ids, replies):
            if not isinstance(raw, str):
                logger.warning("Skipping %s:%s, indexed but no document stored", collection, doc_id)
                continue
            try:
                docs[doc_id] = decode_document(raw)
            except ParseError as e:
                logger.warning("Skipping %s:%s, stored value does not parse: %s", collection, doc_id, e)

        # Repeated ids yield the same decoded document object more than once.
        return [docs[i] for i in ids if i in docs]
