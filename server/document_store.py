import logging
from typing import Any, Dict, Optional

from batch_executor import BatchExecutor, Command
from db_model import CollectionSchema, schema_for
from document_codec import Document, encode_document
from errors import StoreError
import index_keys
from query_engine import QueryEngine

logger = logging.getLogger(__name__)

class CollectionStore:
    """
    Keeps a document's primary slot, its collection membership and its field
    indexes in step across insert, update and delete.

    Each mutation is one pipelined batch of independent key writes.  There is
    no cross-key transaction: when a batch reports StoreCommandFailed, some of
    its writes may already be applied and are not rolled back.  Callers that
    need the document consistent again should re-run the delete or insert.
    """
    def __init__(
        self,
        executor: BatchExecutor,
        query_engine: Optional[QueryEngine] = None,
        schemas: Optional[Dict[str, CollectionSchema]] = None
    ):
        self.executor = executor
        self.query = query_engine or QueryEngine(executor)
        self.schemas = schemas

    def schema(self, collection: str) -> CollectionSchema:
        return schema_for(collection, self.schemas)

    def insert(self, collection: str, doc: Document):
        """
        Validates the document, then in one batch: adds its id to every field
        index its values select, adds it to the membership set and writes the
        primary slot.  Raises InvalidDocument before any write.
        """
        schema = self.schema(collection)
        schema.validate(doc)
        self._write(schema, doc)

    def update(self, collection: str, doc: Document):
        """
        Replaces a stored document: delete by `doc["id"]`, then insert `doc`.

        Not atomic.  NotFound means nothing was touched.  A failure after the
        delete phase leaves the document absent; the error is re-raised so the
        caller can retry the insert.
        """
        schema = self.schema(collection)
        # The replacement must be insertable before the stored copy is removed.
        schema.validate(doc)
        doc_id = str(doc["id"])

        self.delete(collection, doc_id)
        try:
            self._write(schema, doc)
        except StoreError as e:
            logger.error("Update of %s:%s removed the old document but failed to insert the new one: %s",
                         collection, doc_id, e)
            raise

    def delete(self, collection: str, doc_id: Any):
        """
        Removes a document and every index entry derived from its stored value.
        Raises NotFound when no document is stored under the id.
        """
        schema = self.schema(collection)
        # Index entries come from what is stored, never from the caller.
        current = self.query.find_one(collection, doc_id)
        doc_id = str(doc_id)

        commands = [Command.srem(key, doc_id) for key in schema.index_keys_for(current)]
        commands.append(Command.srem(index_keys.membership_key(collection), doc_id))
        commands.append(Command.delete(index_keys.primary_key(collection, doc_id)))

        try:
            self.executor.execute(commands)
        except StoreError:
            logger.error("Delete of %s:%s may be partially applied", collection, doc_id)
            raise
        logger.info("Deleted %s:%s (%d index entries)", collection, doc_id, len(commands) - 2)

    def _write(self, schema: CollectionSchema, doc: Document):
        collection = schema.name
        doc_id = doc["id"]

        # 1. Field indexes (scalar fields first, then one per tag name)
        commands = [Command.sadd(key, doc_id) for key in schema.index_keys_for(doc)]
        # 2. Membership set
        commands.append(Command.sadd(index_keys.membership_key(collection), doc_id))
        # 3. Primary slot
        commands.append(Command.set(index_keys.primary_key(collection, doc_id), encode_document(doc)))

        try:
            self.executor.execute(commands)
        except StoreError:
            logger.error("Insert of %s:%s may be partially indexed", collection, doc_id)
            raise
        logger.info("Inserted %s:%s (%d index entries)", collection, doc_id, len(commands) - 2)
