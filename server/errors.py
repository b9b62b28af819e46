class StoreError(Exception):
    """Base class for every failure raised by the document layer."""
    pass

class InvalidDocument(StoreError):
    """A document is missing `id` or a collection-specific required field."""
    pass

class InvalidQuery(StoreError):
    """A query object is malformed or asks for an unsupported operator."""
    pass

class NotFound(StoreError):
    pass

class ParseError(StoreError):
    """A stored value is not a valid document encoding."""
    pass

class StoreCommandFailed(StoreError):
    """A store command produced no reply, an error reply, or a reply of the wrong shape."""
    pass

class ProtocolDesync(StoreError):
    """
    The number of replies drained does not match the number of commands issued.
    The connection has been closed and must be re-opened before further use.
    """
    pass

class ConnectionClosed(StoreError):
    pass
