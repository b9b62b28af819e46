import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from redis.exceptions import ResponseError

from errors import ConnectionClosed

logger = logging.getLogger(__name__)

WRONGTYPE = "WRONGTYPE Operation against a key holding the wrong kind of value"

class KeyValueClient(ABC):
    """
    One long-lived connection to the key-value store.

    The command/reply stream is strictly ordered and not reentrant, so every
    issue-and-drain sequence must hold `lock`.  Pipelines returned by
    `pipeline()` follow the redis-py protocol: `execute_command(*args)` queues,
    `execute(raise_on_error=False)` drains one reply per queued command.
    """
    def __init__(self):
        self.lock = threading.RLock()

    @abstractmethod
    def open(self):
        pass

    @abstractmethod
    def close(self):
        pass

    @property
    @abstractmethod
    def closed(self) -> bool:
        pass

    @abstractmethod
    def pipeline(self):
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> bool:
        pass

    @abstractmethod
    def sadd(self, key: str, *members: Any) -> int:
        pass

    @abstractmethod
    def srem(self, key: str, *members: Any) -> int:
        pass

    @abstractmethod
    def smembers(self, key: str) -> Set[str]:
        pass

    @abstractmethod
    def delete(self, *keys: str) -> int:
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        pass

    @abstractmethod
    def flush(self):
        pass

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

class InMemoryPipeline:
    def __init__(self, client: "InMemoryKeyValueClient"):
        self._client = client
        self._stack: List[Tuple[Any, ...]] = []

    def execute_command(self, *args):
        self._stack.append(args)
        return self

    def execute(self, raise_on_error: bool = True) -> List[Any]:
        stack, self._stack = self._stack, []
        replies = []
        for name, *args in stack:
            try:
                replies.append(self._client._dispatch(name, *args))
            except ResponseError as e:
                if raise_on_error:
                    raise
                replies.append(e)
        return replies

    def reset(self):
        self._stack = []

class InMemoryKeyValueClient(KeyValueClient):
    """Process-local store with Redis string and set semantics. Starts open."""
    def __init__(self):
        super().__init__()
        self._data: Dict[str, Union[str, Set[str]]] = {}
        self._closed = False

    def open(self):
        self._closed = False

    def close(self):
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self):
        if self._closed:
            raise ConnectionClosed("In-memory store connection is closed")

    def _set_at(self, key: str, create: bool) -> Optional[Set[str]]:
        value = self._data.get(key)
        if value is None:
            if not create:
                return None
            value = self._data[key] = set()
        if not isinstance(value, set):
            raise ResponseError(WRONGTYPE)
        return value

    def _dispatch(self, name: str, *args):
        self._check_open()
        command = name.upper()
        if command == "GET":
            value = self._data.get(str(args[0]))
            if isinstance(value, set):
                raise ResponseError(WRONGTYPE)
            return value
        elif command == "SET":
            self._data[str(args[0])] = str(args[1])
            return True
        elif command == "SADD":
            members = self._set_at(str(args[0]), create=True)
            before = len(members)
            members.update(str(m) for m in args[1:])
            return len(members) - before
        elif command == "SREM":
            key = str(args[0])
            members = self._set_at(key, create=False)
            if members is None:
                return 0
            removed = 0
            for m in args[1:]:
                if str(m) in members:
                    members.remove(str(m))
                    removed += 1
            if not members:
                # Redis drops empty sets
                del self._data[key]
            return removed
        elif command == "SMEMBERS":
            members = self._set_at(str(args[0]), create=False)
            return set(members) if members else set()
        elif command == "DEL":
            removed = 0
            for key in args:
                if self._data.pop(str(key), None) is not None:
                    removed += 1
            return removed
        else:
            raise ResponseError(f"unknown command '{name}'")

    def pipeline(self) -> InMemoryPipeline:
        self._check_open()
        return InMemoryPipeline(self)

    def get(self, key: str) -> Optional[str]:
        with self.lock:
            return self._dispatch("GET", key)

    def set(self, key: str, value: str) -> bool:
        with self.lock:
            return self._dispatch("SET", key, value)

    def sadd(self, key: str, *members: Any) -> int:
        with self.lock:
            return self._dispatch("SADD", key, *members)

    def srem(self, key: str, *members: Any) -> int:
        with self.lock:
            return self._dispatch("SREM", key, *members)

    def smembers(self, key: str) -> Set[str]:
        with self.lock:
            return self._dispatch("SMEMBERS", key)

    def delete(self, *keys: str) -> int:
        with self.lock:
            return self._dispatch("DEL", *keys)

    def keys(self) -> List[str]:
        with self.lock:
            self._check_open()
            return sorted(self._data.keys())

    def flush(self):
        with self.lock:
            self._check_open()
            self._data.clear()

class RedisKeyValueClient(KeyValueClient):
    """
    redis-py client over a connection pool.  Direct calls and pipelines each
    check a connection out of the pool, so a batch need not run on the socket
    `open()` pinged.  Retries are disabled: a command or batch that fails on
    the wire is sent once and the error surfaces to the caller.
    """
    def __init__(self, host: str = "localhost", port: int = 6379, db: int = 0, connect_timeout: float = 1.5, **kwargs):
        super().__init__()
        self.host = host
        self.port = port
        self.db = db
        self.connect_timeout = connect_timeout
        self._kwargs = kwargs
        self.client = None

    def open(self):
        import redis
        from redis.backoff import NoBackoff
        from redis.retry import Retry
        with self.lock:
            if self.client is not None:
                return
            client = None
            try:
                client = redis.Redis(
                    host=self.host,
                    port=self.port,
                    db=self.db,
                    socket_connect_timeout=self.connect_timeout,
                    decode_responses=True,
                    # A re-sent pipeline would apply its writes twice
                    retry=Retry(NoBackoff(), 0),
                    retry_on_timeout=False,
                    **self._kwargs
                )
                client.ping()
            except redis.exceptions.RedisError as e:
                if client is not None:
                    client.close()
                logger.error("Connection error: %s:%s: %s", self.host, self.port, e)
                raise ConnectionClosed(f"Cannot connect to redis at {self.host}:{self.port}: {e}") from e
            self.client = client
            logger.info("Connected to redis at %s:%s db=%s", self.host, self.port, self.db)

    def close(self):
        with self.lock:
            if self.client is not None:
                self.client.close()
                self.client = None

    @property
    def closed(self) -> bool:
        return self.client is None

    def _require(self):
        if self.client is None:
            raise ConnectionClosed("Redis connection is closed")
        return self.client

    def pipeline(self):
        return self._require().pipeline(transaction=False)

    def get(self, key: str) -> Optional[str]:
        with self.lock:
            return self._require().get(key)

    def set(self, key: str, value: str) -> bool:
        with self.lock:
            return bool(self._require().set(key, value))

    def sadd(self, key: str, *members: Any) -> int:
        with self.lock:
            return self._require().sadd(key, *members)

    def srem(self, key: str, *members: Any) -> int:
        with self.lock:
            return self._require().srem(key, *members)

    def smembers(self, key: str) -> Set[str]:
        with self.lock:
            return self._require().smembers(key)

    def delete(self, *keys: str) -> int:
        with self.lock:
            return self._require().delete(*keys)

    def keys(self) -> List[str]:
        with self.lock:
            return sorted(self._require().scan_iter())

    def flush(self):
        with self.lock:
            self._require().flushdb()

def get_kv_client(store_type: str = "memory", **kwargs) -> KeyValueClient:
    if store_type == "memory":
        return InMemoryKeyValueClient()
    elif store_type == "redis":
        return RedisKeyValueClient(**kwargs)
    else:
        raise ValueError(f"Unknown store type: {store_type}")
