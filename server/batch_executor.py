import logging
from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from errors import ProtocolDesync, StoreCommandFailed
from kv_client import KeyValueClient

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class Command:
    name: str
    args: Tuple[Any, ...] = ()

    @classmethod
    def get(cls, key: str) -> "Command":
        return cls("GET", (key,))

    @classmethod
    def set(cls, key: str, value: str) -> "Command":
        return cls("SET", (key, value))

    @classmethod
    def sadd(cls, key: str, member: Any) -> "Command":
        return cls("SADD", (key, str(member)))

    @classmethod
    def srem(cls, key: str, member: Any) -> "Command":
        return cls("SREM", (key, str(member)))

    @classmethod
    def smembers(cls, key: str) -> "Command":
        return cls("SMEMBERS", (key,))

    @classmethod
    def delete(cls, key: str) -> "Command":
        return cls("DEL", (key,))

    def __str__(self):
        # Values can be whole documents; keys are enough for log lines
        if self.name == "SET":
            return f"SET {self.args[0]}"
        return " ".join([self.name] + [str(a) for a in self.args])

def reply_is_valid(command: Command, reply: Any) -> bool:
    """Checks a drained reply against the shape its command must produce."""
    if isinstance(reply, Exception):
        return False
    name = command.name.upper()
    if name == "GET":
        return reply is None or isinstance(reply, str)
    if name == "SET":
        return reply is True or reply == "OK"
    if name in ("SADD", "SREM", "DEL"):
        return isinstance(reply, int) and not isinstance(reply, bool)
    if name == "SMEMBERS":
        return isinstance(reply, (set, frozenset, list))
    return reply is not None

class BatchExecutor:
    """
    Issues a sequence of commands through one pipeline, then drains exactly one
    reply per command in issue order.

    A reply count that differs from the command count means the connection's
    reply stream can no longer be trusted: the client is closed and
    ProtocolDesync is raised.  The caller re-opens the client; nothing here
    retries.
    """
    def __init__(self, client: KeyValueClient):
        self.client = client

    def execute(self, commands: Sequence[Command], check_replies: bool = True) -> List[Any]:
        """
        Returns the replies in issue order.  With `check_replies` off, error and
        malformed replies are handed back as-is for the caller to interpret;
        a reply count mismatch is fatal either way.
        """
        commands = list(commands)
        if not commands:
            return []

        with self.client.lock:
            pipe = self.client.pipeline()
            for command in commands:
                pipe.execute_command(command.name, *command.args)

            try:
                replies = pipe.execute(raise_on_error=False)
            except (RedisConnectionError, RedisTimeoutError) as e:
                self._discard_connection()
                logger.error("Transport failed while draining %d replies: %s", len(commands), e)
                raise ProtocolDesync(f"Transport failed while draining {len(commands)} replies: {e}") from e

            if len(replies) != len(commands):
                self._discard_connection()
                logger.error("Protocol desync: issued %d commands, drained %d replies", len(commands), len(replies))
                raise ProtocolDesync(f"Issued {len(commands)} commands but drained {len(replies)} replies")

        if not check_replies:
            return replies

        failures = [
            (command, reply) for command, reply in zip(commands, replies)
            if not reply_is_valid(command, reply)
        ]
        if failures:
            details = "; ".join(f"{command}: {reply!r}" for command, reply in failures)
            logger.error("%d of %d commands failed: %s", len(failures), len(commands), details)
            raise StoreCommandFailed(details)

        return replies

    def execute_one(self, command: Command, check_replies: bool = True) -> Any:
        return self.execute([command], check_replies=check_replies)[0]

    def _discard_connection(self):
        self.client.close()
