"""
Provide a Redis client with a flat set of command wrappers.

Every wrapper borrows a connection from the client's pool for the duration of
a single command, which is the discipline `redis.Redis` already follows.

Library errors are re-raised as a `WrapperError` naming the failed command.
Missing keys are returned as `None` rather than raising.
"""
from contextlib import contextmanager
from typing import Any, Dict, List, Mapping, Optional, Union

import redis
import structlog as logging

from conduit.common import WrapperError
import conduit.common.kv as KV
from conduit.settings import resolve


_LOGGER = logging.getLogger(__name__)

READ_TIMEOUT = 2
WRITE_TIMEOUT = 2
POOL_MAX_CONNECTIONS = 5
POOL_HEALTH_CHECK_INTERVAL = 60

Symbols = KV.Symbols + [
    "disconnect",
    "ping",
    "get",
    "set",
    "hget",
    "hset",
    "hgetall",
    "hsetall",
    "hcacheall",
    "hdel",
    "get_string",
    "get_strings",
    "set_string",
    "expire",
    "ttl",
    "exists",
    "delete",
    "get_keys",
    "incr",
    "publish",
    "lpush",
    "lpop",
    "rpush",
    "rpop",
    "lrange",
    "llen",
]


@contextmanager
def _reraise(message: str):
    try:
        yield
    except redis.RedisError as e:
        raise WrapperError(f"{message}: {e}") from e


def _decode(value: Optional[bytes]) -> Optional[str]:
    if isinstance(value, bytes):
        return value.decode()
    return value


def _connection_kwargs(kwargs) -> Dict[str, Any]:
    return {
        "host": resolve(kwargs, "redis", "host", default="127.0.0.1"),
        "port": resolve(kwargs, "redis", "port", default=6379, cast=int),
        "password": resolve(kwargs, "redis", "password", default=None) or None,
        "db": resolve(kwargs, "redis", "db", default=0, cast=int),
    }


def _make_client(conn: redis.Redis, **meta) -> KV.Client:
    # Make convenience bindings for the client.
    client = KV.Client(conn, name="redis", **meta)
    client.bind(globals(), Symbols)

    try:
        with _reraise("can not initialize redis client"):
            conn.ping()
    except WrapperError:
        conn.close()
        if meta.get("pooled"):
            conn.connection_pool.disconnect()
        raise
    _LOGGER.info("connected to redis", host=meta["host"], port=meta["port"], db=meta["db"])
    return client


# client interface


def connect(*args, **kwargs) -> KV.Client:
    """Connect to a Redis server with a single connection.

    Parameters
    ----------
    host : str
        The host string of a server (e.g. redis.service.consul)
    port : Union[int, str], optional
        The Redis port. Defaults to 6379.
    password : str, optional
        Authenticate with this password when set.
    db : Union[int, str], optional
        The redis db. Defaults to 0.
    """
    conn_args = _connection_kwargs(kwargs)
    conn = redis.Redis(
        **conn_args,
        socket_timeout=READ_TIMEOUT,
        socket_connect_timeout=None,
        single_connection_client=True,
    )
    return _make_client(conn, **conn_args)


def connect_pool(*args, **kwargs) -> KV.Client:
    """Connect to a Redis server through a small connection pool.

    Accepts the same parameters as `connect`. The pool holds at most
    `POOL_MAX_CONNECTIONS` connections and pings connections that have been
    idle for longer than `POOL_HEALTH_CHECK_INTERVAL` seconds before reuse.
    """
    conn_args = _connection_kwargs(kwargs)
    pool = redis.ConnectionPool(
        **conn_args,
        max_connections=POOL_MAX_CONNECTIONS,
        health_check_interval=POOL_HEALTH_CHECK_INTERVAL,
        socket_timeout=WRITE_TIMEOUT,
    )
    return _make_client(redis.Redis(connection_pool=pool), pooled=True, **conn_args)


def disconnect(client: KV.Client, *args, **kwargs):
    _LOGGER.info("disconnecting from redis", host=client.meta.get("host"))
    client.raw_client.close()
    if client.meta.get("pooled"):
        client.raw_client.connection_pool.disconnect()


def ping(client: KV.Client) -> bool:
    with _reraise("cannot ping db"):
        return client.raw_client.ping()


# scalar commands


def get(client: KV.Client, key: str) -> Optional[bytes]:
    with _reraise(f"error getting key {key}"):
        return client.raw_client.get(key)


def set(client: KV.Client, key: str, value: bytes) -> bool:
    with _reraise(f"error setting key {key} to {value!r}"):
        return client.raw_client.set(key, value)


def get_string(client: KV.Client, key: str) -> Optional[str]:
    return _decode(get(client, key))


def get_strings(client: KV.Client, *keys: str) -> List[Optional[str]]:
    """Fetch several string values at once, `None` for each missing key."""
    with _reraise(f"error getting keys {', '.join(keys)}"):
        return [_decode(value) for value in client.raw_client.mget(keys)]


def set_string(client: KV.Client, key: str, value: str) -> bool:
    with _reraise(f"error setting key {key} to {value}"):
        return client.raw_client.set(key, value)


def incr(client: KV.Client, key: str) -> int:
    with _reraise(f"error increasing the key {key}"):
        return client.raw_client.incr(key)


# key commands


def expire(client: KV.Client, key: str, ttl: int) -> bool:
    with _reraise(f"error setting expiry of key {key}"):
        return client.raw_client.expire(key, ttl)


def ttl(client: KV.Client, key: str) -> int:
    """Seconds to live for `key`; -1 without expiry, -2 when missing."""
    with _reraise(f"error getting ttl of key {key}"):
        return client.raw_client.ttl(key)


def exists(client: KV.Client, key: str) -> bool:
    with _reraise(f"error checking if key {key} exists"):
        return bool(client.raw_client.exists(key))


def delete(client: KV.Client, key: str) -> int:
    with _reraise(f"error deleting the key {key}"):
        return client.raw_client.delete(key)


def get_keys(client: KV.Client, pattern: str) -> List[str]:
    """Collect every key matching `pattern` by walking the SCAN cursor."""
    keys = []
    cursor = 0
    with _reraise(f"error retrieving '{pattern}' keys"):
        while True:
            cursor, batch = client.raw_client.scan(cursor, match=pattern)
            keys.extend(_decode(key) for key in batch)
            if cursor == 0:
                break
    _LOGGER.debug("scanned keys", pattern=pattern, count=len(keys))
    return keys


def publish(client: KV.Client, channel: str, value: str) -> int:
    """Publish `value` on `channel` and return the number of receivers."""
    with _reraise(f"error publishing the key {channel}"):
        return client.raw_client.publish(channel, value)


# hash commands


def hget(client: KV.Client, key: str, field: str) -> Optional[str]:
    with _reraise(f"error getting key {key}"):
        return _decode(client.raw_client.hget(key, field))


def hset(client: KV.Client, key: str, field: str, value: str) -> int:
    with _reraise(f"error setting key {key} to hash field {field} with value {value}"):
        return client.raw_client.hset(key, field, value)


def hgetall(client: KV.Client, key: str) -> Dict[str, str]:
    with _reraise(f"error getting key {key}"):
        result = client.raw_client.hgetall(key)
    return {_decode(field): _decode(value) for field, value in result.items()}


def hsetall(client: KV.Client, key: str, data: Mapping[str, str]) -> int:
    if not data:
        return 0
    with _reraise(f"error setting key {key} to hash fields {', '.join(data)}"):
        return client.raw_client.hset(key, mapping=dict(data))


def hcacheall(client: KV.Client, key: str, data: Mapping[str, str], expiry: int) -> bool:
    """Set every field of `data` on the hash `key`, then expire it after `expiry` seconds."""
    hsetall(client, key, data)
    return expire(client, key, expiry)


def hdel(client: KV.Client, key: str, field: str) -> int:
    with _reraise(f"error deleting field {field} of the key {key}"):
        return client.raw_client.hdel(key, field)


# list commands


def lpush(client: KV.Client, key: str, value: str) -> int:
    with _reraise(f"error setting list {key} from left with value {value}"):
        return client.raw_client.lpush(key, value)


def lpop(client: KV.Client, key: str) -> Optional[str]:
    with _reraise(f"error popping list {key} from left"):
        return _decode(client.raw_client.lpop(key))


def rpush(client: KV.Client, key: str, value: str) -> int:
    with _reraise(f"error setting list {key} from right with value {value}"):
        return client.raw_client.rpush(key, value)


def rpop(client: KV.Client, key: str) -> Optional[str]:
    with _reraise(f"error popping list {key} from right"):
        return _decode(client.raw_client.rpop(key))


def lrange(client: KV.Client, key: str, start: int, end: int) -> List[str]:
    with _reraise(f"error getting range ({start} - {end}) of list {key}"):
        return [_decode(value) for value in client.raw_client.lrange(key, start, end)]


def llen(client: KV.Client, key: str) -> int:
    with _reraise(f"error getting length of list {key}"):
        return client.raw_client.llen(key)


# kv interface


def kv_get(client: KV.Client, name: str, **kwargs) -> Optional[bytes]:
    return get(client, name)


def kv_set(client: KV.Client, name, value: Union[bytes, str], **kwargs) -> Optional[Any]:
    """
    Mirror the functionality of the raw clients' set method and return the
    client itself.
    """
    with _reraise(f"error setting key {name}"):
        client.raw_client.set(name, value, **kwargs)
    return client


def kv_pop(client: KV.Client, name: str, *args, **kwargs) -> Optional[Any]:
    return delete(client, name)
