import os
from unittest import mock

import pytest
import redis

from conduit import configure
from conduit.common import WrapperError
import conduit.data.redis as KV
from tests import should_skip


live = pytest.mark.skipif(should_skip("redis"), reason=f"flag set to skip live {__name__}")

HOST = os.getenv("REDIS_HOST", "127.0.0.1")
PORT = os.getenv("REDIS_PORT", "6379")


@pytest.fixture
def no_redis_env(monkeypatch):
    for name in ("REDIS_HOST", "REDIS_PORT", "REDIS_PASSWORD", "REDIS_DB"):
        monkeypatch.delenv(name, raising=False)


def test_connect_pings_with_timeouts(no_redis_env):
    with mock.patch.object(redis, "Redis") as raw_redis:
        client = KV.connect(host="cache", port="6380", password="secret")

    raw_redis.assert_called_once_with(
        host="cache",
        port=6380,
        password="secret",
        db=0,
        socket_timeout=KV.READ_TIMEOUT,
        socket_connect_timeout=None,
        single_connection_client=True,
    )
    raw_redis.return_value.ping.assert_called_once_with()
    assert client.raw_client is raw_redis.return_value
    assert client.meta["name"] == "redis"


def test_connect_failure(no_redis_env):
    with mock.patch.object(redis, "Redis") as raw_redis:
        raw_redis.return_value.ping.side_effect = redis.ConnectionError("refused")
        with pytest.raises(WrapperError, match="can not initialize redis client") as excinfo:
            KV.connect(host="cache")
    assert isinstance(excinfo.value.__cause__, redis.ConnectionError)
    raw_redis.return_value.close.assert_called_once_with()


def test_connect_pool_failure_releases_pool(no_redis_env):
    with mock.patch.object(redis, "ConnectionPool"), mock.patch.object(redis, "Redis") as raw_redis:
        raw_redis.return_value.ping.side_effect = redis.ConnectionError("refused")
        with pytest.raises(WrapperError, match="can not initialize redis client"):
            KV.connect_pool(host="cache")
    raw_redis.return_value.close.assert_called_once_with()
    raw_redis.return_value.connection_pool.disconnect.assert_called_once_with()


def test_connect_pool(no_redis_env):
    with mock.patch.object(redis, "ConnectionPool") as pool, mock.patch.object(redis, "Redis") as raw_redis:
        client = KV.connect_pool(host="cache", db="2")

    pool.assert_called_once_with(
        host="cache",
        port=6379,
        password=None,
        db=2,
        max_connections=5,
        health_check_interval=60,
        socket_timeout=KV.WRITE_TIMEOUT,
    )
    raw_redis.assert_called_once_with(connection_pool=pool.return_value)
    assert client.meta["pooled"]

    client.disconnect()
    raw_redis.return_value.close.assert_called_once_with()
    raw_redis.return_value.connection_pool.disconnect.assert_called_once_with()


def test_connect_uses_configured_settings(no_redis_env):
    configure(redis_host="configured-host", redis_port=7000)
    with mock.patch.object(redis, "Redis") as raw_redis:
        KV.connect()
    _, kwargs = raw_redis.call_args
    assert kwargs["host"] == "configured-host"
    assert kwargs["port"] == 7000


def test_bound_methods_forward(client, raw):
    client.bind(vars(KV), KV.Symbols)
    raw.get.return_value = b"world"

    assert client.get("hello") == b"world"
    assert KV.get(client, "hello") == b"world"
    assert raw.get.call_count == 2


def test_ping(client, raw):
    raw.ping.return_value = True
    assert KV.ping(client) is True

    raw.ping.side_effect = redis.TimeoutError("slow")
    with pytest.raises(WrapperError, match="cannot ping db"):
        KV.ping(client)


def test_disconnect_single_connection(client, raw):
    KV.disconnect(client)
    raw.close.assert_called_once_with()
    raw.connection_pool.disconnect.assert_not_called()


def test_missing_keys_are_none(client, raw):
    raw.get.return_value = None
    raw.lpop.return_value = None
    raw.hget.return_value = None

    assert KV.get(client, "missing") is None
    assert KV.get_string(client, "missing") is None
    assert KV.lpop(client, "missing") is None
    assert KV.hget(client, "missing", "field") is None


def test_errors_are_wrapped(client, raw):
    raw.get.side_effect = redis.ResponseError("WRONGTYPE")
    with pytest.raises(WrapperError, match="error getting key hello") as excinfo:
        KV.get(client, "hello")
    assert isinstance(excinfo.value.__cause__, redis.ResponseError)


def test_strings_are_decoded(client, raw):
    raw.get.return_value = b"value"
    raw.mget.return_value = [b"a", None, b"c"]
    raw.hgetall.return_value = {b"f1": b"v1", b"f2": b"v2"}
    raw.lrange.return_value = [b"x", b"y"]

    assert KV.get_string(client, "k") == "value"
    assert KV.get_strings(client, "k1", "k2", "k3") == ["a", None, "c"]
    raw.mget.assert_called_once_with(("k1", "k2", "k3"))
    assert KV.hgetall(client, "h") == {"f1": "v1", "f2": "v2"}
    assert KV.lrange(client, "l", 0, -1) == ["x", "y"]
    raw.lrange.assert_called_once_with("l", 0, -1)


def test_hash_commands(client, raw):
    KV.hset(client, "h", "f", "v")
    raw.hset.assert_called_with("h", "f", "v")

    KV.hsetall(client, "h", {"a": "1", "b": "2"})
    raw.hset.assert_called_with("h", mapping={"a": "1", "b": "2"})

    KV.hdel(client, "h", "a")
    raw.hdel.assert_called_once_with("h", "a")
    raw.delete.assert_not_called()


def test_hsetall_empty_is_noop(client, raw):
    assert KV.hsetall(client, "h", {}) == 0
    raw.hset.assert_not_called()


def test_hcacheall_sets_then_expires(client, raw):
    KV.hcacheall(client, "session", {"user": "1"}, 30)
    assert raw.method_calls == [
        mock.call.hset("session", mapping={"user": "1"}),
        mock.call.expire("session", 30),
    ]


def test_hcacheall_stops_on_failure(client, raw):
    raw.hset.side_effect = redis.ConnectionError("down")
    with pytest.raises(WrapperError):
        KV.hcacheall(client, "session", {"user": "1"}, 30)
    raw.expire.assert_not_called()


def test_get_keys_walks_cursor(client, raw):
    raw.scan.side_effect = [(17, [b"user:1", b"user:2"]), (4, []), (0, [b"user:3"])]

    assert KV.get_keys(client, "user:*") == ["user:1", "user:2", "user:3"]
    assert raw.scan.call_args_list == [
        mock.call(0, match="user:*"),
        mock.call(17, match="user:*"),
        mock.call(4, match="user:*"),
    ]


def test_scalar_and_list_commands(client, raw):
    raw.exists.return_value = 1
    raw.ttl.return_value = -2
    raw.incr.return_value = 3
    raw.publish.return_value = 2
    raw.llen.return_value = 5
    raw.rpop.return_value = b"tail"

    assert KV.exists(client, "k") is True
    assert KV.ttl(client, "k") == -2
    assert KV.incr(client, "counter") == 3
    assert KV.publish(client, "events", "hello") == 2
    assert KV.llen(client, "l") == 5
    assert KV.rpop(client, "l") == "tail"

    KV.set(client, "k", b"\x00\x01")
    raw.set.assert_called_with("k", b"\x00\x01")
    KV.set_string(client, "k", "v")
    raw.set.assert_called_with("k", "v")
    KV.lpush(client, "l", "head")
    raw.lpush.assert_called_once_with("l", "head")
    KV.rpush(client, "l", "tail")
    raw.rpush.assert_called_once_with("l", "tail")
    KV.expire(client, "k", 10)
    raw.expire.assert_called_once_with("k", 10)


def test_kv_interface(client, raw):
    assert KV.kv_set(client, "hello", "world", ex=5) is client
    raw.set.assert_called_once_with("hello", "world", ex=5)

    KV.kv_pop(client, "hello")
    raw.delete.assert_called_once_with("hello")


@live
def test_basic_kv():
    client = KV.connect(host=HOST, port=PORT)
    client.kv_pop("hello")
    assert not client.kv_get("hello")
    client.kv_set("hello", "world")
    assert client.kv_get("hello") == b"world"


@live
def test_pooled_commands():
    client = KV.connect_pool(host=HOST, port=PORT)
    try:
        client.delete("conduit:list")
        client.rpush("conduit:list", "b")
        client.lpush("conduit:list", "a")
        assert client.lrange("conduit:list", 0, -1) == ["a", "b"]
        assert client.llen("conduit:list") == 2

        client.delete("conduit:hash")
        client.hcacheall("conduit:hash", {"a": "1", "b": "2"}, 60)
        assert client.hgetall("conduit:hash") == {"a": "1", "b": "2"}
        assert 0 < client.ttl("conduit:hash") <= 60
        client.hdel("conduit:hash", "a")
        assert client.hgetall("conduit:hash") == {"b": "2"}

        assert "conduit:hash" in client.get_keys("conduit:*")
    finally:
        client.delete("conduit:list")
        client.delete("conduit:hash")
        client.disconnect()
