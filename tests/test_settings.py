import logging

import pytest

import conduit
from conduit.common import AbstractClient
from conduit.settings import SETTINGS_KEY, Settings, resolve
from conduit.utils import kw_get, kw_get_positive


def test_resolve_order(monkeypatch):
    monkeypatch.setenv("REDIS_HOST", "from-env")
    assert resolve({}, "redis", "host", default="fallback") == "from-env"

    conduit.configure(redis_host="from-settings")
    assert Settings.settings[SETTINGS_KEY]
    assert resolve({}, "redis", "host", default="fallback") == "from-settings"
    assert resolve({"host": "from-kwargs"}, "redis", "host", default="fallback") == "from-kwargs"


def test_resolve_defaults_and_casts(monkeypatch):
    monkeypatch.delenv("MONGODB_PORT", raising=False)
    assert resolve({}, "mongodb", "port", default=27017, cast=int) == 27017

    monkeypatch.setenv("MONGODB_PORT", "27018")
    assert resolve({}, "mongodb", "port", default=27017, cast=int) == 27018
    assert resolve({"port": None}, "mongodb", "port", default=27017, cast=int) is None


def test_resolve_required(monkeypatch):
    monkeypatch.delenv("RABBITMQ_QUEUE_NAME", raising=False)
    with pytest.raises(ValueError, match="queue_name"):
        resolve({}, "rabbitmq", "queue_name")


def test_configure_stores_values_as_given():
    conduit.configure(influx_host="http://metrics.local")
    assert Settings.settings["influx_host"] == "http://metrics.local"


def test_resolve_explicit_kwarg_name(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "from-env")
    assert resolve({}, "aws", "access_key_id", kwarg="aws_access_key_id") == "from-env"
    assert resolve({"aws_access_key_id": "AKIA"}, "aws", "access_key_id", kwarg="aws_access_key_id") == "AKIA"
    # Only the explicit name is read from the call.
    assert resolve({"access_key_id": "AKIA"}, "aws", "access_key_id", kwarg="aws_access_key_id") == "from-env"


def test_reset():
    conduit.configure(redis_db=3)
    Settings().reset()
    assert Settings.settings == {SETTINGS_KEY: False}


@pytest.mark.parametrize(
    "verbosity, level", [(-1, logging.WARNING), (0, logging.WARNING), (1, logging.INFO), (5, logging.DEBUG)]
)
def test_configure_logging(verbosity, level):
    assert conduit.configure_logging(verbosity) == level


def test_client_bind():
    def double(client, value):
        return client.meta["factor"] * value

    client = AbstractClient(object(), name="test", factor=2).bind({"double": double}, ["double"])
    assert client.double(4) == 8
    assert repr(client) == "<AbstractClient test>"


def test_kw_get():
    assert kw_get("name", str, {"name": "jobs"}) == "jobs"
    assert kw_get("name", str, {}, default=None) is None
    assert kw_get("name", str, {"name": None}, default="jobs") == "jobs"
    assert kw_get("name", str, {"name": 5}, strict=False) == 5
    with pytest.raises(ValueError):
        kw_get("name", str, {"name": 5})
    with pytest.raises(ValueError):
        kw_get("name", str, {})

    assert kw_get_positive("count", {}) is None
    assert kw_get_positive("count", {"count": None}) is None
    assert kw_get_positive("count", {"count": 2}) == 2
    with pytest.raises(ValueError):
        kw_get_positive("count", {"count": 0})
