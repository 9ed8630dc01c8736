"""
Provide an InfluxDB (1.x) client over HTTP or UDP.

UDP clients can only write points; queries need an HTTP client.

Points are written at microsecond precision.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from influxdb import InfluxDBClient
from influxdb.line_protocol import quote_ident
from influxdb.resultset import ResultSet
import structlog as logging

from conduit.common import AbstractClient
from conduit.settings import resolve


_LOGGER = logging.getLogger(__name__)

Client = AbstractClient
TIME_PRECISION = "u"
Symbols = [
    "close",
    "count_fields",
    "create_db",
    "create_super_user",
    "create_user",
    "delete_all",
    "get_by_field",
    "insert",
    "insert_batch",
    "insert_batch_with_time",
    "query",
    "use_db",
]


def _resolve_host(kwargs) -> str:
    # Accept HTTP-style hosts such as "http://metrics.local".
    host = resolve(kwargs, "influx", "host", default="127.0.0.1")
    if "://" in host:
        host = host.split("://", 1)[1]
    return host


def _make_client(raw_client: InfluxDBClient, **meta) -> Client:
    client = Client(raw_client, name="influx", **meta)
    return client.bind(globals(), Symbols)


# client interface


def connect_udp(*args, **kwargs) -> Client:
    """Create a client that writes points over UDP.

    Parameters
    ----------
    host : str
        The host string of a server.
    port : Union[int, str], optional
        The UDP port of the server's UDP listener. Defaults to 8089.
    """
    host = _resolve_host(kwargs)
    if "port" in kwargs:
        port = int(kwargs["port"])
    else:
        port = resolve(kwargs, "influx", "udp_port", default=8089, cast=int)

    raw_client = InfluxDBClient(host=host, use_udp=True, udp_port=port)
    _LOGGER.info("created influx udp client", host=host, port=port)
    return _make_client(raw_client, host=host, port=port, transport="udp")


def connect_http(*args, **kwargs) -> Client:
    """Create a client that talks to the InfluxDB HTTP API.

    Parameters
    ----------
    host : str
        The host string of a server.
    port : Union[int, str], optional
        The HTTP port. Defaults to 8086.
    username : str, optional
    password : str, optional
    """
    host = _resolve_host(kwargs)
    port = resolve(kwargs, "influx", "port", default=8086, cast=int)
    username = resolve(kwargs, "influx", "username", default="root")
    password = resolve(kwargs, "influx", "password", default="root")

    raw_client = InfluxDBClient(host=host, port=port, username=username, password=password)
    _LOGGER.info("created influx http client", host=host, port=port)
    return _make_client(raw_client, host=host, port=port, transport="http")


def close(client: Client):
    client.raw_client.close()


def query(client: Client, dbname: str, command: str, **kwargs) -> Union[ResultSet, List[ResultSet]]:
    """Run an InfluxQL `command` against `dbname`.

    Extra keyword arguments are forwarded to `InfluxDBClient.query`. Errors
    reported by the server raise `InfluxDBClientError`.
    """
    _LOGGER.debug("influx query", database=dbname, command=command)
    return client.raw_client.query(command, database=dbname, **kwargs)


def create_db(client: Client, dbname: str):
    client.raw_client.create_database(dbname)


def use_db(client: Client, dbname: str):
    client.raw_client.switch_database(dbname)


def create_user(client: Client, username: str, password: str, dbname: Optional[str] = None):
    client.raw_client.create_user(username, password)


def create_super_user(client: Client, username: str, password: str, dbname: Optional[str] = None):
    create_user(client, username, password, dbname)
    client.raw_client.grant_admin_privileges(username)


def count_fields(client: Client, dbname: str, value: str, measurement: str) -> ResultSet:
    return query(client, dbname, f"SELECT COUNT({quote_ident(value)}) FROM {quote_ident(measurement)}")


def get_by_field(client: Client, dbname: str, field: str) -> ResultSet:
    return query(client, dbname, f"SELECT * FROM {quote_ident(dbname)}..{quote_ident(field)}")


def delete_all(client: Client, dbname: str, measurement: str) -> ResultSet:
    return query(client, dbname, f"DELETE FROM {quote_ident(measurement)}", method="POST")


def insert(client: Client, dbname: str, measurement: str, key: str, value: Any) -> bool:
    """Write a single field `key=value` to `measurement`, stamped by the server."""
    point = {"measurement": measurement, "fields": {key: value}}
    return client.raw_client.write_points([point], database=dbname)


def insert_batch_with_time(
    client: Client,
    dbname: str,
    measurement: str,
    tag: str,
    tag_name: str,
    fields: Dict[str, Any],
    timestamp: datetime,
) -> bool:
    """Write one point to `measurement`, tagged `{tag: tag_name}`, at `timestamp`.

    Parameters
    ----------
    fields : Dict[str, Any]
        Field values of the point; at least one is required.
    timestamp : datetime
        Naive datetimes are taken as UTC.
    """
    if not fields:
        raise ValueError("a point requires at least one field")

    point = {
        "measurement": measurement,
        "tags": {tag: tag_name},
        "fields": fields,
        "time": timestamp,
    }
    return client.raw_client.write_points([point], database=dbname, time_precision=TIME_PRECISION)


def insert_batch(
    client: Client, dbname: str, measurement: str, tag: str, tag_name: str, fields: Dict[str, Any]
) -> bool:
    """Write one point like `insert_batch_with_time`, stamped with the current time."""
    now = datetime.now(timezone.utc)
    return insert_batch_with_time(client, dbname, measurement, tag, tag_name, fields, now)
