"""
Provide a synchronous RabbitMQ client.

The currently forecasted usecases are as follows.

1. API publisher: publish a JSON document per request to a direct exchange.
2. Single-threaded listener: perform IO work for incoming messages, rejecting
   the ones that cannot be handled into a dead-letter queue.

## Thread Safety

`pika.BlockingConnection` is not thread safe. Create one client per thread.

## Topology

`connect` declares a durable direct exchange, a durable queue and the binding
between them. When a reject queue is requested, a second durable direct
exchange/queue pair is declared and the main queue dead-letters rejected
messages into it.

    exchange_name --routing_key--> queue_name
                                       | (rejected)
    reject_exchange_name --reject_routing_key--> reject_queue_name
"""
from collections import namedtuple
from contextlib import suppress
from functools import partial
import json
import time
from typing import Any, Callable, Dict, Iterator, Optional

import pika
import pika.exceptions
import structlog as logging

import conduit.common.queue as Q
from conduit.settings import resolve
from conduit.utils import kw_get, kw_get_positive


_LOGGER = logging.getLogger(__name__)

CONTENT_TYPE = "application/json"
EXCHANGE_TYPE = "direct"
# Seconds between checks for the `timeout`/`blocking` options while idle.
POLL_INTERVAL = 0.1
_MISSING = object()


class Message(namedtuple("Message", ["method", "properties", "body"])):
    __slots__ = ()

    @property
    def delivery_tag(self) -> int:
        return self.method.delivery_tag

    @property
    def headers(self) -> Dict[str, Any]:
        return self.properties.headers or {}

    def json(self) -> Any:
        return json.loads(self.body)


# topology


def _declare(channel, exchange: str, queue: str, routing_key: str, arguments: Optional[Dict] = None):
    channel.exchange_declare(exchange=exchange, exchange_type=EXCHANGE_TYPE, durable=True, auto_delete=False)
    channel.queue_declare(queue=queue, durable=True, exclusive=False, auto_delete=False, arguments=arguments)
    channel.queue_bind(queue=queue, exchange=exchange, routing_key=routing_key)
    _LOGGER.debug("declared queue", exchange=exchange, queue=queue, routing_key=routing_key)


def _declare_topology(channel, meta: Dict[str, Any]):
    queue_args = None
    if meta["reject_queue_name"]:
        if not meta["reject_exchange_name"]:
            raise ValueError("`reject_exchange_name` must be provided along with `reject_queue_name`")
        _declare(channel, meta["reject_exchange_name"], meta["reject_queue_name"], meta["reject_routing_key"])
        queue_args = {
            "x-dead-letter-exchange": meta["reject_exchange_name"],
            "x-dead-letter-routing-key": meta["reject_routing_key"],
        }
    _declare(channel, meta["exchange_name"], meta["queue_name"], meta["routing_key"], arguments=queue_args)


# client interface


def connect(**kwargs) -> Q.Client:
    """Connect to a RabbitMQ server and declare the queue topology.

    Parameters
    ----------
    host : str
        The host string of a server. Defaults to 127.0.0.1.
    port : Union[int, str], optional
        Defaults to 5672.
    username : str, optional
        Defaults to "guest".
    password : str, optional
        Defaults to "guest".
    vhost : str, optional
        Defaults to "/".
    queue_name : str
        The queue to declare and consume from by default.
    exchange_name : str
        The direct exchange to declare and publish to by default.
    routing_key : str
        Binds `queue_name` to `exchange_name`.
    reject_queue_name : str, optional
        When set, declare a dead-letter queue for messages rejected off
        `queue_name`. Requires `reject_exchange_name`.
    reject_exchange_name : str, optional
    reject_routing_key : str, optional
    prefetch_count : int, optional
        Limit the number of unacknowledged messages delivered to consumers.
    """
    host = resolve(kwargs, "rabbitmq", "host", default="127.0.0.1")
    port = resolve(kwargs, "rabbitmq", "port", default=5672, cast=int)
    username = resolve(kwargs, "rabbitmq", "username", default="guest")
    password = resolve(kwargs, "rabbitmq", "password", default="guest")
    vhost = resolve(kwargs, "rabbitmq", "vhost", default="/") or "/"
    prefetch_count = resolve(kwargs, "rabbitmq", "prefetch_count", default=None, cast=int)

    meta = {
        "host": host,
        "port": port,
        "vhost": vhost,
        "queue_name": resolve(kwargs, "rabbitmq", "queue_name"),
        "exchange_name": resolve(kwargs, "rabbitmq", "exchange_name"),
        "routing_key": resolve(kwargs, "rabbitmq", "routing_key"),
        "reject_queue_name": resolve(kwargs, "rabbitmq", "reject_queue_name", default=""),
        "reject_exchange_name": resolve(kwargs, "rabbitmq", "reject_exchange_name", default=""),
        "reject_routing_key": resolve(kwargs, "rabbitmq", "reject_routing_key", default=""),
    }

    params = pika.ConnectionParameters(
        host=host,
        port=port,
        virtual_host=vhost,
        credentials=pika.PlainCredentials(username, password),
    )
    _LOGGER.info("connecting to rabbitmq", host=host, port=port, vhost=vhost)
    connection = pika.BlockingConnection(params)
    try:
        channel = connection.channel()
        if prefetch_count is not None:
            channel.basic_qos(prefetch_count=prefetch_count)
        _declare_topology(channel, meta)
    except Exception:
        connection.close()
        raise

    # Make convenience bindings for the client.
    client = Q.Client([connection, channel], name="rabbitmq", **meta)
    return client.bind(globals(), Q.Symbols)


def is_connected(client: Q.Client) -> bool:
    connection, channel = client.raw_client
    return connection.is_open and channel.is_open


def disconnect(client: Q.Client, **kwargs):
    connection, channel = client.raw_client
    _LOGGER.info("disconnecting from rabbitmq", host=client.meta.get("host"))
    if channel.is_open:
        channel.close()
    if connection.is_open:
        connection.close()


def publish(
    client: Q.Client,
    exchange: Optional[str] = None,
    routing_key: Optional[str] = None,
    message: Any = _MISSING,
    headers: Optional[Dict[str, Any]] = None,
):
    """Publish a JSON encoded message.

    Parameters
    ----------
    exchange : str, optional
        Defaults to the exchange declared by `connect`.
    routing_key : str, optional
        Defaults to the routing key declared by `connect`.
    message : Any
        A JSON serializable document.
    headers : dict, optional
        AMQP headers for the message.
    """
    if message is _MISSING:
        raise ValueError("argument `message` must be provided")
    kwargs = {"exchange": exchange, "routing_key": routing_key, "headers": headers}
    exchange = kw_get("exchange", str, kwargs, default=client.meta.get("exchange_name", ""))
    routing_key = kw_get("routing_key", str, kwargs, default=client.meta.get("routing_key", ""))
    headers = kw_get("headers", dict, kwargs, default=None)

    body = json.dumps(message).encode()
    properties = pika.BasicProperties(content_type=CONTENT_TYPE, headers=headers)

    _, channel = client.raw_client
    channel.basic_publish(exchange=exchange, routing_key=routing_key, body=body, properties=properties)
    _LOGGER.debug("published message", exchange=exchange, routing_key=routing_key, size=len(body))


def publisher(client: Q.Client, exchange: str, routing_key: str) -> Callable:
    """Return a `publish` function bound to one exchange and routing key."""
    return partial(publish, client, exchange=exchange, routing_key=routing_key)


def ack(client: Q.Client, message: Message):
    _, channel = client.raw_client
    channel.basic_ack(delivery_tag=message.delivery_tag)


def reject(client: Q.Client, message: Message, requeue: bool = False):
    """Reject a message; without `requeue` it is dead-lettered if a reject queue exists."""
    _, channel = client.raw_client
    channel.basic_reject(delivery_tag=message.delivery_tag, requeue=requeue)


def consume(client: Q.Client, **kwargs) -> Iterator[Optional[Message]]:  # noqa: C901
    """Consume messages off a queue.

    Parameters
    ----------
    client : Q.Client
        Provide a client wrapper that was generated from `connect`.
    queue : str, optional
        The queue to consume from. Defaults to the queue declared by `connect`.
    auto_ack : bool, optional
        When set to True, the broker considers messages acknowledged as soon as
        they are delivered. Otherwise `ack` or `reject` every message.
    blocking : bool, optional
        When set to False, the iterator yields None each time it would
        otherwise wait for a message.
    count : Optional[int], optional
        When set to None, continue to consume messages until interrupted.
        Otherwise, stop after `count` messages.
    timeout : Optional[float], optional
        When set to None, consume continuously.
        Otherwise, consume for a maximum of `timeout` seconds.

    Yields
    ------
    Iterator[Message]
        A Message for each delivery received from the queue.
    """
    # Options
    auto_ack = kw_get("auto_ack", bool, kwargs, default=False)
    blocking = kw_get("blocking", bool, kwargs, default=True)
    count = kw_get_positive("count", kwargs)
    queue = kw_get("queue", str, kwargs, default=client.meta.get("queue_name"))
    timeout = kw_get("timeout", (int, float), kwargs, default=None)
    if not queue:
        raise ValueError("keyword argument `queue` must be provided")

    # Variables
    _, channel = client.raw_client
    deadline = None if timeout is None else time.monotonic() + timeout
    received = 0

    try:
        for method, properties, body in channel.consume(queue, auto_ack=auto_ack, inactivity_timeout=POLL_INTERVAL):
            if method is not None:
                received += 1
                yield Message(method, properties, body)
                if count is not None and received >= count:
                    break
            elif not blocking:
                yield None
            if deadline is not None and time.monotonic() >= deadline:
                break
    finally:
        # Pending deliveries that were never yielded go back to the queue.
        with suppress(pika.exceptions.AMQPError):
            channel.cancel()


# conduit sdk


def listen(client: Q.Client, handler: Callable[[Any], Any], **kwargs) -> int:
    """
    Consume JSON messages and pass each decoded document to `handler`.

    Messages are acknowledged once `handler` returns and rejected (and so
    dead-lettered, when a reject queue is configured) when decoding or
    `handler` raises. Consumption options are the same as `consume`.

    Returns the number of messages that were handled successfully.
    """
    if kwargs.get("auto_ack", False):
        raise ValueError("`listen` acknowledges messages itself, `auto_ack` must not be set")

    handled = 0
    _LOGGER.info("opening consumer", queue=kwargs.get("queue", client.meta.get("queue_name")))
    for message in consume(client, **kwargs):
        if message is None:
            continue
        _LOGGER.debug("received message", size=len(message.body))
        try:
            handler(message.json())
        except Exception:
            _LOGGER.exception("could not handle message", delivery_tag=message.delivery_tag)
            reject(client, message)
        else:
            ack(client, message)
            handled += 1
    return handled
