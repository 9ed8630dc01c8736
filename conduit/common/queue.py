"""
Conduit has connectors for message broker systems.

Some of the use cases may involve:

- "I just want to publish JSON documents to an exchange"
- "I want to share the work of processing messages between consumers"
- "I want messages I could not handle to land somewhere I can inspect them"

# Brokers

The currently supported brokers include:

- RabbitMQ (AMQP 0-9-1)
"""
from typing import Any, Iterator, Optional

from conduit.common import AbstractClient


Client = AbstractClient
Msg = Any
Symbols = ["ack", "consume", "disconnect", "is_connected", "publish", "publisher", "reject"]


# Any queue wrapper must provide the following methods.


def connect(**kwargs) -> Client:  # pragma: nocover
    raise NotImplementedError


def disconnect(client: Client, **kwargs):  # pragma: nocover
    raise NotImplementedError


def publish(client: Client, *args, **kwargs) -> Optional[Any]:  # pragma: nocover
    raise NotImplementedError


def consume(client: Client, **kwargs) -> Iterator[Msg]:  # pragma: no cover
    raise NotImplementedError


def ack(client: Client, message: Msg) -> Optional[Any]:  # pragma: no cover
    raise NotImplementedError
