"""**The Conduit API.**

Conduit provides thin, opinionated wrappers over the client libraries of a
few common backing services.

- *InfluxDB*  (`conduit.data.influx`)
- *MongoDB*  (`conduit.data.mongodb`)
- *HTTP*  (`conduit.data.http`)
- *RabbitMQ*  (`conduit.data.rabbitmq`)
- *Redis*  (`conduit.data.redis`)
- *S3*  (`conduit.data.s3`)

Every backend module exposes a `connect` function returning a client whose raw
library client stays reachable at `client.raw_client`.
"""
from conduit.common import AbstractClient, WrapperError
from conduit.settings import Settings, configure, configure_logging


__all__ = ["AbstractClient", "Settings", "WrapperError", "configure", "configure_logging"]
__version__ = "0.1.0"
