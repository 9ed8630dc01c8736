"""
Consume JSON jobs off a RabbitMQ queue, dead-lettering the ones that fail.

## Running the example.

```
terminal 1 $ docker run --rm -p 5672:5672 rabbitmq:3

terminal 2 $ python examples/rabbitmq_consumer.py -vv --host 127.0.0.1 --queue jobs

terminal 3 $ python examples/rabbitmq_consumer.py --host 127.0.0.1 --queue jobs --publish '{"hello": "world"}'
```
"""
import argparse
import json
import sys
from typing import Dict

from conduit import configure_logging
import conduit.data.rabbitmq as Q


def handler(data: Dict):
    if "hello" not in data:
        raise ValueError("unexpected job")
    print(f"received: {data}")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(__name__, description=__doc__, formatter_class=argparse.RawTextHelpFormatter)
    parser.add_argument("-v", "--verbose", action="count", default=0)
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=5672)
    parser.add_argument("--queue", default="jobs")
    parser.add_argument("--publish", metavar="JSON", help="publish a single message and exit")

    cli_args = parser.parse_args(argv)
    configure_logging(cli_args.verbose)
    return cli_args


def main(argv=None):
    cli_args = parse_args(argv)
    client = Q.connect(
        host=cli_args.host,
        port=cli_args.port,
        queue_name=cli_args.queue,
        exchange_name=f"{cli_args.queue}-x",
        routing_key=cli_args.queue,
        reject_queue_name=f"{cli_args.queue}-rejected",
        reject_exchange_name=f"{cli_args.queue}-rejected-x",
        reject_routing_key="rejected",
        prefetch_count=1,
    )
    try:
        if cli_args.publish:
            client.publish(message=json.loads(cli_args.publish))
        else:
            Q.listen(client, handler)
    finally:
        client.disconnect()
    return 0


if __name__ == "__main__":
    __name__ = "rabbitmq_consumer"
    sys.exit(main())
