class AbstractClient:
    """
    The AbstractClient is a general wrapper structure for data clients with
    pre-existing client libraries.

    The raw client is preserved for the user to manipulate internals as necessary
    while otherwise providing convenience functions on top.
    """

    def __init__(self, raw_client, **kwargs):
        self.raw_client = raw_client
        self.meta = kwargs

    def bind(self, namespace, symbols):
        """Attach the module level functions named in `symbols` as methods."""
        for sym in symbols:
            setattr(self, sym, namespace[sym].__get__(self))
        return self

    def __repr__(self):
        return f"<{type(self).__name__} {self.meta.get('name', '?')}>"


class WrapperError(Exception):
    """
    An error raised by a wrapped client library, annotated with a short
    description of the call that failed.

    The original exception is always chained as `__cause__`.
    """
