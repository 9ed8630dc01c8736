import os


_BACKENDS = []


def _get_backends():
    global _BACKENDS
    _BACKENDS.extend([backend.lower() for backend in os.getenv("TEST_BACKENDS", "").split(" ") if backend])
    if not _BACKENDS:
        _BACKENDS = ["none"]


def should_skip(backend):
    """Determine whether a live backend test should be skipped or not.

    Live tests talk to real servers, so they only run for the backends named
    in the space separated environment variable `TEST_BACKENDS`. Setting it
    to "all" runs every live test. Unit tests never consult this switch.

    e.g.

    TEST_BACKENDS="all"

    TEST_BACKENDS="redis s3"

    TEST_BACKENDS="rabbitmq"
    """
    if not _BACKENDS:
        _get_backends()
    if "all" in _BACKENDS:
        return False
    return backend.lower() not in _BACKENDS
