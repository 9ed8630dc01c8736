import logging as _stdlib_logging
import os
from typing import Any, Dict, Optional

import structlog


SETTINGS_KEY = "configured"
_MISSING = object()


class Settings:
    """
    Control the management and lifecycle of any Conduit settings.
    """

    settings: Dict[str, Any] = {SETTINGS_KEY: False}

    def configure(self, **kwargs):
        """
        Configure Conduit for settings like backend hosts and credentials.

        Keys are namespaced by backend, e.g. `redis_host` or `mongodb_timeout`.
        By doing so, the Conduit API allows users to instantiate clients on
        demand without requiring the user to pass around settings.
        """
        # Generic Settings.
        Settings.settings.update(kwargs)
        Settings.settings[SETTINGS_KEY] = True

    def reset(self):
        Settings.settings.clear()
        Settings.settings[SETTINGS_KEY] = False


def configure(**kwargs):
    Settings().configure(**kwargs)


def resolve(
    kwargs: Dict[str, Any], backend: str, key: str, default: Any = _MISSING, cast=None, kwarg: Optional[str] = None
) -> Any:
    """Resolve a connection parameter for a backend.

    The lookup order is:

    1. the keyword argument `kwarg` (or `key`) given to the call,
    2. the configured setting `<backend>_<key>`,
    3. the environment variable `<BACKEND>_<KEY>`,
    4. `default`.

    A ValueError is raised if none of them provide a value.
    """
    name = f"{backend}_{key}"
    kwarg = kwarg or key
    if kwarg in kwargs:
        value = kwargs[kwarg]
    elif name in Settings.settings:
        value = Settings.settings[name]
    elif name.upper() in os.environ:
        value = os.environ[name.upper()]
    elif default is not _MISSING:
        return default
    else:
        raise ValueError(f"keyword argument `{kwarg}` must be provided for {backend}")

    if cast is not None and value is not None:
        value = cast(value)
    return value


def configure_logging(verbosity: int = 0):
    """
    Install a structlog configuration that drops events below a level picked
    from `verbosity` (0: warning, 1: info, 2+: debug).
    """
    levels = [_stdlib_logging.WARNING, _stdlib_logging.INFO, _stdlib_logging.DEBUG]
    level = levels[min(max(verbosity, 0), len(levels) - 1)]
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )
    return level
