from typing import Any, Type


def kw_get(key: str, kw_type: Type, kwargs, **_kwargs) -> Any:
    strict = _kwargs.get("strict", True)

    # An explicit None falls back to the default when there is one.
    if kwargs.get(key) is None and "default" in _kwargs:
        return _kwargs["default"]
    if key in kwargs:
        value = kwargs[key]
        if strict and not isinstance(value, kw_type):
            raise ValueError(f"expected keyword argument `{key}: {kw_type}`, " f"instead got `{key}: {type(value)}`")
        return value
    else:
        raise ValueError(f"keyword argument `{key}: {kw_type}` must be provided")


def kw_get_positive(key: str, kwargs) -> Any:
    result = kw_get(key, int, kwargs, default=None)
    if isinstance(result, int) and result <= 0:
        raise ValueError(f"keyword argument `{key}` must be greater than 0 " "if provided")
    return result
