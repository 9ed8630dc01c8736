"""
Provide small JSON-over-HTTP helpers on top of `requests`, plus helpers to
identify the caller of an inbound request.

Any response status above `MAX_OK_STATUS` raises an `HTTPStatusError`
carrying the status code and the response body.
"""
from typing import Any, Mapping, Optional, Tuple

import requests
from requests.structures import CaseInsensitiveDict
import structlog as logging

from conduit.common import WrapperError


_LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5
MAX_OK_STATUS = 210
UNKNOWN_DEVICE = "Unknown device"
UNKNOWN_LOCATION = "Unknown location"

# Checked in order, the first non-empty value wins.
CLIENT_IP_HEADERS = ("True-Client-IP", "X-Forwarded-For", "X-Real-Ip")

Headers = Optional[Mapping[str, str]]
Params = Optional[Mapping[str, str]]


class HTTPStatusError(WrapperError):
    def __init__(self, status_code: int, body: bytes):
        super().__init__(body.decode(errors="replace"))
        self.status_code = status_code
        self.body = body


def _check(response: requests.Response) -> requests.Response:
    _LOGGER.debug("http response", method=response.request.method, url=response.url, status=response.status_code)
    if response.status_code > MAX_OK_STATUS:
        raise HTTPStatusError(response.status_code, response.content)
    return response


def _json(response: requests.Response) -> Any:
    if not response.content:
        return None
    return response.json()


# outbound requests


def get_bytes(
    url: str, headers: Headers = None, params: Params = None, timeout: float = DEFAULT_TIMEOUT
) -> Tuple[bytes, int]:
    """GET `url` and return the raw body together with the status code."""
    response = _check(requests.get(url, headers=headers, params=params, timeout=timeout))
    return response.content, response.status_code


def get(
    url: str, headers: Headers = None, params: Params = None, timeout: float = DEFAULT_TIMEOUT
) -> Tuple[Any, int]:
    """GET `url` and return the decoded JSON body together with the status code."""
    response = _check(requests.get(url, headers=headers, params=params, timeout=timeout))
    return _json(response), response.status_code


def post_json(
    url: str, headers: Headers = None, params: Params = None, payload: Any = None, timeout: float = DEFAULT_TIMEOUT
) -> Tuple[Any, int]:
    """POST `payload` as JSON to `url`.

    Returns
    -------
    Tuple[Any, int]
        The decoded JSON response (None for an empty body) and the status code.
    """
    response = _check(requests.post(url, headers=headers, params=params, json=payload, timeout=timeout))
    return _json(response), response.status_code


def post_form_data(
    url: str,
    params: Params,
    headers: Headers,
    param_name: str,
    file_contents: bytes,
    file_name: str,
    timeout: float = DEFAULT_TIMEOUT,
) -> Tuple[Any, int]:
    """Upload `file_contents` as the multipart form field `param_name`.

    Parameters
    ----------
    params : Optional[Mapping[str, str]]
        Extra form fields sent alongside the file.
    file_name : str
        The file name announced for the uploaded part.
    """
    files = {param_name: (file_name, file_contents)}
    response = _check(requests.post(url, headers=headers, data=dict(params or {}), files=files, timeout=timeout))
    return _json(response), response.status_code


# inbound requests


def get_ip_from_request(headers: Mapping[str, str], remote_addr: str = "") -> str:
    """Return the caller's public IP address.

    Proxy headers take precedence over the socket peer address, whose port is
    stripped when present.
    """
    headers = CaseInsensitiveDict(headers)
    for name in CLIENT_IP_HEADERS:
        value = headers.get(name)
        if value:
            return value

    if remote_addr.startswith("["):
        # [::1]:8080
        return remote_addr[1:].split("]", 1)[0]
    if remote_addr.count(":") == 1:
        return remote_addr.split(":", 1)[0]
    return remote_addr


def get_user_agent_from_request(headers: Mapping[str, str]) -> str:
    return CaseInsensitiveDict(headers).get("User-Agent") or UNKNOWN_DEVICE


def get_isp_location_from_request(headers: Mapping[str, str]) -> str:
    # TODO: resolve the location with a GeoIP database once one is provisioned.
    return UNKNOWN_LOCATION
