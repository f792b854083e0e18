"""Synchronous HTTP requests used to fetch metadata documents.
"""

from urllib.error import HTTPError, URLError
from http.client import HTTPResponse
import urllib.request
import json
import ssl

from . import LAUNCHER_NAME, LAUNCHER_VERSION

from typing import Optional, Dict, Any


__all__ = ["HttpResponse", "HttpError", "http_request", "ssl_context"]


class HttpResponse:
    """Status, body and headers of a response. A status of 0 means that no response
    could be received at all.
    """

    def __init__(self, status: int, data: bytes, headers: Dict[str, str]) -> None:
        self.status = status
        self.data = data
        self.headers = headers

    @classmethod
    def from_response(cls, res: HTTPResponse) -> "HttpResponse":
        return cls(res.status, res.read(), dict(res.getheaders()))

    @classmethod
    def empty(cls) -> "HttpResponse":
        return cls(0, b"null", {})

    def json(self) -> Any:
        """Parse the body as JSON, may raise a JSONDecodeError.
        """
        return json.loads(self.data)

    def text(self) -> str:
        return self.data.decode()

    def __repr__(self) -> str:
        return f"<HttpResponse {self.status}>"


class HttpError(Exception):
    """Raised when the response status isn't 2xx, or when a network error prevented
    receiving any response (the response status is then 0). The underlying error is
    given in `reason`.
    """

    def __init__(self, res: HttpResponse, method: str, url: str, reason: URLError) -> None:
        self.res = res
        self.method = method
        self.url = url
        self.reason = reason

    def __str__(self) -> str:
        return f"{self.method} {self.url}: {self.res.status} ({self.reason})"

    def __repr__(self) -> str:
        return f"<HttpError {self.res}, origin: {self.method} {self.url}, reason: {self.reason}>"


def ssl_context() -> Optional[ssl.SSLContext]:
    """Return an SSL context using certifi's CA bundle if installed, none to use the
    system's default context.
    """
    try:
        import certifi
        return ssl.create_default_context(cafile=certifi.where())
    except ImportError:
        return None


def http_request(method: str, url: str, *,
    data: Optional[bytes] = None,
    headers: Optional[Dict[str, str]] = None,
    accept: Optional[str] = None
) -> HttpResponse:
    """Make a synchronous HTTP request. The timeout is the socket default one.

    :return: The response, its status is 2xx.
    :raises HttpError: The request failed or its status isn't 2xx.
    """

    headers = {} if headers is None else dict(headers)
    if accept is not None:
        headers["Accept"] = accept
    headers.setdefault("User-Agent", f"{LAUNCHER_NAME}/{LAUNCHER_VERSION}")

    try:
        req = urllib.request.Request(url, data, headers, method=method)
        res: HTTPResponse = urllib.request.urlopen(req, context=ssl_context())
        return HttpResponse.from_response(res)
    except HTTPError as error:
        res_error = HttpResponse(error.code, error.read(), dict(error.headers.items()))
        raise HttpError(res_error, method, url, error)
    except URLError as error:
        raise HttpError(HttpResponse.empty(), method, url, error)
