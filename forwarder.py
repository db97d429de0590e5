import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from errors import TransportError

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass(frozen=True)
class UpstreamResponse:
    """
    What FBR sent back.

    Exactly one of the two body variants is meaningful: `data` holds the
    decoded JSON when the body parsed, otherwise `content` holds the raw
    bytes as received (`text` is the requests-decoded form of the same body).
    """
    status_code: int
    data: Any = None
    text: Optional[str] = None
    content: bytes = b''
    content_type: Optional[str] = None
    is_json: bool = False

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    @classmethod
    def from_response(cls, response):
        try:
            data = response.json()
        except ValueError:
            data = _MISSING

        content_type = response.headers.get('Content-Type')
        if data is _MISSING:
            return cls(
                response.status_code,
                text=response.text,
                content=response.content,
                content_type=content_type,
            )
        return cls(response.status_code, data=data, content_type=content_type, is_json=True)


def build_headers(token_choice):
    headers = {'Content-Type': 'application/json', 'Accept': 'application/json'}
    headers.update(token_choice.headers())
    return headers


def forward(payload, url, headers, identity=None, timeout=60.0):
    """
    POST the payload to FBR once and wrap whatever comes back.

    Non-2xx answers are returned like any other response. Only failures with
    no HTTP response at all raise TransportError.
    """
    kwargs = {'json': payload, 'headers': headers, 'timeout': timeout, 'verify': True}
    if identity is not None:
        kwargs['cert'] = identity.requests_cert

    logger.info("Forwarding invoice to %s", url)
    try:
        response = requests.post(url, **kwargs)
    except requests.exceptions.RequestException as e:
        if e.response is not None:
            logger.warning("Upstream %s failed with HTTP %s", url, e.response.status_code)
            return UpstreamResponse.from_response(e.response)
        logger.error("Upstream %s unreachable: %s", url, e)
        raise TransportError(str(e), cause=e) from e

    logger.info("Upstream %s answered HTTP %s", url, response.status_code)
    return UpstreamResponse.from_response(response)
