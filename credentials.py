import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

SOURCE_OVERRIDE = 'override'
SOURCE_ENV = 'env'
SOURCE_HEADER = 'header'
SOURCE_NONE = 'none'

_BEARER_PREFIX = 'bearer '


@dataclass(frozen=True)
class HeaderToken:
    """Result of parsing a caller's Authorization header"""
    token: Optional[str] = None

    @property
    def present(self):
        return self.token is not None


@dataclass(frozen=True)
class TokenChoice:
    source: str
    token: Optional[str] = None

    @property
    def preview(self):
        return mask_token(self.token)

    def headers(self):
        if not self.token:
            return {}
        return {'Authorization': f'Bearer {self.token}'}


def parse_authorization(value) -> HeaderToken:
    """
    Pull the token out of an Authorization header value.

    'Bearer abc' -> 'abc'. A value without the Bearer prefix is taken as the
    raw token. Blank values and a bare 'Bearer' yield no token.
    """
    if value is None:
        return HeaderToken()
    value = value.strip()
    if not value:
        return HeaderToken()

    if value.lower().startswith(_BEARER_PREFIX):
        value = value[len(_BEARER_PREFIX):].strip()
    elif value.lower() == 'bearer':
        value = ''

    return HeaderToken(value or None)


def mask_token(token):
    """First 4 and last 4 characters; short tokens are returned as is."""
    if not token:
        return ''
    if len(token) <= 8:
        return token
    return f'{token[:4]}...{token[-4:]}'


def choose_token(override_token=None, env_token=None, prefer_env_token=False, authorization=None) -> TokenChoice:
    caller = parse_authorization(authorization)

    if override_token:
        return TokenChoice(SOURCE_OVERRIDE, override_token)
    if prefer_env_token and env_token:
        return TokenChoice(SOURCE_ENV, env_token)
    if caller.present:
        return TokenChoice(SOURCE_HEADER, caller.token)
    if env_token:
        return TokenChoice(SOURCE_ENV, env_token)
    return TokenChoice(SOURCE_NONE)


def resolve_token(config, authorization=None) -> TokenChoice:
    """Pick the upstream bearer token for a request and log the decision."""
    choice = choose_token(
        override_token=config.override_token,
        env_token=config.env_token,
        prefer_env_token=config.prefer_env_token,
        authorization=authorization,
    )
    if choice.token:
        logger.info("Upstream token source=%s preview=%s", choice.source, choice.preview)
    else:
        logger.warning("No upstream token available, forwarding without Authorization")
    return choice
