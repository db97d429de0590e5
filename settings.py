import os
from dataclasses import dataclass, field
from typing import FrozenSet, Mapping, Optional

from dotenv import load_dotenv

# FBR Digital Invoicing gateway endpoints
DEFAULT_VALIDATE_URL = 'https://gw.fbr.gov.pk/di_data/v1/di/validateinvoicedata'
DEFAULT_POST_URL = 'https://gw.fbr.gov.pk/di_data/v1/di/postinvoicedata'
DEFAULT_VALIDATE_URL_SANDBOX = 'https://gw.fbr.gov.pk/di_data/v1/di/validateinvoicedata_sb'
DEFAULT_POST_URL_SANDBOX = 'https://gw.fbr.gov.pk/di_data/v1/di/postinvoicedata_sb'

DEFAULT_PORT = 3000
DEFAULT_TIMEOUT = 60.0

_TRUTHY = {'1', 'true', 'yes', 'on'}


def _flag(value, default=False):
    if value is None or str(value).strip() == '':
        return default
    return str(value).strip().lower() in _TRUTHY


def _optional(value):
    """Empty strings count as unset"""
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_api_keys(raw):
    if not raw:
        return frozenset()
    return frozenset(k.strip() for k in raw.split(',') if k.strip())


@dataclass(frozen=True)
class GatewayConfig:
    api_keys: FrozenSet[str] = field(default_factory=frozenset)

    override_token: Optional[str] = None
    env_token: Optional[str] = None
    prefer_env_token: bool = False

    validate_url: str = DEFAULT_VALIDATE_URL
    post_url: str = DEFAULT_POST_URL
    validate_url_sandbox: str = DEFAULT_VALIDATE_URL_SANDBOX
    post_url_sandbox: str = DEFAULT_POST_URL_SANDBOX

    client_cert_b64: Optional[str] = None
    client_cert_passphrase: Optional[str] = None

    coerce_fields: bool = True
    submit_chain: bool = False
    qr_service_url: Optional[str] = None
    enable_debug_token: bool = False

    timeout: float = DEFAULT_TIMEOUT
    port: int = DEFAULT_PORT
    log_level: str = 'INFO'

    @property
    def auth_enabled(self):
        return bool(self.api_keys)


def load_config(environ: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> GatewayConfig:
    """
    Build the gateway configuration from environment variables.

    Read once at process start; the result is immutable and handed to
    create_app(). Passing an explicit mapping skips the process environment
    (and the .env file), which is what the tests do.
    """
    if environ is None:
        if dotenv:
            load_dotenv(override=False)
        environ = os.environ

    keys = environ.get('API_KEYS')
    if not keys:
        # single-key deployments only set API_KEY
        keys = environ.get('API_KEY', '')

    return GatewayConfig(
        api_keys=parse_api_keys(keys),
        override_token=_optional(environ.get('FBR_OVERRIDE_TOKEN')),
        env_token=_optional(environ.get('FBR_TOKEN')),
        prefer_env_token=_flag(environ.get('PREFER_ENV_TOKEN')),
        validate_url=_optional(environ.get('FBR_VALIDATE_URL')) or DEFAULT_VALIDATE_URL,
        post_url=_optional(environ.get('FBR_POST_URL')) or DEFAULT_POST_URL,
        validate_url_sandbox=_optional(environ.get('FBR_VALIDATE_URL_SANDBOX')) or DEFAULT_VALIDATE_URL_SANDBOX,
        post_url_sandbox=_optional(environ.get('FBR_POST_URL_SANDBOX')) or DEFAULT_POST_URL_SANDBOX,
        client_cert_b64=_optional(environ.get('FBR_CLIENT_CERT_B64')),
        client_cert_passphrase=environ.get('FBR_CLIENT_CERT_PASSPHRASE'),
        coerce_fields=_flag(environ.get('COERCE_FIELDS'), default=True),
        submit_chain=_flag(environ.get('SUBMIT_CHAIN')),
        qr_service_url=_optional(environ.get('QR_SERVICE_URL')),
        enable_debug_token=_flag(environ.get('ENABLE_DEBUG_TOKEN')),
        timeout=float(environ.get('UPSTREAM_TIMEOUT') or DEFAULT_TIMEOUT),
        port=int(environ.get('PORT') or DEFAULT_PORT),
        log_level=(environ.get('LOG_LEVEL') or 'INFO').upper(),
    )
