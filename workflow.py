import base64
import io
import logging
from urllib.parse import quote

import qrcode
from qrcode.exceptions import DataOverflowError
import requests

from errors import WorkflowError
from forwarder import forward
from targets import Action, resolve_target

logger = logging.getLogger(__name__)


def is_valid(data):
    """FBR marks accepted invoices with status 'Valid' / statusCode '00'"""
    if not isinstance(data, dict):
        return False
    validation = data.get('validationResponse')
    if not isinstance(validation, dict):
        return False
    status = str(validation.get('status') or '').strip().lower()
    code = str(validation.get('statusCode') or '').strip()
    return status == 'valid' or code == '00'


def _upstream_body(upstream):
    return upstream.data if upstream.is_json else upstream.text


def _failure_status(upstream):
    return upstream.status_code if not upstream.ok else 422


def make_qr_image(irn):
    """Render the IRN as the 25x25 (version 2) symbol FBR asks for"""
    qr = qrcode.QRCode(
        version=2,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=3,
        border=4,
    )
    qr.add_data(irn)
    qr.make(fit=False)

    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format='PNG')
    return buf.getvalue(), 'image/png'


def fetch_qr_image(service_url, irn, timeout=60.0):
    url = service_url.replace('{irn}', quote(irn, safe=''))
    try:
        response = requests.get(url, timeout=timeout)
    except requests.exceptions.RequestException as e:
        raise WorkflowError('qr', f'QR service unreachable: {e}', status_code=502) from e

    content_type = (response.headers.get('Content-Type') or 'image/png').split(';')[0].strip()
    if response.status_code != 200 or not content_type.startswith('image/') or not response.content:
        raise WorkflowError('qr', f'QR service returned HTTP {response.status_code}', status_code=502)
    return response.content, content_type


def qr_data_uri(irn, service_url=None, timeout=60.0):
    if service_url:
        image, content_type = fetch_qr_image(service_url, irn, timeout=timeout)
    else:
        try:
            image, content_type = make_qr_image(irn)
        except (ValueError, DataOverflowError) as e:
            raise WorkflowError('qr', f'Could not render QR code: {e}', status_code=502) from e

    encoded = base64.b64encode(image).decode('utf-8')
    return f'data:{content_type};base64,{encoded}'


def submit_invoice(config, payload, headers, environment=None, identity=None):
    """
    Validate, post, then build the QR code for one invoice.

    Each step runs once; the first step that does not give the next one what
    it needs raises WorkflowError and nothing after it is attempted.
    TransportError from the forwarder propagates unchanged.
    """
    validate_url = resolve_target(config, Action.VALIDATE, environment)
    validated = forward(payload, validate_url, headers, identity=identity, timeout=config.timeout)
    if not (validated.ok and is_valid(validated.data)):
        logger.warning("Invoice failed validation (HTTP %s)", validated.status_code)
        raise WorkflowError(
            'validate', 'Invoice failed FBR validation',
            status_code=_failure_status(validated), response=_upstream_body(validated),
        )

    post_url = resolve_target(config, Action.POST, environment)
    posted = forward(payload, post_url, headers, identity=identity, timeout=config.timeout)
    data = posted.data if posted.is_json and isinstance(posted.data, dict) else {}
    irn = str(data.get('invoiceNumber') or '').strip()
    if not posted.ok or not irn:
        logger.warning("FBR post returned no invoice number (HTTP %s)", posted.status_code)
        raise WorkflowError(
            'post', 'FBR did not return an invoice number',
            status_code=_failure_status(posted), response=_upstream_body(posted),
        )
    if 'validationResponse' in data and not is_valid(data):
        raise WorkflowError('post', 'FBR rejected the invoice', status_code=422, response=data)

    logger.info("Invoice posted, IRN %s", irn)
    return {'irn': irn, 'qrCode': qr_data_uri(irn, config.qr_service_url, timeout=config.timeout)}
