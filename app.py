import hmac
import logging
from datetime import datetime, timezone

from flask import Flask, request, jsonify, current_app, make_response
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from client_cert import load_client_identity
from credentials import resolve_token
from errors import TransportError, WorkflowError
from forwarder import build_headers, forward
from payload import prepare_payload
from settings import load_config
from targets import Action, parse_environment, resolve_target
from workflow import submit_invoice as run_submit_chain

logger = logging.getLogger(__name__)

PUBLIC_ENDPOINTS = {'health'}


def create_app(config=None, identity=None):
    """
    Build the gateway app.

    `config` is read from the environment when not given. `identity` is the
    mutual TLS client certificate; when omitted it is loaded from the config.
    """
    if config is None:
        config = load_config()
    if identity is None:
        identity = load_client_identity(config)

    app = Flask(__name__)
    app.config['GATEWAY'] = config
    app.config['CLIENT_IDENTITY'] = identity
    CORS(app)

    if config.auth_enabled:
        logger.info("API key auth enabled (%d key(s))", len(config.api_keys))
    else:
        logger.warning("API_KEYS not set, API key auth is disabled")

    app.before_request(check_api_key)
    app.register_error_handler(Exception, handle_unexpected_error)

    app.add_url_rule('/health', 'health', health, methods=['GET'])
    app.add_url_rule('/submitInvoice', 'submit_invoice', submit_invoice, methods=['POST'])
    app.add_url_rule('/validate', 'validate', validate, methods=['POST'])
    app.add_url_rule('/post', 'post', post, methods=['POST'])
    if config.enable_debug_token:
        app.add_url_rule('/debug-token', 'debug_token', debug_token, methods=['GET'])

    return app


def _gateway():
    return current_app.config['GATEWAY']


def _identity():
    return current_app.config['CLIENT_IDENTITY']


# ----------------- AUTH -----------------
def _key_matches(key, api_keys):
    candidate = key.encode('utf-8')
    matched = False
    # every configured key is compared, match or not
    for known in api_keys:
        if hmac.compare_digest(candidate, known.encode('utf-8')):
            matched = True
    return matched


def check_api_key():
    config = _gateway()
    if not config.auth_enabled:
        return None
    if request.method == 'OPTIONS' or request.endpoint in PUBLIC_ENDPOINTS:
        return None

    key = request.headers.get('x-api-key') or request.args.get('api_key')
    if not key:
        return jsonify({'ok': False, 'message': 'Unauthorized'}), 401
    if not _key_matches(key, config.api_keys):
        logger.warning("Rejected request to %s with unknown API key", request.path)
        return jsonify({'ok': False, 'message': 'Forbidden'}), 403
    return None


# ----------------- ERRORS -----------------
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return e
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({'error': str(e) or e.__class__.__name__}), 500


# ----------------- HELPERS -----------------
def _invoice_body():
    """Parsed JSON object body, or None"""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return None
    return body


def _bad_body():
    return jsonify({'error': 'Request body must be a JSON object'}), 400


def _request_environment(env_field):
    return parse_environment(request.headers.get('x-env') or env_field)


def _relay(upstream):
    """Hand the FBR answer back with its original status"""
    if upstream.is_json:
        return jsonify(upstream.data), upstream.status_code

    # bytes as received, no re-encoding
    response = make_response(upstream.content, upstream.status_code)
    response.headers['Content-Type'] = upstream.content_type or 'text/plain'
    return response


def _forward_action(action):
    config = _gateway()
    body = _invoice_body()
    if body is None:
        return _bad_body()

    payload, env_field = prepare_payload(body, coerce=config.coerce_fields)
    environment = _request_environment(env_field)
    url = resolve_target(config, action, environment)
    headers = build_headers(resolve_token(config, request.headers.get('Authorization')))

    try:
        upstream = forward(payload, url, headers, identity=_identity(), timeout=config.timeout)
    except TransportError as e:
        return jsonify({'error': e.message}), 500

    return _relay(upstream)


# ----------------- ROUTES -----------------
def health():
    return jsonify({'ok': True, 'now': datetime.now(timezone.utc).isoformat()})


def validate():
    return _forward_action(Action.VALIDATE)


def post():
    return _forward_action(Action.POST)


def submit_invoice():
    config = _gateway()
    body = _invoice_body()
    if body is None:
        return _bad_body()

    if not config.submit_chain:
        return jsonify({
            'ok': True,
            'message': 'Invoice received successfully',
            'receivedData': body,
        })

    payload, env_field = prepare_payload(body, coerce=config.coerce_fields)
    environment = _request_environment(env_field)
    headers = build_headers(resolve_token(config, request.headers.get('Authorization')))

    try:
        result = run_submit_chain(config, payload, headers, environment=environment, identity=_identity())
    except WorkflowError as e:
        return jsonify(e.to_dict()), e.status_code
    except TransportError as e:
        return jsonify({'error': e.message}), 500

    return jsonify(result)


def debug_token():
    choice = resolve_token(_gateway(), request.headers.get('Authorization'))
    return jsonify({
        'source': choice.source,
        'hasToken': bool(choice.token),
        'preview': choice.preview,
    })


def main():
    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    app = create_app(config)
    logger.info("FBR gateway listening on port %s", config.port)
    app.run(host='0.0.0.0', port=config.port)


if __name__ == '__main__':
    main()
