import pytest
import requests

from client_cert import ClientIdentity
from conftest import FakeResponse
from credentials import choose_token
from errors import TransportError
from forwarder import build_headers, forward


def test_json_response_is_decoded(fake_post):
    post = fake_post(FakeResponse(200, {"invoiceNumber": "X1"}))
    upstream = forward({"a": 1}, "https://fbr.test/validate", {"Authorization": "Bearer t"})

    assert upstream.status_code == 200
    assert upstream.is_json
    assert upstream.data == {"invoiceNumber": "X1"}

    call = post.calls[0]
    assert call["url"] == "https://fbr.test/validate"
    assert call["json"] == {"a": 1}
    assert call["timeout"] == 60.0
    assert call["verify"] is True
    assert "cert" not in call


def test_error_status_is_returned_not_raised(fake_post):
    fake_post(FakeResponse(400, {"message": "invalid NTN"}))
    upstream = forward({}, "https://fbr.test/post", {})

    assert upstream.status_code == 400
    assert not upstream.ok
    assert upstream.data == {"message": "invalid NTN"}


def test_non_json_body_falls_back_to_text(fake_post):
    fake_post(FakeResponse(502, text="<html>Bad Gateway</html>", headers={"Content-Type": "text/html"}))
    upstream = forward({}, "https://fbr.test/post", {})

    assert not upstream.is_json
    assert upstream.text == "<html>Bad Gateway</html>"
    assert upstream.content_type == "text/html"


def test_request_exception_with_response_is_relayed(fake_post):
    resp = FakeResponse(401, {"message": "token expired"})
    fake_post(requests.exceptions.HTTPError("401", response=resp))

    upstream = forward({}, "https://fbr.test/post", {})
    assert upstream.status_code == 401
    assert upstream.data == {"message": "token expired"}


def test_timeout_raises_transport_error(fake_post):
    fake_post(requests.exceptions.ConnectTimeout("Connection to gw.fbr.gov.pk timed out"))

    with pytest.raises(TransportError) as exc:
        forward({}, "https://fbr.test/post", {})
    assert "timed out" in exc.value.message
    assert isinstance(exc.value.cause, requests.exceptions.Timeout)


def test_client_identity_is_passed_as_cert(fake_post):
    post = fake_post(FakeResponse(200, {}))
    identity = ClientIdentity(pem_path="/tmp/client.pem", subject="CN=test")

    forward({}, "https://fbr.test/post", {}, identity=identity, timeout=5)
    assert post.calls[0]["cert"] == "/tmp/client.pem"
    assert post.calls[0]["timeout"] == 5


def test_build_headers():
    assert build_headers(choose_token()) == {"Content-Type": "application/json", "Accept": "application/json"}
    headers = build_headers(choose_token(env_token="abc"))
    assert headers["Authorization"] == "Bearer abc"
