from payload import coerce_invoice_fields, prepare_payload, safe_str


def test_identifiers_become_strings():
    invoice = {
        "sellerNTNCNIC": 123,
        "buyerNTNCNIC": 4210112345671.0,
        "invoiceRefNo": "",
        "items": [{"hsCode": 4011, "quantity": 2, "sroItemSerialNo": 12.5}],
    }
    out = coerce_invoice_fields(invoice)

    assert out["sellerNTNCNIC"] == "123"
    assert out["buyerNTNCNIC"] == "4210112345671"
    assert out["invoiceRefNo"] == ""
    assert out["items"][0]["hsCode"] == "4011"
    assert out["items"][0]["sroItemSerialNo"] == "12.5"
    # untouched
    assert out["items"][0]["quantity"] == 2


def test_original_invoice_is_not_mutated():
    invoice = {"sellerNTNCNIC": 123, "items": [{"hsCode": 4011}]}
    coerce_invoice_fields(invoice)
    assert invoice == {"sellerNTNCNIC": 123, "items": [{"hsCode": 4011}]}


def test_odd_shapes_are_left_alone():
    invoice = {"items": "not-a-list", "buyerNTNCNIC": None}
    assert coerce_invoice_fields(invoice) == invoice

    invoice = {"items": [1, None, {"hsCode": None}]}
    assert coerce_invoice_fields(invoice) == invoice


def test_safe_str_keeps_booleans():
    assert safe_str(True) is True
    assert safe_str("0101.1000") == "0101.1000"


def test_prepare_payload_strips_env_selector():
    payload, env = prepare_payload({"__env": "sandbox", "sellerNTNCNIC": 1})
    assert env == "sandbox"
    assert payload == {"sellerNTNCNIC": "1"}


def test_prepare_payload_without_coercion():
    payload, env = prepare_payload({"sellerNTNCNIC": 1}, coerce=False)
    assert env is None
    assert payload == {"sellerNTNCNIC": 1}
