import copy

ENV_FIELD = '__env'

# FBR rejects numeric identifiers; Excel sends them as doubles
HEADER_STRING_FIELDS = ('sellerNTNCNIC', 'buyerNTNCNIC', 'invoiceRefNo')
ITEM_STRING_FIELDS = ('hsCode', 'sroScheduleNo', 'sroItemSerialNo')


def safe_str(value):
    """Convert JSON numbers to strings, leave everything else alone"""
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, int):
        return str(value)
    return value


def coerce_invoice_fields(invoice):
    """Return a copy of the invoice with identifier fields as strings"""
    payload = copy.deepcopy(invoice)

    for name in HEADER_STRING_FIELDS:
        if name in payload:
            payload[name] = safe_str(payload[name])

    items = payload.get('items')
    if isinstance(items, list):
        for item in items:
            if not isinstance(item, dict):
                continue
            for name in ITEM_STRING_FIELDS:
                if name in item:
                    item[name] = safe_str(item[name])

    return payload


def split_env(invoice):
    """Separate the '__env' selector from the body that goes upstream"""
    payload = dict(invoice)
    env = payload.pop(ENV_FIELD, None)
    return payload, env


def prepare_payload(invoice, coerce=True):
    payload, env = split_env(invoice)
    if coerce:
        payload = coerce_invoice_fields(payload)
    return payload, env
