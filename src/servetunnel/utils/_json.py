import orjson


def dump_json(value: object) -> bytes:
    """Serialize a value to compact UTF-8 JSON bytes.

    Strings are escaped per RFC 8259, so arbitrary prompt text can be
    embedded safely.
    """
    return orjson.dumps(value)
