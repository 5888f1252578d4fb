def to_wire(data):
    """
    Request bodies go out as bytes.  Text is encoded as UTF-8, binary
    payloads are passed through untouched (no newline conversion).
    """
    if data is None:
        return None
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def to_normal_str(text):
    """
    Make sure we return a normal string, no matter if we got bytes
    or str
    """
    if text is None:
        return text
    if not isinstance(text, str):
        text = text.decode("utf-8")
    return text


def to_unicode(text):
    if text and isinstance(text, bytes):
        return text.decode("utf-8")
    return text
