import hashlib


def content_hash(text: str) -> str:
    """
    Key for the persistent embedding store.

    Hashes the exact text: cache entries are keyed by content as given, so
    "Coffee" and "coffee" are different entries.
    """
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
