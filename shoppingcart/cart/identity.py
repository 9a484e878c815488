"""Row identity: a content hash of product id and options."""
import hashlib
import json

from .options import CartItemOptions


def generate_row_id(product_id: str | int, options: CartItemOptions) -> str:
    """
    Derive the row id for a (product, options) pair.

    Pure and deterministic; the same pair always lands on the same row.
    The id is JSON-encoded, so 1 and "1" are different products.
    """
    payload = f"{json.dumps(product_id, ensure_ascii=False)}{options.canonical()}".encode()
    return hashlib.md5(payload, usedforsecurity=False).hexdigest()
