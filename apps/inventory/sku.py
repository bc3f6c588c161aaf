"""
SKU and barcode helpers.
"""

import random
import re
import string
import time

SKU_PREFIX = "PROD"
MAX_SKU_ATTEMPTS = 10

_BASE36 = string.digits + string.ascii_uppercase
_BARCODE_PATTERNS = [
    re.compile(r"^\d{13}$"),  # EAN-13
    re.compile(r"^\d{12}$"),  # UPC-A
    re.compile(r"^\d{8}$"),  # EAN-8
    re.compile(r"^[A-Z0-9]{6,20}$"),  # Code128
]


def generate_sku():
    """Random SKU ``PROD-<ms timestamp>-<4 base36 chars>``."""
    timestamp = int(time.time() * 1000)
    suffix = "".join(random.choices(_BASE36, k=4))
    return f"{SKU_PREFIX}-{timestamp}-{suffix}"


def generate_unique_sku(tenant):
    """
    Generate a SKU that no product of ``tenant`` uses.

    Raises:
        RuntimeError: when no free SKU was found after MAX_SKU_ATTEMPTS tries
    """
    from apps.inventory.models import Product

    for _ in range(MAX_SKU_ATTEMPTS):
        sku = generate_sku()
        if not Product.objects.filter(tenant=tenant, sku=sku).exists():
            return sku
    raise RuntimeError("No se pudo generar un SKU único")


def normalize_sku(value):
    """Trim, drop whitespace and dashes, upper-case."""
    return re.sub(r"[\s\-]", "", (value or "").strip()).upper()


def is_likely_barcode(value):
    clean = (value or "").strip()
    return any(pattern.match(clean) for pattern in _BARCODE_PATTERNS)
