"""
Cart configuration.

All values come from environment variables so the same package can run
under different shops without code changes.
"""

import os
from decimal import Decimal

# Instance used when the caller never switches partitions
DEFAULT_INSTANCE = os.environ.get("CART_DEFAULT_INSTANCE", "default")

# Default tax rate as a fraction (0.21 == 21%)
DEFAULT_TAX_RATE = Decimal(os.environ.get("CART_TAX_RATE", "0.21"))

DEFAULT_CURRENCY = os.environ.get("CART_DEFAULT_CURRENCY", "USD")

# Supabase table holding stored carts
CART_TABLE = os.environ.get("CART_TABLE", "shoppingcart")

# Number format used by Money.format() and cart summaries
FORMAT_DECIMALS = int(os.environ.get("CART_FORMAT_DECIMALS", "2"))
FORMAT_DECIMAL_POINT = os.environ.get("CART_FORMAT_DECIMAL_POINT", ".")
FORMAT_THOUSANDS_SEPARATOR = os.environ.get("CART_FORMAT_THOUSANDS_SEPARATOR", ",")

# Live session state expires after 24 hours of inactivity
SESSION_TTL = int(os.environ.get("CART_SESSION_TTL", "86400"))
