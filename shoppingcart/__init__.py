"""
shoppingcart

Session-backed shopping cart with exact money arithmetic:
- money: minor-unit Money value
- cart: items, cart service, storage gateways, events
- repositories: Supabase stored-cart table
- db: Supabase and Upstash Redis clients

Note: Imports are lazy so importing the package does not pull in the
Supabase/Redis clients until they are used.
"""

__all__ = [
    "Cart",
    "CartItem",
    "CartItemOptions",
    "Money",
]


def __getattr__(name):
    """Lazy attribute access."""
    if name == "Cart":
        from shoppingcart.cart import Cart
        return Cart
    elif name == "CartItem":
        from shoppingcart.cart import CartItem
        return CartItem
    elif name == "CartItemOptions":
        from shoppingcart.cart import CartItemOptions
        return CartItemOptions
    elif name == "Money":
        from shoppingcart.money import Money
        return Money
    raise AttributeError(f"module 'shoppingcart' has no attribute '{name}'")
