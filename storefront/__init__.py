"""
Storefront core: cart pricing, checkout and order fulfillment over Redis.
"""
