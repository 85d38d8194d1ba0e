"""
MPBusinessHub API.

Business directory backend: registration, tiered packages, products,
adverts, reviews, PayFast payments, session tokens and admin moderation.
"""

__version__ = "1.0.0"
