"""
Database models for the business directory.
"""

from mpbusinesshub.models.user import User
from mpbusinesshub.models.package import Package
from mpbusinesshub.models.business import Business, OperatingHour
from mpbusinesshub.models.catalog import Product, Advert, SocialFeature
from mpbusinesshub.models.review import Review
from mpbusinesshub.models.billing import Invoice, InvoiceSequence, Payment
from mpbusinesshub.models.access_token import AccessToken

__all__ = [
    "User",
    "Package",
    "Business",
    "OperatingHour",
    "Product",
    "Advert",
    "SocialFeature",
    "Review",
    "Invoice",
    "InvoiceSequence",
    "Payment",
    "AccessToken",
]
