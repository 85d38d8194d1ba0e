"""
PayFast payment gateway integration.

Checkout is a browser redirect: the client POSTs the signed field set to
the PayFast process URL. PayFast then calls the notify URL (ITN) server to
server, and the ITN must be verified before any state changes.
"""

import hashlib
import logging
from decimal import Decimal
from typing import Dict, Iterable, Optional
from urllib.parse import urlencode

import httpx

from mpbusinesshub.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

SANDBOX_HOST = "sandbox.payfast.co.za"
LIVE_HOST = "www.payfast.co.za"

# Order in which PayFast expects checkout fields when computing the signature
CHECKOUT_FIELD_ORDER = (
    "merchant_id",
    "merchant_key",
    "return_url",
    "cancel_url",
    "notify_url",
    "name_first",
    "name_last",
    "email_address",
    "cell_number",
    "m_payment_id",
    "amount",
    "item_name",
    "item_description",
    "custom_int1",
    "custom_int2",
    "custom_int3",
    "custom_int4",
    "custom_int5",
    "custom_str1",
    "custom_str2",
    "custom_str3",
    "custom_str4",
    "custom_str5",
    "email_confirmation",
    "confirmation_address",
    "payment_method",
)

ITN_REQUIRED_FIELDS = ("merchant_id", "signature")

PAYFAST_COMPLETE = "COMPLETE"
PAYFAST_FAILED = "FAILED"
PAYFAST_CANCELLED = "CANCELLED"


class ItnValidationError(Exception):
    """Raised when an ITN fails one of the verification checks."""


def format_amount(amount) -> str:
    return f"{Decimal(amount):.2f}"


def _param_string(pairs: Iterable) -> str:
    return urlencode([(key, str(value).strip()) for key, value in pairs])


def generate_signature(data: Dict[str, str], passphrase: Optional[str] = None) -> str:
    """
    MD5 signature for outgoing checkout data, over the url-encoded fields in
    their given order.

    Blank values and any existing ``signature`` entry are skipped. The
    passphrase, when configured, is appended last.
    """
    pairs = [
        (key, value)
        for key, value in data.items()
        if key != "signature" and value is not None and str(value).strip() != ""
    ]
    if passphrase:
        pairs.append(("passphrase", passphrase))
    return hashlib.md5(_param_string(pairs).encode("utf-8")).hexdigest()


def itn_signature(data: Dict[str, str], passphrase: Optional[str] = None) -> str:
    """
    MD5 signature PayFast puts on an ITN: every posted field in received
    order except ``signature``, blank ones included.
    """
    pairs = [(key, "" if value is None else value) for key, value in data.items() if key != "signature"]
    if passphrase:
        pairs.append(("passphrase", passphrase))
    return hashlib.md5(_param_string(pairs).encode("utf-8")).hexdigest()


class PayFastGateway:
    """Builds checkout payloads and verifies ITN callbacks."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def host(self) -> str:
        return SANDBOX_HOST if self.settings.payfast_test_mode else LIVE_HOST

    @property
    def process_url(self) -> str:
        return f"https://{self.host}/eng/process"

    @property
    def validate_url(self) -> str:
        return f"https://{self.host}/eng/query/validate"

    def build_checkout(
        self,
        payment_id: str,
        amount,
        item_name: str,
        item_description: str,
        buyer_name: str,
        buyer_email: str,
        custom: Optional[Dict[str, str]] = None,
    ) -> dict:
        """
        Build the signed form data for a PayFast redirect.

        Returns:
            Dict with ``redirect_url``, ``method`` and ``payment_data``
        """
        frontend = self.settings.frontend_url.rstrip("/")
        api = self.settings.api_url.rstrip("/")
        first_name, _, last_name = (buyer_name or "").partition(" ")

        fields = {
            "merchant_id": self.settings.payfast_merchant_id,
            "merchant_key": self.settings.payfast_merchant_key,
            "return_url": f"{frontend}/payment/success",
            "cancel_url": f"{frontend}/payment/cancel",
            "notify_url": f"{api}/api/payfast/notify",
            "name_first": first_name,
            "name_last": last_name,
            "email_address": buyer_email,
            "m_payment_id": payment_id,
            "amount": format_amount(amount),
            "item_name": item_name[:100],
            "item_description": item_description[:255],
            "email_confirmation": "1",
            "confirmation_address": buyer_email,
        }
        fields.update(custom or {})

        ordered = {
            key: str(fields[key])
            for key in CHECKOUT_FIELD_ORDER
            if key in fields and fields[key] is not None and str(fields[key]).strip() != ""
        }
        ordered["signature"] = generate_signature(ordered, self.settings.payfast_passphrase)

        return {
            "redirect_url": self.process_url,
            "method": "POST",
            "payment_data": ordered,
        }

    def verify_source_ip(self, source_ip: Optional[str]) -> None:
        if not self.settings.payfast_validate_ip:
            return
        if source_ip not in self.settings.payfast_valid_hosts:
            raise ItnValidationError(f"ITN from untrusted host {source_ip}")

    def verify_payload(self, data: Dict[str, str], source_ip: Optional[str]) -> None:
        """
        Run the local ITN checks in order: source IP, required fields,
        merchant id, signature.

        Raises:
            ItnValidationError: On the first failed check
        """
        self.verify_source_ip(source_ip)

        missing = [name for name in ITN_REQUIRED_FIELDS if not data.get(name)]
        if missing:
            raise ItnValidationError(f"ITN missing fields: {', '.join(missing)}")

        if data.get("merchant_id") != self.settings.payfast_merchant_id:
            raise ItnValidationError("ITN merchant_id mismatch")

        expected = itn_signature(data, self.settings.payfast_passphrase)
        if expected != data.get("signature"):
            raise ItnValidationError("ITN signature mismatch")

    @staticmethod
    def verify_amount(data: Dict[str, str], expected_amount) -> None:
        try:
            gross = Decimal(str(data.get("amount_gross", "")))
        except ArithmeticError:
            raise ItnValidationError("ITN amount_gross is not a number")
        if abs(gross - Decimal(expected_amount)) > Decimal("0.01"):
            raise ItnValidationError(f"ITN amount {gross} does not match {expected_amount}")

    async def confirm_with_server(self, data: Dict[str, str]) -> None:
        """Ask PayFast to confirm the ITN. The body must read ``VALID``."""
        if not self.settings.payfast_validate_server:
            return

        param_string = _param_string((k, v) for k, v in data.items() if k != "signature")
        try:
            async with httpx.AsyncClient(timeout=self.settings.payfast_timeout_seconds) as client:
                response = await client.post(
                    self.validate_url,
                    content=param_string,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.HTTPError as e:
            logger.error(f"PayFast validation request failed: {e}")
            raise ItnValidationError("PayFast validation request failed") from e

        if response.status_code != 200 or response.text.strip() != "VALID":
            logger.warning(f"PayFast rejected ITN: {response.status_code} {response.text[:100]}")
            raise ItnValidationError("PayFast did not confirm the ITN")
