"""Mapping of WooCommerce orders to local contacts.

Mapping is total: any order that cannot be turned into a contact yields
None, which the sync engine records as a per-order error.
"""

import logging
from typing import Optional

from .constants import (
    BILLING_DOCUMENT_META_KEY,
    DEFAULT_COUNTRY_CODE,
    DEFAULT_DOCUMENT_TYPE,
    DocumentType,
)
from .models import WooCommerceOrder, MappedContact

logger = logging.getLogger(__name__)

# Fields compared to decide whether a stored contact needs an update.
# Document fields are excluded: a document is immutable once set.
COMPARED_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "address",
    "address_extra",
    "city_code",
)


def sanitize_phone(phone: Optional[str]) -> str:
    """Remove spaces and plus signs from a phone number."""
    if not phone:
        return ""
    return "".join(ch for ch in phone if ch != "+" and not ch.isspace())


def format_phone(phone: Optional[str], country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """Format a phone number with a single leading ``+<country_code>``.

    An existing country code is removed once before the prefix is added,
    so formatting is idempotent:

        >>> format_phone("300 123 4567")
        '+573001234567'
        >>> format_phone("+57 300 123 4567")
        '+573001234567'
    """
    cleaned = sanitize_phone(phone)
    if not cleaned:
        return ""
    if cleaned.startswith(country_code):
        cleaned = cleaned[len(country_code):]
    return f"+{country_code}{cleaned}"


def extract_document_number(order: WooCommerceOrder) -> Optional[str]:
    """Get the billing document number from order metadata, if any."""
    for meta in order.meta_data:
        if meta.key == BILLING_DOCUMENT_META_KEY:
            if meta.value is None:
                return None
            value = str(meta.value).strip()
            return value or None
    return None


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def map_order_to_contact(
    order: WooCommerceOrder,
    default_document_type: DocumentType = DEFAULT_DOCUMENT_TYPE,
    country_code: str = DEFAULT_COUNTRY_CODE,
) -> Optional[MappedContact]:
    """Map a WooCommerce order to contact data.

    Args:
        order: WooCommerce order
        default_document_type: Type assigned when a document number exists
        country_code: Calling code used to normalize the phone

    Returns:
        MappedContact, or None when email or names are missing
    """
    try:
        billing = order.billing
        email = order.billing_email

        if not email:
            logger.warning(f"Order {order.id} missing email, skipping")
            return None

        first_name = _blank_to_none(billing.first_name)
        last_name = _blank_to_none(billing.last_name)
        if not first_name or not last_name:
            logger.warning(f"Order {order.id} missing name fields, skipping")
            return None

        document_number = extract_document_number(order)
        phone = format_phone(billing.phone, country_code) if billing.phone else ""

        return MappedContact(
            document_type=default_document_type if document_number else None,
            document_number=document_number,
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone or None,
            address=_blank_to_none(billing.address_1),
            address_extra=_blank_to_none(billing.address_2),
            city_code=_blank_to_none(billing.city),
        )

    except Exception as e:
        logger.error(f"Error mapping order {order.id}: {e}")
        return None


def has_contact_changed(existing, mapped: MappedContact) -> bool:
    """Check whether a stored contact differs from freshly mapped data.

    Args:
        existing: Stored contact (any object exposing the compared fields)
        mapped: Contact data mapped from an order

    Returns:
        True if any compared field differs
    """
    for field_name in COMPARED_FIELDS:
        if getattr(existing, field_name, None) != getattr(mapped, field_name):
            return True
    return False
