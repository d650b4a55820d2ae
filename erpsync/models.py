"""Pydantic data models for WooCommerce, Chatwoot and local contacts.

These models provide validation and type safety for data moving
between WooCommerce, the local contact store and Chatwoot.
"""

import re
from datetime import datetime
from typing import Any, Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import (
    DocumentType,
    DEFAULT_COUNTRY_CODE,
    DEFAULT_COUNTRY_ISO,
    E164_PATTERN,
)


# =============================================================================
# WOOCOMMERCE MODELS
# =============================================================================

class WooCommerceBilling(BaseModel):
    """Billing sub-record of a WooCommerce order."""
    first_name: str = ""
    last_name: str = ""
    company: str = ""
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    state: str = ""
    postcode: str = ""
    country: str = ""
    email: str = ""
    phone: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        """WooCommerce sends null for blank billing fields on some stores."""
        return "" if value is None else value


class WooCommerceMetaData(BaseModel):
    """Key/value metadata entry attached to an order."""
    id: Optional[int] = None
    key: str
    value: Any = None


class WooCommerceOrder(BaseModel):
    """WooCommerce order entity.

    Only the fields the contact sync reads are declared; the rest of the
    payload is kept but ignored.
    """
    model_config = ConfigDict(frozen=True, extra="allow")

    id: int
    status: Optional[str] = None
    customer_id: Optional[int] = None
    billing: WooCommerceBilling = Field(default_factory=WooCommerceBilling)
    meta_data: List[WooCommerceMetaData] = Field(default_factory=list)

    @field_validator("billing", "meta_data", mode="before")
    @classmethod
    def null_to_default(cls, value, info):
        if value is None:
            return {} if info.field_name == "billing" else []
        return value

    @property
    def billing_email(self) -> str:
        """Lower-cased billing email, empty when missing."""
        return (self.billing.email or "").strip().lower()


# =============================================================================
# CONTACT MODELS
# =============================================================================

class MappedContact(BaseModel):
    """Contact data derived from a remote order, not yet persisted."""
    document_type: Optional[DocumentType] = None
    document_number: Optional[str] = None
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    address_extra: Optional[str] = None
    city_code: Optional[str] = None

    def to_store_dict(self) -> dict:
        """Convert to the payload accepted by the contact store.

        Fields that are None are sent as None so an update clears them;
        document fields are only sent when known.
        """
        data = {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "address_extra": self.address_extra,
            "city_code": self.city_code,
        }
        if self.document_number:
            data["document_type"] = self.document_type.value if self.document_type else None
            data["document_number"] = self.document_number
        return data


class Contact(BaseModel):
    """Contact persisted in the local contact store."""
    id: str
    document_type: Optional[DocumentType] = None
    document_number: Optional[str] = None
    legal_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    address_extra: Optional[str] = None
    city_code: Optional[str] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        """Get the contact's display name."""
        if self.legal_name:
            return self.legal_name
        parts = [self.first_name, self.last_name]
        return " ".join(p for p in parts if p)


class ContactPage(BaseModel):
    """One page of contacts plus the total number of matches."""
    data: List[Contact] = Field(default_factory=list)
    total: int = 0


# =============================================================================
# CHATWOOT MODELS
# =============================================================================

class ChatwootContactPayload(BaseModel):
    """Contact body sent to the Chatwoot contacts API."""
    name: str
    email: str
    phone_number: Optional[str] = None
    additional_attributes: dict = Field(default_factory=dict)
    custom_attributes: dict = Field(default_factory=dict)

    def to_api_dict(self) -> dict:
        """Convert to dict for Chatwoot API submission."""
        data = {
            "name": self.name,
            "email": self.email,
            "additional_attributes": self.additional_attributes,
            "custom_attributes": self.custom_attributes,
        }
        if self.phone_number:
            data["phone_number"] = self.phone_number
        return data


# =============================================================================
# CONVERSION HELPERS
# =============================================================================

def to_e164_phone(phone: Optional[str], country_code: str = DEFAULT_COUNTRY_CODE) -> Optional[str]:
    """Validate a phone number for Chatwoot, which only accepts E.164.

    Numbers without a plus sign get the default calling code unless they
    already start with it.

    Returns:
        The E.164 number, or None when the number cannot be made valid
    """
    if not phone:
        return None

    sanitized = re.sub(r"[^\d+]", "", phone)
    if not sanitized:
        return None

    if not sanitized.startswith("+"):
        if sanitized.startswith(country_code):
            sanitized = f"+{sanitized}"
        else:
            sanitized = f"+{country_code}{sanitized}"

    if re.match(E164_PATTERN, sanitized):
        return sanitized
    return None


def contact_to_chatwoot_payload(
    contact: Contact,
    country_iso: str = DEFAULT_COUNTRY_ISO,
    country_code: str = DEFAULT_COUNTRY_CODE,
) -> ChatwootContactPayload:
    """Convert a local contact to a Chatwoot contact payload.

    Args:
        contact: Contact from the local store
        country_iso: ISO country reported in additional attributes
        country_code: Calling code used to complete local phone numbers

    Returns:
        ChatwootContactPayload ready for creation/update
    """
    name = contact.full_name or contact.email.split("@")[0]

    return ChatwootContactPayload(
        name=name,
        email=contact.email,
        phone_number=to_e164_phone(contact.phone, country_code),
        additional_attributes={
            "city": contact.city_code,
            "country_code": country_iso,
        },
        custom_attributes={
            "documentType": contact.document_type.value if contact.document_type else None,
            "documentNumber": contact.document_number,
        },
    )
