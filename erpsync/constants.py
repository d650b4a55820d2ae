"""Constants and mappings for the contact sync.

Values here describe the local jurisdiction (Colombia) and the wire
conventions of the WooCommerce and Chatwoot APIs.
"""

from enum import Enum


class DocumentType(str, Enum):
    """Identification document types accepted by the contact store."""
    CC = "CC"        # Cedula de Ciudadania
    CE = "CE"        # Cedula de Extranjeria
    TI = "TI"        # Tarjeta de Identidad
    PAS = "PAS"      # Pasaporte
    NIT = "NIT"      # Numero de Identificacion Tributaria
    OTHER = "OTHER"


# =============================================================================
# LOCALE
# =============================================================================

# Calling code prepended to phone numbers, without the plus sign
DEFAULT_COUNTRY_CODE = "57"

# ISO country code reported to Chatwoot
DEFAULT_COUNTRY_ISO = "CO"

# Document type assumed when an order carries a document number
DEFAULT_DOCUMENT_TYPE = DocumentType.CC


# =============================================================================
# WOOCOMMERCE
# =============================================================================

# Order metadata key holding the customer's document number
BILLING_DOCUMENT_META_KEY = "_billing_document"

# Response header carrying the total number of pages
TOTAL_PAGES_HEADER = "x-wp-totalpages"

# Endpoint used to validate credentials
CONNECTION_CHECK_RESOURCE = "system_status"

DEFAULT_PAGE_SIZE = 100


# =============================================================================
# SCHEDULING AND REPORTING
# =============================================================================

# Daily at midnight
DEFAULT_CRON_SCHEDULE = "0 0 * * *"

# Error details logged at the end of a run
MAX_LOGGED_ERRORS = 5

# E.164: plus sign followed by 1-15 digits, no leading zero
E164_PATTERN = r"^\+[1-9]\d{1,14}$"
