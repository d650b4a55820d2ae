"""Chatwoot contacts API client.

Pushes local contacts to Chatwoot: search by email, then update the
match or create a new contact.
"""

import logging
from typing import Any, Optional

import httpx

from .config import Settings
from .errors import RateLimitError, RemoteAPIError, error_from_status, parse_retry_after
from .models import Contact, ChatwootContactPayload, contact_to_chatwoot_payload

logger = logging.getLogger(__name__)


class ChatwootClient:
    """Async client for the Chatwoot account API."""

    def __init__(self, settings: Settings):
        """Initialize Chatwoot client.

        Args:
            settings: Application settings with Chatwoot credentials
        """
        self.settings = settings
        self.base_url = settings.chatwoot_api_url
        self._client: Optional[httpx.AsyncClient] = None
        self.is_enabled = False

    async def __aenter__(self) -> "ChatwootClient":
        """Async context manager entry."""
        if not self.settings.chatwoot_configured:
            logger.warning(
                "Chatwoot not configured. Integration disabled. Set CHATWOOT_URL, "
                "CHATWOOT_ACCOUNT_ID, and CHATWOOT_API_KEY to enable."
            )
            return self

        self._client = httpx.AsyncClient(
            headers={
                "api_access_token": self.settings.chatwoot_api_key,
                "Content-Type": "application/json",
            },
            timeout=self.settings.http_timeout,
        )
        self.is_enabled = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None
        self.is_enabled = False

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json_data: Optional[dict] = None,
    ) -> Any:
        """Make an API request and classify failures.

        Raises:
            RateLimitError: On 429
            AuthError: On 401/403
            NotFoundError: On 404
            DuplicateKeyError: On 409
            RemoteAPIError: On other failures
        """
        if not self._client:
            raise RemoteAPIError("Chatwoot client not initialized. Use async context manager.")

        url = f"{self.base_url}{endpoint}"

        try:
            response = await self._client.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
            )
        except httpx.TimeoutException as e:
            raise RemoteAPIError(f"Request timeout: {method} {endpoint}") from e
        except httpx.RequestError as e:
            raise RemoteAPIError(f"Request failed: {e}") from e

        logger.debug(f"Chatwoot API call: {method} {endpoint} -> {response.status_code}")

        if 200 <= response.status_code < 300:
            return response.json() if response.content else None

        raise error_from_status(
            response.status_code,
            f"API error {response.status_code}: {response.text[:200]}",
            retry_after=parse_retry_after(response.headers.get("Retry-After")),
        )

    async def verify_credentials(self) -> bool:
        """Check the credentials by listing a single contact.

        Disables the client when the credentials are rejected.
        """
        if not self._client:
            return False

        try:
            await self._request("GET", "/contacts", params={"limit": 1})
            logger.info("Chatwoot credentials verified successfully.")
            self.is_enabled = True
            return True
        except Exception as e:
            logger.error(f"Invalid Chatwoot credentials. Integration disabled. {e}")
            self.is_enabled = False
            return False

    async def find_contact_id_by_email(self, email: str) -> Optional[int]:
        """Search Chatwoot for a contact by email.

        Search failures are logged and reported as "not found". Rate limits
        propagate so the caller can retry the whole push.
        """
        try:
            data = await self._request("GET", "/contacts/search", params={"q": email})
        except RateLimitError:
            raise
        except Exception as e:
            logger.warning(f"Error searching contact {email}: {e}")
            return None

        payload = (data or {}).get("payload") or []
        if payload:
            return payload[0].get("id")
        return None

    async def create_contact(self, payload: ChatwootContactPayload) -> None:
        await self._request("POST", "/contacts", json_data=payload.to_api_dict())

    async def update_contact(self, contact_id: int, payload: ChatwootContactPayload) -> None:
        await self._request("PUT", f"/contacts/{contact_id}", json_data=payload.to_api_dict())

    async def sync_contact(self, contact: Contact) -> str:
        """Push a single contact to Chatwoot.

        Args:
            contact: Local contact

        Returns:
            "created", "updated", or "skipped" when the integration is disabled

        Raises:
            SyncAPIError: When the create or update call fails
        """
        if not self.is_enabled:
            return "skipped"

        payload = contact_to_chatwoot_payload(
            contact,
            country_iso=self.settings.default_country_iso,
            country_code=self.settings.default_country_code,
        )
        existing_id = await self.find_contact_id_by_email(contact.email)

        if existing_id:
            await self.update_contact(existing_id, payload)
            logger.debug(f"Updated Chatwoot contact {existing_id} for {contact.email}")
            return "updated"

        await self.create_contact(payload)
        logger.debug(f"Created Chatwoot contact for {contact.email}")
        return "created"
