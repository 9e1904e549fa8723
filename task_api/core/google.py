"""
Google ID token verification through Google's tokeninfo endpoint.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from .config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class GoogleTokenVerifier:
    """Client for validating Google sign-in ID tokens."""

    def __init__(self):
        self.tokeninfo_url = settings.google_tokeninfo_url
        self.client_id = settings.google_client_id
        self.timeout = settings.google_timeout
        self.retries = max(settings.google_retries, 1)

    def _accept(self, claims: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not claims.get("email"):
            logger.warning("Google token has no email claim")
            return None
        # tokeninfo returns booleans as strings
        if str(claims.get("email_verified", "false")).lower() != "true":
            logger.warning("Google token email is not verified")
            return None
        if self.client_id and claims.get("aud") != self.client_id:
            logger.warning("Google token issued for another client")
            return None
        return claims

    async def verify(self, id_token: str) -> Optional[Dict[str, Any]]:
        """
        Verify an ID token with Google.

        Args:
            id_token: ID token obtained by the client from Google sign-in

        Returns:
            dict: Token claims if the token is valid, None otherwise
        """
        for attempt in range(self.retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    logger.debug(f"Verifying Google token (attempt {attempt + 1})")
                    response = await client.get(
                        self.tokeninfo_url,
                        params={"id_token": id_token}
                    )

                if response.status_code == 200:
                    return self._accept(response.json())
                if response.status_code in (400, 401):
                    logger.warning("Google rejected the ID token")
                    return None
                logger.warning(f"Google tokeninfo returned status {response.status_code}")

            except httpx.TimeoutException:
                logger.warning(f"Google tokeninfo timeout (attempt {attempt + 1})")
            except httpx.ConnectError:
                logger.warning(f"Google tokeninfo connection error (attempt {attempt + 1})")

        logger.error("Google token verification failed after all retries")
        return None


# Global verifier instance
google_verifier = GoogleTokenVerifier()
