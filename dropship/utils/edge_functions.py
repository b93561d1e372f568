"""
Client for the serverless edge functions (send-notification-email,
chat-reassignment, send-postpaid-due-reminder).
"""
import logging
from typing import Optional, Dict, Any

import requests

from dropship.config import settings
from dropship.exceptions import RemoteError

logger = logging.getLogger(__name__)


class EdgeFunctionClient:
    def __init__(self, base_url: str, api_key: str = "", timeout: int = 10, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def invoke(self, name: str, body: Optional[Dict[str, Any]] = None, access_token: Optional[str] = None) -> Dict[str, Any]:
        """
        POST a JSON body to an edge function and return its JSON response.

        Network failures, non-2xx responses and bodies carrying an "error" key
        all raise RemoteError with the remote message passed through.
        """
        url = f"{self.base_url}/functions/v1/{name}"
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
        bearer = access_token or self.api_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"

        try:
            response = self.session.post(url, json=body or {}, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Edge function {name} unreachable: {e}")
            raise RemoteError(f"{name} failed: {e}")

        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = {"raw": response.text}

        if response.status_code >= 400:
            message = data.get("error") or data.get("message") or response.text or response.reason
            logger.error(f"Edge function {name} returned {response.status_code}: {message}")
            raise RemoteError(str(message))

        if isinstance(data, dict) and data.get("error"):
            raise RemoteError(str(data["error"]))

        return data if isinstance(data, dict) else {"data": data}


def get_edge_client() -> EdgeFunctionClient:
    """Dependency returning a client configured from settings"""
    return EdgeFunctionClient(
        base_url=settings.EDGE_FUNCTIONS_URL,
        api_key=settings.EDGE_FUNCTIONS_KEY,
        timeout=settings.EDGE_FUNCTIONS_TIMEOUT,
    )
