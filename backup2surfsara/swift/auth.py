"""Swift authentication client for backup2surfsara.

Verifies Swift credentials before a backup by authenticating against the
configured endpoint (auth v1, Keystone v2.0 or Keystone v3) and checking
the backup container.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import requests

from backup2surfsara.config.credentials import SwiftCredentials

logger = logging.getLogger("backup2surfsara.swift")


# Request timeout in seconds
REQUEST_TIMEOUT = 30

USER_AGENT = "backup2surfsara/1.0"


class SwiftError(Exception):
    """Base exception for Swift errors."""
    pass


class SwiftConnectionError(SwiftError):
    """Raised when unable to reach the auth or storage endpoint."""
    pass


class SwiftAuthError(SwiftError):
    """Raised when the credentials are rejected."""
    pass


@dataclass
class SwiftSession:
    """Token and storage endpoint obtained from authentication."""
    token: str
    storage_url: str


def detect_auth_version(credentials: SwiftCredentials) -> str:
    """
    Pick the auth protocol to use.

    Returns:
        "1", "2" or "3": SWIFT_AUTHVERSION if set, else guessed from the URL
    """
    version = (credentials.auth_version or "").strip()
    if version:
        return version.split(".")[0]
    url = credentials.auth_url.rstrip("/")
    if url.endswith("/v3"):
        return "3"
    if url.endswith("/v2.0"):
        return "2"
    return "1"


def _find_object_store(catalog, url_key: str, interface: Optional[str] = None) -> Optional[str]:
    for service in catalog or []:
        if service.get("type") != "object-store":
            continue
        for endpoint in service.get("endpoints", []):
            if interface is None or endpoint.get("interface") == interface:
                url = endpoint.get(url_key)
                if url:
                    return url
    return None


class SwiftAuthClient:
    """Client for authenticating against Swift / Keystone."""

    def __init__(self, credentials: SwiftCredentials, timeout: int = REQUEST_TIMEOUT):
        """
        Initialize the client.

        Args:
            credentials: Swift credentials
            timeout: Request timeout in seconds
        """
        self._credentials = credentials
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": USER_AGENT})

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Make a request, mapping transport errors.

        Raises:
            SwiftConnectionError: If unable to connect
            SwiftError: For other request failures
        """
        try:
            logger.debug(f"{method} {url}")
            return self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.exceptions.Timeout:
            logger.error(f"Request to {url} timed out")
            raise SwiftConnectionError(f"Request timed out connecting to {url}")
        except requests.exceptions.ConnectionError as e:
            logger.error(f"Connection error: {e}")
            raise SwiftConnectionError(f"Unable to connect to {url}")
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error: {e}")
            raise SwiftError(f"Request failed: {e}")

    @staticmethod
    def _check_auth_response(response: requests.Response) -> None:
        if response.status_code in (401, 403):
            raise SwiftAuthError("Authentication failed: credentials were rejected")
        if response.status_code >= 400:
            raise SwiftError(f"Auth error {response.status_code}: {response.text}")

    def authenticate(self) -> SwiftSession:
        """
        Authenticate with the configured protocol.

        Returns:
            SwiftSession with token and storage URL

        Raises:
            SwiftAuthError: If the credentials are rejected or incomplete
            SwiftConnectionError: If unable to connect
            SwiftError: For other errors
        """
        missing = self._credentials.missing_fields()
        if missing:
            raise SwiftAuthError(f"Missing credentials: {', '.join(missing)}")

        version = detect_auth_version(self._credentials)
        logger.info(f"Authenticating to {self._credentials.auth_url} (auth v{version})")
        if version == "1":
            session = self._authenticate_v1()
        elif version == "2":
            session = self._authenticate_v2()
        elif version == "3":
            session = self._authenticate_v3()
        else:
            raise SwiftError(f"Unsupported auth version: {version}")

        logger.info(f"Authenticated, storage URL {session.storage_url}")
        return session

    def _authenticate_v1(self) -> SwiftSession:
        creds = self._credentials
        response = self._request("GET", creds.auth_url, headers={
            "X-Auth-User": creds.username,
            "X-Auth-Key": creds.password,
        })
        self._check_auth_response(response)
        token = response.headers.get("X-Auth-Token")
        storage_url = response.headers.get("X-Storage-Url")
        if not token or not storage_url:
            raise SwiftError("Auth response lacks X-Auth-Token or X-Storage-Url")
        return SwiftSession(token=token, storage_url=storage_url)

    def _authenticate_v2(self) -> SwiftSession:
        creds = self._credentials
        url = creds.auth_url.rstrip("/") + "/tokens"
        body = {
            "auth": {
                "tenantName": creds.project_name,
                "passwordCredentials": {
                    "username": creds.user_name,
                    "password": creds.password,
                },
            }
        }
        response = self._request("POST", url, json=body)
        self._check_auth_response(response)
        try:
            access = response.json()["access"]
            token = access["token"]["id"]
        except (ValueError, KeyError, TypeError) as e:
            raise SwiftError(f"Unexpected auth response: {e}")
        storage_url = _find_object_store(access.get("serviceCatalog"), "publicURL")
        if not storage_url:
            raise SwiftError("No object-store endpoint in service catalog")
        return SwiftSession(token=token, storage_url=storage_url)

    def _authenticate_v3(self) -> SwiftSession:
        creds = self._credentials
        url = creds.auth_url.rstrip("/") + "/auth/tokens"
        body = {
            "auth": {
                "identity": {
                    "methods": ["password"],
                    "password": {
                        "user": {
                            "name": creds.user_name,
                            "domain": {"name": creds.user_domain_name},
                            "password": creds.password,
                        }
                    },
                },
                "scope": {
                    "project": {
                        "name": creds.project_name,
                        "domain": {"name": creds.project_domain_name},
                    }
                },
            }
        }
        response = self._request("POST", url, json=body)
        self._check_auth_response(response)
        token = response.headers.get("X-Subject-Token")
        if not token:
            raise SwiftError("Auth response lacks X-Subject-Token")
        try:
            catalog = response.json()["token"].get("catalog")
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise SwiftError(f"Unexpected auth response: {e}")
        storage_url = _find_object_store(catalog, "url", interface="public")
        if not storage_url:
            raise SwiftError("No public object-store endpoint in catalog")
        return SwiftSession(token=token, storage_url=storage_url)

    def container_exists(self, session: SwiftSession, container: str) -> bool:
        """
        Check whether a container exists.

        Raises:
            SwiftAuthError: If the token is not accepted
            SwiftError: For unexpected responses
        """
        url = f"{session.storage_url.rstrip('/')}/{quote(container, safe='')}"
        response = self._request("HEAD", url, headers={"X-Auth-Token": session.token})
        if response.status_code in (200, 204):
            return True
        if response.status_code == 404:
            return False
        self._check_auth_response(response)
        raise SwiftError(f"Unexpected status {response.status_code} for container {container}")

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()

    def __enter__(self) -> "SwiftAuthClient":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
