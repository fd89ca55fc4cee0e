"""
Synchronisation with a remote data endpoint.

The local store is always written first. Pushing the full document to the
remote endpoint happens afterwards; when it fails the local copy is kept
and the error is logged, nothing is rolled back or retried.
"""

import json
import socket
import ssl
import urllib.error
import urllib.request
from typing import Any, Dict, Tuple

from .logging_utils import get_logger, log_warning
from .store import (
    COLL_MISSIONS,
    COLL_RESPONSES,
    COLL_SETTINGS,
    COLL_TEMPLATES,
    COLL_USERS,
    Store,
)

USER_AGENT = 'PlanIt-Sync/1.0'

# Keys of the remote document -> local collections
DOCUMENT_KEYS = {
    'users': COLL_USERS,
    'missions': COLL_MISSIONS,
    'templates': COLL_TEMPLATES,
    'responses': COLL_RESPONSES,
}
SETTINGS_KEY = 'appSettings'


class SyncError(Exception):
    """Raised when the remote endpoint cannot be read or written."""
    pass


def describe_url_error(e: urllib.error.URLError, timeout: int) -> str:
    """Turn a urllib error into a short message."""
    if isinstance(e, urllib.error.HTTPError):
        return f"HTTP {e.code}: {e.reason}"
    reason = e.reason
    if isinstance(reason, socket.timeout):
        return f"Connection timeout after {timeout}s"
    if isinstance(reason, socket.gaierror):
        return f"DNS resolution failed: {reason}"
    if isinstance(reason, ssl.SSLError):
        return f"SSL certificate error: {reason}"
    if isinstance(reason, ConnectionRefusedError):
        return f"Connection refused: {reason}"
    if isinstance(reason, OSError):
        return f"Network error: {reason}"
    return str(reason)


def check_connectivity(url: str, timeout: int = 10) -> Tuple[bool, str]:
    """
    Check that the sync endpoint answers.

    Performs a HEAD request to validate DNS, TCP, SSL and HTTP without
    transferring the data document.

    Returns:
        Tuple of (success, error_message); the message is "" on success
    """
    try:
        request = urllib.request.Request(url, method='HEAD')
        request.add_header('User-Agent', USER_AGENT)

        with urllib.request.urlopen(request, timeout=timeout) as response:
            if 200 <= response.status < 400:
                return (True, "")
            return (False, f"HTTP {response.status}: {response.reason}")

    except urllib.error.URLError as e:
        return (False, describe_url_error(e, timeout))

    except socket.timeout:
        return (False, f"Connection timeout after {timeout}s")

    except ValueError as e:
        return (False, f"Invalid URL: {e}")


class RemoteSync:
    """
    Reads and writes the full data document at a remote endpoint.

    The document is {"users": [...], "missions": [...], "templates": [...],
    "responses": [...], "appSettings": {...}}.
    """

    def __init__(self, url: str, timeout: int = 3):
        self.url = url
        self.timeout = timeout

    def _request(self, method: str, body: bytes = None) -> bytes:
        request = urllib.request.Request(self.url, data=body, method=method)
        request.add_header('User-Agent', USER_AGENT)
        if body is not None:
            request.add_header('Content-Type', 'application/json')
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                return response.read()
        except urllib.error.URLError as e:
            raise SyncError(describe_url_error(e, self.timeout)) from e
        except socket.timeout as e:
            raise SyncError(f"Connection timeout after {self.timeout}s") from e

    def pull(self) -> Dict[str, Any]:
        """
        Fetch the remote document.

        Raises:
            SyncError: If the endpoint is unreachable or answers garbage
        """
        raw = self._request('GET')
        try:
            document = json.loads(raw.decode('utf-8') or '{}')
        except (UnicodeDecodeError, ValueError) as e:
            raise SyncError(f"Invalid data document: {e}") from e
        if not isinstance(document, dict):
            raise SyncError("Invalid data document: expected an object")
        return document

    def push(self, document: Dict[str, Any]):
        """
        Send the full document.

        Raises:
            SyncError: If the endpoint rejects or cannot receive it
        """
        if 'users' not in document or 'missions' not in document:
            raise SyncError("Refusing to push a document without users or missions")
        self._request('POST', json.dumps(document, ensure_ascii=False).encode('utf-8'))

    @staticmethod
    def build_document(store: Store) -> Dict[str, Any]:
        document: Dict[str, Any] = {
            key: store.list_all(collection) for key, collection in DOCUMENT_KEYS.items()
        }
        settings = store.list_all(COLL_SETTINGS)
        document[SETTINGS_KEY] = settings[0] if settings else {}
        return document

    def pull_into(self, store: Store) -> int:
        """
        Replace local collections with the remote ones.

        Collections absent from the remote document are left alone.

        Returns:
            Number of documents received
        """
        document = self.pull()
        count = 0
        for key, collection in DOCUMENT_KEYS.items():
            if key in document:
                docs = [d for d in document[key] or [] if isinstance(d, dict) and d.get('id')]
                store.replace_all(collection, docs)
                count += len(docs)
        settings = document.get(SETTINGS_KEY)
        if isinstance(settings, dict) and settings:
            store.upsert(COLL_SETTINGS, settings.get('id', 'app_config'), settings)
            count += 1
        get_logger().info(f"Pulled {count} document(s) from {self.url}")
        return count

    def push_from(self, store: Store) -> bool:
        """
        Push the local store to the remote endpoint.

        Returns:
            True on success; False when the push failed (the local data is
            kept and the failure is logged)
        """
        try:
            self.push(self.build_document(store))
        except SyncError as e:
            log_warning(f"Sync failed, data kept locally: {e}")
            return False
        get_logger().info(f"Synchronised with {self.url}")
        return True
