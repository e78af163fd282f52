# =============================================================================
# core/backend.py  -  RecordBackend capability + Salesforce implementation
# =============================================================================
#
# RecordBackend is the only thing RecordClient knows about the remote
# system.  It is deliberately synchronous and thin: each method is one
# round trip and returns plain dicts.  RecordClient runs these calls in a
# worker thread and adds pagination, simplification and error wrapping.
#
# SalesforceBackend implements the capability on top of simple_salesforce.
# Tests substitute an in-memory fake (tests/conftest.py).
# =============================================================================

from abc import ABC, abstractmethod
from typing import Any, Optional
import logging

from simple_salesforce import Salesforce
from simple_salesforce.exceptions import SalesforceError, SalesforceExpiredSession

from core.config import Settings

logger = logging.getLogger(__name__)


class RecordBackend(ABC):
    """One authenticated connection to a records backend."""

    @abstractmethod
    def login(self, username: str, password: str) -> None:
        """Open a session.  Raises on rejected credentials."""

    @abstractmethod
    def query(self, soql: str) -> dict:
        """Run a query, following every result batch.  Returns {"records": [...], ...}."""

    @abstractmethod
    def describe(self, object_name: str) -> dict:
        """Full descriptor for one object, including "fields"."""

    @abstractmethod
    def describe_global(self) -> dict:
        """Catalog of every object.  Returns {"sobjects": [...], ...}."""

    @abstractmethod
    def identity(self) -> dict:
        """The logged-in user: user_id, username, display_name, email, organization_id."""

    @abstractmethod
    def create(self, object_name: str, data: dict) -> dict:
        """Returns {"success": bool, "id": str | None, "errors": list}."""

    @abstractmethod
    def update(self, object_name: str, record_id: str, data: dict) -> dict:
        """Returns {"success": bool, "errors": list}."""

    @abstractmethod
    def delete(self, object_name: str, record_id: str) -> dict:
        """Returns {"success": bool, "errors": list}."""


def _record_errors(exc: SalesforceError) -> list[Any]:
    content = getattr(exc, "content", None)
    if isinstance(content, list):
        return content
    if content:
        return [content]
    return [str(exc)]


class SalesforceBackend(RecordBackend):
    """RecordBackend over the Salesforce REST API (simple_salesforce)."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._sf: Optional[Salesforce] = None

    @property
    def connection(self) -> Salesforce:
        if self._sf is None:
            raise RuntimeError("Salesforce session has not been opened")
        return self._sf

    def login(self, username: str, password: str) -> None:
        kwargs: dict[str, Any] = {
            "username": username,
            "password": password,
            "domain": self._settings.domain,
        }
        if self._settings.client_id and self._settings.client_secret:
            kwargs["consumer_key"] = self._settings.client_id
            kwargs["consumer_secret"] = self._settings.client_secret
        else:
            kwargs["security_token"] = self._settings.security_token
        if self._settings.api_version:
            kwargs["version"] = self._settings.api_version

        self._sf = Salesforce(**kwargs)
        logger.info("Logged in to %s as %s", self._sf.sf_instance, username)

    def query(self, soql: str) -> dict:
        return self.connection.query_all(soql)

    def describe(self, object_name: str) -> dict:
        return getattr(self.connection, object_name).describe()

    def describe_global(self) -> dict:
        return self.connection.describe()

    def identity(self) -> dict:
        sf = self.connection
        response = sf.session.get(
            f"https://{sf.sf_instance}/services/oauth2/userinfo",
            headers=sf.headers,
        )
        response.raise_for_status()
        info = response.json()
        return {
            "user_id": info.get("user_id"),
            "username": info.get("preferred_username"),
            "display_name": info.get("name"),
            "email": info.get("email"),
            "organization_id": info.get("organization_id"),
        }

    # --- Mutations ---------------------------------------------------------
    # Record-level rejections (validation rules, bad field names) come back
    # from simple_salesforce as SalesforceError; they are reported in
    # "errors".  Anything else (network, auth) propagates.

    def create(self, object_name: str, data: dict) -> dict:
        try:
            result = getattr(self.connection, object_name).create(data)
        except SalesforceExpiredSession:
            raise
        except SalesforceError as exc:
            return {"success": False, "id": None, "errors": _record_errors(exc)}
        return {
            "success": bool(result.get("success")),
            "id": result.get("id"),
            "errors": list(result.get("errors") or []),
        }

    def update(self, object_name: str, record_id: str, data: dict) -> dict:
        try:
            getattr(self.connection, object_name).update(record_id, data)
        except SalesforceExpiredSession:
            raise
        except SalesforceError as exc:
            return {"success": False, "errors": _record_errors(exc)}
        return {"success": True, "errors": []}

    def delete(self, object_name: str, record_id: str) -> dict:
        try:
            getattr(self.connection, object_name).delete(record_id)
        except SalesforceExpiredSession:
            raise
        except SalesforceError as exc:
            return {"success": False, "errors": _record_errors(exc)}
        return {"success": True, "errors": []}
