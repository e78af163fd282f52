# =============================================================================
# core/config.py  -  Settings from the environment
# =============================================================================
#
# main.py calls load_dotenv() before anything reads the environment, so a
# local .env file works the same as exported variables.
#
#   SF_USERNAME / SF_PASSWORD        required
#   SF_CLIENT_ID / SF_CLIENT_SECRET  connected-app credentials, or
#   SF_SECURITY_TOKEN                a user security token instead
#   SF_LOGIN_URL                     default https://login.salesforce.com
#   SF_API_VERSION                   optional, e.g. "59.0"
#   MCP_SERVER_NAME                  default "salesforce-cloud"
#   NAME_MATCH_POLICY                boundary | prefix | contains
#   LOG_LEVEL                        default INFO
# =============================================================================

from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import urlparse
import os

from core.query_builder import NameMatchPolicy

DEFAULT_LOGIN_URL = "https://login.salesforce.com"
DEFAULT_SERVER_NAME = "salesforce-cloud"


def server_name_from_env(environ: Optional[Mapping[str, str]] = None) -> str:
    """MCP_SERVER_NAME, needed when the server module is imported."""
    env = os.environ if environ is None else environ
    return env.get("MCP_SERVER_NAME", "").strip() or DEFAULT_SERVER_NAME


@dataclass(frozen=True)
class Settings:
    username: Optional[str] = None
    password: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    security_token: Optional[str] = None
    login_url: str = DEFAULT_LOGIN_URL
    api_version: Optional[str] = None
    server_name: str = DEFAULT_SERVER_NAME
    name_match_policy: NameMatchPolicy = NameMatchPolicy.BOUNDARY
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        def read(key: str) -> Optional[str]:
            value = env.get(key, "").strip()
            return value or None

        policy = (read("NAME_MATCH_POLICY") or NameMatchPolicy.BOUNDARY.value).lower()
        try:
            name_match_policy = NameMatchPolicy(policy)
        except ValueError:
            raise ValueError(
                f"NAME_MATCH_POLICY must be one of "
                f"{', '.join(p.value for p in NameMatchPolicy)}, got {policy!r}"
            ) from None

        return cls(
            username=read("SF_USERNAME"),
            password=read("SF_PASSWORD"),
            client_id=read("SF_CLIENT_ID"),
            client_secret=read("SF_CLIENT_SECRET"),
            security_token=read("SF_SECURITY_TOKEN"),
            login_url=read("SF_LOGIN_URL") or DEFAULT_LOGIN_URL,
            api_version=read("SF_API_VERSION"),
            server_name=server_name_from_env(env),
            name_match_policy=name_match_policy,
            log_level=(read("LOG_LEVEL") or "INFO").upper(),
        )

    def missing_credentials(self) -> list[str]:
        """Names of the environment variables still needed to log in."""
        missing = [
            name for name, value in (("SF_USERNAME", self.username), ("SF_PASSWORD", self.password))
            if not value
        ]
        has_connected_app = bool(self.client_id and self.client_secret)
        if not has_connected_app and not self.security_token:
            missing.append("SF_CLIENT_ID/SF_CLIENT_SECRET or SF_SECURITY_TOKEN")
        return missing

    @property
    def domain(self) -> str:
        """The simple_salesforce domain for `login_url`.

        https://login.salesforce.com -> "login", https://test.salesforce.com
        -> "test", https://acme.my.salesforce.com -> "acme.my".
        """
        host = urlparse(self.login_url).hostname or self.login_url
        suffix = ".salesforce.com"
        if host.endswith(suffix):
            return host[: -len(suffix)]
        return host
