"""
Shared plumbing for external provider clients.

Provides:
- EnrichmentResult, an explicit success/unavailable result type
- A pooled requests session with urllib3 retries
- ProviderClient, the base class that turns transport failures into
  unavailable results instead of exceptions
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config import ConfigurationError

logger = logging.getLogger(__name__)


class ResultStatus(Enum):
    SUCCESS = "success"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class EnrichmentResult:
    """
    Outcome of an optional external lookup.

    Callers must check ``available`` (or ``status``) before using
    ``payload``; an unavailable result carries the reason instead.
    """
    status: ResultStatus
    payload: Any = None
    reason: str | None = None

    @classmethod
    def success(cls, payload: Any) -> "EnrichmentResult":
        return cls(status=ResultStatus.SUCCESS, payload=payload)

    @classmethod
    def unavailable(cls, reason: str) -> "EnrichmentResult":
        return cls(status=ResultStatus.UNAVAILABLE, reason=reason)

    @property
    def available(self) -> bool:
        return self.status is ResultStatus.SUCCESS

    def payload_or_none(self) -> Any:
        """Payload for persistence: the provider data, or None."""
        return self.payload if self.available else None


def build_session(max_retries: int = 3) -> requests.Session:
    """
    Create a requests session with connection pooling and retries.

    Read timeouts are not retried: a slow provider should come back
    unavailable after one timeout rather than several.

    Args:
        max_retries: Retries for connection errors and 5xx responses.

    Returns:
        Configured requests.Session.
    """
    session = requests.Session()
    retry_strategy = Retry(
        total=max_retries,
        read=0,
        backoff_factor=1,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=["GET"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(
        pool_connections=5,
        pool_maxsize=10,
        max_retries=retry_strategy,
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class ProviderClient:
    """
    Base class for keyed JSON-over-HTTP providers.

    The API key is checked when the client is built; a missing key is a
    configuration error, not a per-call failure.
    """

    provider_name = "provider"
    api_key_env = "API_KEY"

    def __init__(
        self,
        api_key: str | None,
        timeout: float = 10.0,
        max_retries: int = 3,
        session: requests.Session | None = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Provider credential.
            timeout: Per-request timeout in seconds.
            max_retries: Retries for connection errors and 5xx responses.
            session: Pre-built session (tests inject a fake here).

        Raises:
            ConfigurationError: If api_key is missing.
        """
        if not api_key:
            raise ConfigurationError(
                f"Missing {self.provider_name} API key. "
                f"Set the {self.api_key_env} environment variable."
            )
        self.api_key = api_key
        self.timeout = timeout
        self._session = session or build_session(max_retries)

    def _get_json(self, url: str, params: dict[str, Any]) -> EnrichmentResult:
        """
        GET a JSON document.

        Args:
            url: Endpoint URL.
            params: Query parameters (the key is added by the caller).

        Returns:
            Success with the decoded JSON, or unavailable with the reason.
        """
        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return EnrichmentResult.success(response.json())
        except requests.exceptions.Timeout as e:
            reason = f"{self.provider_name} request timed out: {e}"
        except requests.exceptions.HTTPError as e:
            reason = f"{self.provider_name} returned an error status: {e}"
        except requests.exceptions.RequestException as e:
            reason = f"{self.provider_name} request failed: {e}"
        except ValueError as e:
            reason = f"{self.provider_name} returned invalid JSON: {e}"

        logger.warning(reason)
        return EnrichmentResult.unavailable(reason)
