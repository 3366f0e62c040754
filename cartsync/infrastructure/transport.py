"""Transport to the commerce platform.

Decodes every response into exactly one of three cases: no response
(TransportFailure), a structured rejection (ProtocolRejection), or
data. Free-text error messages are carried along for logs but nothing
downstream branches on them.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
import structlog

from cartsync.infrastructure.config import Settings, settings as default_settings
from cartsync.infrastructure.operations import Operation

logger = structlog.get_logger()


# ============================================================================
# Transport Results
# ============================================================================


@dataclass
class TransportFailure:
    """The platform could not be reached or gave no usable response."""

    message: str
    status_code: int | None = None


@dataclass
class ProtocolError:
    """One structured error reported by the platform.

    Attributes:
        code: Machine-readable error code.
        message: Free text, for logs only.
        fields: Remaining structured error fields.
    """

    code: str
    message: str = ""
    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "ProtocolError":
        """Create from a GraphQL error entry."""
        extensions = dict(data.get("extensions") or {})
        code = extensions.pop("code", "") or ""
        return cls(code=code, message=data.get("message", ""), fields=extensions)


@dataclass
class ProtocolRejection:
    """The platform answered and rejected the request."""

    errors: list[ProtocolError] = field(default_factory=list)

    @property
    def codes(self) -> list[str]:
        """Error codes in reported order."""
        return [e.code for e in self.errors]


@dataclass
class TransportResult:
    """Decoded platform response."""

    data: dict[str, Any] | None = None
    error: TransportFailure | ProtocolRejection | None = None


class Transport(Protocol):
    """Anything that can execute a platform operation."""

    async def execute(
        self, operation: Operation, variables: dict[str, Any]
    ) -> TransportResult:
        """Execute an operation."""
        ...


# ============================================================================
# GraphQL Transport
# ============================================================================


class GraphQLTransport:
    """HTTP client for the platform's GraphQL endpoint.

    Provides a single ``execute`` entry point with error decoding and
    response normalization.
    """

    def __init__(
        self,
        config: Settings | None = None,
        request_id: str | None = None,
        locale: str = "en",
    ) -> None:
        """Initialize transport.

        Args:
            config: Settings (uses global settings if not provided).
            request_id: Optional request ID for correlation.
            locale: Locale passed to localized fields.
        """
        self.config = config or default_settings
        self.request_id = request_id
        self.locale = locale
        self._client: httpx.AsyncClient | None = None

    @property
    def path(self) -> str:
        """GraphQL endpoint path."""
        return f"/{self.config.ecp_project_key}/graphql"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {
                "Authorization": f"Bearer {self.config.ecp_access_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
            if self.request_id:
                headers["X-Request-ID"] = self.request_id
            self._client = httpx.AsyncClient(
                base_url=self.config.ecp_api_url,
                timeout=self.config.request_timeout_seconds,
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GraphQLTransport":
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.close()

    async def execute(
        self, operation: Operation, variables: dict[str, Any]
    ) -> TransportResult:
        """Execute an operation.

        Args:
            operation: Operation descriptor.
            variables: GraphQL variables.

        Returns:
            Decoded result; never raises for transport or protocol errors.
        """
        payload = {
            "query": operation.document,
            "operationName": operation.name,
            "variables": {"locale": self.locale, **variables},
        }

        try:
            client = await self._get_client()
            response = await client.post(self.path, json=payload)
        except httpx.RequestError as e:
            logger.error(
                "Platform request failed",
                operation=operation.name,
                error=str(e),
                request_id=self.request_id,
            )
            return TransportResult(error=TransportFailure(message=f"Request failed: {str(e)}"))

        return decode_response(operation, response)


def decode_response(operation: Operation, response: httpx.Response) -> TransportResult:
    """Decode an HTTP response into a TransportResult.

    Args:
        operation: Operation the response belongs to.
        response: Raw HTTP response.

    Returns:
        Decoded result.
    """
    try:
        body = response.json()
    except ValueError:
        logger.error(
            "Platform returned non-JSON response",
            operation=operation.name,
            status_code=response.status_code,
        )
        return TransportResult(
            error=TransportFailure(
                message="Response body is not JSON",
                status_code=response.status_code,
            )
        )

    errors = body.get("errors") if isinstance(body, dict) else None
    if errors:
        rejection = ProtocolRejection(
            errors=[ProtocolError.from_api_response(e) for e in errors]
        )
        logger.info(
            "Platform rejected operation",
            operation=operation.name,
            codes=rejection.codes,
            status_code=response.status_code,
        )
        return TransportResult(error=rejection)

    if response.status_code >= 500:
        return TransportResult(
            error=TransportFailure(
                message=f"Platform error {response.status_code}",
                status_code=response.status_code,
            )
        )

    data = body.get("data") if isinstance(body, dict) else None
    return TransportResult(data=data)
