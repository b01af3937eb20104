"""JSON-RPC client for MCP tool/resource servers"""
import logging
import uuid
from typing import List, Dict, Any, Optional
import httpx

from ..config import settings
from ..models import ConnectionRecord, MCPResource, MCPTool

logger = logging.getLogger(__name__)


class MCPClientError(Exception):
    """Raised on transport failures and JSON-RPC error responses"""


class MCPClient:
    """Client for an MCP server speaking JSON-RPC 2.0 over HTTP"""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.MCP_TIMEOUT_SECONDS
        self.transport = transport

        self.headers = {"Content-Type": "application/json"}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    @classmethod
    def from_connection(cls, connection: ConnectionRecord) -> "MCPClient":
        """Build a client from a stored connection; the password holds the bearer token"""
        host = connection.host or "localhost"
        if "://" not in host:
            host = f"http://{host}"
        if connection.port and host.count(":") < 2:
            host = f"{host}:{connection.port}"
        return cls(base_url=host, token=connection.password or None)

    def _rpc(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Send one JSON-RPC request.

        Args:
            method: JSON-RPC method name
            params: Optional params object

        Returns:
            The ``result`` member of the response

        Raises:
            MCPClientError: On HTTP failure or an ``error`` member in the response
        """
        payload: Dict[str, Any] = {
            "jsonrpc": "2.0",
            "method": method,
            "id": str(uuid.uuid4()),
        }
        if params is not None:
            payload["params"] = params

        logger.debug(f"MCP {method} -> {self.base_url}/rpc")

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(f"{self.base_url}/rpc", json=payload, headers=self.headers)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            raise MCPClientError(f"{method} request failed: {e}") from e
        except ValueError as e:
            raise MCPClientError(f"{method} returned invalid JSON: {e}") from e

        if body.get("error"):
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise MCPClientError(f"{method} failed: {message}")

        return body.get("result") or {}

    def list_tools(self) -> List[MCPTool]:
        result = self._rpc("tools/list")
        return [
            MCPTool(
                name=tool.get("name", ""),
                description=tool.get("description") or "",
                input_schema=tool.get("inputSchema") or {},
            )
            for tool in result.get("tools", [])
        ]

    def list_resources(self) -> List[MCPResource]:
        result = self._rpc("resources/list")
        return [
            MCPResource(
                uri=resource.get("uri", ""),
                name=resource.get("name") or "",
                description=resource.get("description") or "",
                mime_type=resource.get("mimeType"),
            )
            for resource in result.get("resources", [])
        ]

    def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Invoke a tool.

        Args:
            name: Tool name
            arguments: Tool arguments

        Returns:
            The tool's result object
        """
        try:
            return self._rpc("tools/call", {"name": name, "arguments": arguments or {}})
        except MCPClientError as e:
            raise MCPClientError(f"Tool invocation failed: {e}") from e

    def read_resource(self, uri: str) -> List[Dict[str, Any]]:
        """
        Read a resource.

        Args:
            uri: Resource URI

        Returns:
            The resource contents, one entry per content item
        """
        try:
            result = self._rpc("resources/read", {"uri": uri})
        except MCPClientError as e:
            raise MCPClientError(f"Resource read failed: {e}") from e
        return list(result.get("contents", []))

    def ping(self) -> bool:
        """
        Test MCP server connectivity.

        Returns:
            True if tools/list succeeds, False otherwise
        """
        try:
            self._rpc("tools/list")
            return True
        except MCPClientError as e:
            logger.error(f"MCP server {self.base_url} unreachable: {e}")
            return False
