"""HTTP request node."""

from typing import Any, Dict, List

import httpx

from core.graph.models import NodeData
from plugins.base import NodeAdapter, execution_data


METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD")


class HTTPRequestNode(NodeAdapter):
    """Make HTTP requests.

    ``actions.method`` selects the verb; ``inputParameters`` carries ``url``,
    ``headers``, ``queryParams``, ``body`` and ``timeout``. Non-2xx responses
    fail the node unless ``inputParameters.failOnError`` is false.
    """

    name = "httpRequest"
    label = "HTTP Request"
    description = "Execute an HTTP request"
    category = "Development"
    inputs = {
        "url": "Request URL",
        "headers": "Request headers",
        "queryParams": "Query string parameters",
        "body": "JSON object or raw string body",
        "timeout": "Timeout in seconds (default 30)",
        "failOnError": "Fail the node on a non-2xx response (default true)",
    }

    def __init__(self, transport: httpx.AsyncBaseTransport = None):
        self._transport = transport

    async def run(self, node_data: NodeData) -> List[Dict[str, Any]]:
        params = node_data.input_parameters
        method = str(node_data.actions.get("method") or params.get("method") or "GET").upper()
        url = params.get("url")
        body = params.get("body")

        if not url:
            raise ValueError("URL is required")
        if method not in METHODS:
            raise ValueError(f"Invalid HTTP method: {method}")

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.request(
                method=method,
                url=url,
                headers=params.get("headers") or {},
                params=params.get("queryParams") or None,
                json=body if isinstance(body, (dict, list)) else None,
                content=body if isinstance(body, str) else None,
                timeout=float(params.get("timeout", 30)),
            )

        if params.get("failOnError", True):
            response.raise_for_status()

        try:
            response_body = response.json()
        except ValueError:
            response_body = response.text

        return execution_data([{
            "statusCode": response.status_code,
            "headers": dict(response.headers),
            "body": response_body,
        }])
