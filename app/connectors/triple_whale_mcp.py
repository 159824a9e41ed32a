"""
Triple Whale over MCP

Alternate commerce-data strategy: instead of the REST API, ask Triple Whale's
"moby" natural-language tool through its MCP server, a subprocess speaking
JSON-RPC 2.0 over stdin/stdout. Exposes the same contract as
TripleWhaleConnector, so fallback and error handling are shared.
"""
from typing import Any, Dict, List, Optional
import asyncio
import json
import re
import shlex

from app import __version__
from app.config import Settings
from app.connectors.base_connector import ConnectorError
from app.connectors.triple_whale_connector import (
    TripleWhaleConnector,
    normalize_customer,
    normalize_order,
)
from app.models.common import DateRange
from app.models.triple_whale import TripleWhaleCustomer, TripleWhaleMetrics, TripleWhaleOrder
from app.utils.helpers import safe_divide
from app.utils.logger import log

MCP_PROTOCOL_VERSION = "2024-11-05"
MOBY_TOOL = "moby"

_NUMBER = r"([0-9][0-9,]*(?:\.[0-9]+)?)"
METRIC_PATTERNS = {
    "total_revenue": re.compile(r"\b(?:revenue|sales)\b[^0-9$\n]{0,20}\$?\s*" + _NUMBER, re.IGNORECASE),
    "orders": re.compile(r"\b(?:orders?|transactions?)\b[^0-9\n]{0,20}" + _NUMBER, re.IGNORECASE),
    "roas": re.compile(r"\broas\b[^0-9\n]{0,20}" + _NUMBER, re.IGNORECASE),
    "ad_spend": re.compile(r"\bad\s*spend\b[^0-9$\n]{0,20}\$?\s*" + _NUMBER, re.IGNORECASE),
    "conversion_rate": re.compile(r"\b(?:conversion(?:\s+rate)?|cvr)\b[^0-9\n]{0,20}" + _NUMBER, re.IGNORECASE),
}
# Auth failures only: valid answers can mention "failed payments" or "errors"
ACCESS_FAILURE = re.compile(
    r"\b(?:unauthori[sz]ed|forbidden|access denied|invalid api key|(?:status|code|http|error)\s*:?\s*40[13])\b",
    re.IGNORECASE,
)
# Max bytes of one JSON-RPC line, i.e. of a whole moby answer
STREAM_LIMIT = 16 * 1024 * 1024


def _number(match: Optional["re.Match"]) -> float:
    return float(match.group(1).replace(",", "")) if match else 0.0


def tool_text(result: Any) -> str:
    """Concatenate the text parts of a tools/call result; raise on tool errors"""
    if not isinstance(result, dict):
        raise ConnectorError("MCP tool returned no result")

    parts = result.get("content") if isinstance(result.get("content"), list) else []
    text = "\n".join(
        str(part.get("text", "")) for part in parts
        if isinstance(part, dict) and part.get("type", "text") == "text"
    ).strip()

    if result.get("isError"):
        raise ConnectorError(f"MCP tool error: {text or 'unknown error'}")
    if not text:
        raise ConnectorError("MCP tool returned an empty answer")
    return text


def parse_moby_metrics(text: str) -> TripleWhaleMetrics:
    """Extract store metrics from a free-text moby answer"""
    if ACCESS_FAILURE.search(text):
        raise ConnectorError(f"MCP answer reports an API access problem: {text[:200]}")

    found = {name: pattern.search(text) for name, pattern in METRIC_PATTERNS.items()}
    if not (found["total_revenue"] or found["orders"]):
        raise ConnectorError("No metrics found in MCP answer")

    revenue = _number(found["total_revenue"])
    orders = int(_number(found["orders"]))
    return TripleWhaleMetrics(
        total_revenue=revenue,
        orders=orders,
        average_order_value=safe_divide(revenue, orders),
        conversion_rate=_number(found["conversion_rate"]),
        ad_spend=_number(found["ad_spend"]),
        roas=_number(found["roas"]),
    )


def parse_moby_records(text: str) -> List[Dict[str, Any]]:
    """Decode the first JSON array embedded in a moby answer"""
    decoder = json.JSONDecoder()
    for match in re.finditer(r"\[", text):
        try:
            value, _ = decoder.raw_decode(text, match.start())
        except ValueError:
            continue
        if isinstance(value, list):
            return [item for item in value if isinstance(item, dict) and item.get("id") is not None]
    raise ConnectorError("No JSON records found in MCP answer")


class McpStdioTransport:
    """
    One MCP server subprocess, used as an async context manager.

    Usage:
        async with McpStdioTransport(command, timeout=20) as mcp:
            result = await mcp.call_tool("moby", {"question": "..."})
    """

    def __init__(self, command: List[str], timeout: float, limit: int = STREAM_LIMIT):
        self.command = command
        self.timeout = timeout
        self.limit = limit
        self.process: Optional[asyncio.subprocess.Process] = None
        self._message_id = 0

    async def __aenter__(self):
        try:
            self.process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
                limit=self.limit,
            )
        except OSError as e:
            raise ConnectorError(f"Failed to start MCP server: {e}")

        try:
            await self.request("initialize", {
                "protocolVersion": MCP_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": "unified-marketing-dashboard", "version": __version__},
            })
            await self.notify("notifications/initialized")
        except BaseException:
            await self.close()
            raise
        log.info("Triple Whale MCP server initialized")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self.process is None:
            return
        if self.process.returncode is None:
            self.process.terminate()
            try:
                await asyncio.wait_for(self.process.wait(), timeout=5)
            except asyncio.TimeoutError:
                self.process.kill()
                await self.process.wait()
        self.process = None

    async def _write(self, message: Dict[str, Any]):
        if self.process is None or self.process.stdin is None:
            raise ConnectorError("MCP server is not running")
        self.process.stdin.write((json.dumps(message) + "\n").encode())
        await self.process.stdin.drain()

    async def notify(self, method: str, params: Optional[Dict[str, Any]] = None):
        message: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        await self._write(message)

    async def request(self, method: str, params: Dict[str, Any]) -> Any:
        """Send a request and wait (bounded by timeout) for the matching response"""
        self._message_id += 1
        message_id = self._message_id
        await self._write({"jsonrpc": "2.0", "id": message_id, "method": method, "params": params})

        try:
            return await asyncio.wait_for(self._read_response(message_id), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise ConnectorError(f"MCP request '{method}' timed out after {self.timeout}s", retryable=True)

    async def _read_response(self, message_id: int) -> Any:
        while True:
            try:
                line = await self.process.stdout.readline()
            except (ValueError, asyncio.LimitOverrunError):
                raise ConnectorError(f"MCP response exceeds the {self.limit} byte message limit", retryable=False)
            if not line:
                raise ConnectorError("MCP server closed its output stream")
            try:
                message = json.loads(line)
            except ValueError:
                log.debug(f"Ignoring non-JSON MCP output: {line[:200]!r}")
                continue
            if not isinstance(message, dict) or message.get("id") != message_id:
                continue
            if message.get("error"):
                error = message["error"]
                detail = error.get("message") if isinstance(error, dict) else error
                raise ConnectorError(f"MCP request failed: {detail}")
            return message.get("result")

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> Any:
        return await self.request("tools/call", {"name": name, "arguments": arguments})

    async def list_tools(self) -> List[str]:
        result = await self.request("tools/list", {})
        tools = (result or {}).get("tools") or []
        return [tool.get("name") for tool in tools if isinstance(tool, dict)]


class TripleWhaleMcpConnector(TripleWhaleConnector):
    """Triple Whale connector backed by the moby MCP tool"""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.name = "Triple Whale MCP"
        self.command = shlex.split(settings.triple_whale_mcp_command) + [settings.triple_whale_api_key]
        self.shop_id = settings.triple_whale_shop_id

    def _transport(self) -> McpStdioTransport:
        return McpStdioTransport(self.command, timeout=self.settings.request_timeout_seconds)

    async def _ask(self, question: str) -> str:
        async with self._transport() as mcp:
            result = await mcp.call_tool(MOBY_TOOL, {"question": question, "shopId": self.shop_id})
        return tool_text(result)

    def _period(self, date_range: DateRange) -> str:
        params = self._date_params(date_range)
        return f"from {params['start_date']} to {params['end_date']}"

    async def test_connection(self) -> bool:
        try:
            async with self._transport() as mcp:
                tools = await mcp.list_tools()
            return MOBY_TOOL in tools
        except ConnectorError as e:
            log.error(f"Triple Whale MCP connection test failed: {e}")
            return False

    async def metrics_from(self, date_range, orders, customers):
        """moby reports store metrics itself; the fetched record lists are not summed"""
        return await self.get_metrics(date_range)

    async def _fetch_metrics(self, date_range: DateRange) -> TripleWhaleMetrics:
        answer = await self._ask(
            f"Get summary metrics for the period {self._period(date_range)}. Include total revenue, "
            f"orders, conversion rate, ad spend, and ROAS for shop {self.shop_id}."
        )
        metrics = parse_moby_metrics(answer)
        log.info(f"Parsed Triple Whale metrics from MCP: revenue {metrics.total_revenue:.2f}, {metrics.orders} orders")
        return metrics

    async def _fetch_customers(self, date_range: Optional[DateRange]) -> List[TripleWhaleCustomer]:
        period = f" active {self._period(date_range)}" if date_range is not None else ""
        answer = await self._ask(
            f"List the customers{period} for shop {self.shop_id} as a JSON array of objects with keys "
            "id, email, first_name, last_name, phone, orders_count, total_spent, created_at, updated_at, "
            "accepts_marketing, tags."
        )
        customers = [normalize_customer(raw) for raw in parse_moby_records(answer)]
        log.info(f"Fetched {len(customers)} customers from Triple Whale MCP")
        return customers

    async def _fetch_orders(self, date_range: DateRange) -> List[TripleWhaleOrder]:
        answer = await self._ask(
            f"List the orders {self._period(date_range)} for shop {self.shop_id} as a JSON array of objects "
            "with keys id, customer_id, email, total_price, currency, created_at, financial_status, "
            "source_name, utm_campaign."
        )
        orders = [normalize_order(raw) for raw in parse_moby_records(answer)]
        log.info(f"Fetched {len(orders)} orders from Triple Whale MCP")
        return orders
