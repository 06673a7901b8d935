"""Search Engine collaborator: runs a query string against the member directory."""
import logging
from typing import NamedTuple, Protocol

from common.mcp_client import MCPClient

log = logging.getLogger(__name__)


class SearchResult(NamedTuple):
    text: str
    result_ids: list[str]


class SearchEngine(Protocol):
    async def search(self, query: str, exclude_ids: list[str]) -> SearchResult: ...


class MCPSearchEngine:
    def __init__(self, mcp: MCPClient, limit: int = 3, timeout: float = 20):
        self.mcp = mcp
        self.limit = limit
        self.timeout = timeout

    async def search(self, query: str, exclude_ids: list[str]) -> SearchResult:
        result = await self.mcp.call(
            "directory.search",
            {"query": query, "exclude_ids": list(exclude_ids), "limit": self.limit},
            timeout=self.timeout,
        )
        if not isinstance(result, dict):
            return SearchResult("", [])
        ids = [str(r) for r in result.get("result_ids") or []]
        text = result.get("text") or _render(result.get("profiles") or [])
        log.info(f"[SEARCH] query='{query}' excluded={len(exclude_ids)} → {len(ids)} results")
        return SearchResult(text, ids)


def _render(profiles: list[dict]) -> str:
    lines = []
    for i, p in enumerate(profiles, 1):
        name = p.get("name") or "Alumni member"
        role = p.get("role") or p.get("professional_role") or ""
        city = p.get("city") or p.get("address") or ""
        header = f"{i}. *{name}*"
        details = " | ".join(x for x in (role, city) if x)
        lines.append(header + (f"\n   {details}" if details else ""))
        if p.get("linkedin"):
            lines.append(f"   {p['linkedin']}")
    return "\n".join(lines)
