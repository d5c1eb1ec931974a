# eyewear_catalog/services/category_source.py
import asyncio
import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote
import aiohttp
from ..config import Config
from ..models.category import CategoryLevel

logger = logging.getLogger(__name__)

LIST_KEYS = ("categories", "subcategories", "children")
SINGLE_KEYS = ("category", "subcategory")


class SourceError(Exception):
    """Transport failure talking to the catalog backend"""

    def __init__(self, message: str, endpoint: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status = status


def unwrap_envelope(body: Any) -> Any:
    """Strip ``{"success": ..., "data": ...}`` wrappers, however deeply nested"""
    while isinstance(body, dict) and body.get("data") is not None:
        body = body["data"]
    return body


def extract_node_list(body: Any) -> List[Dict[str, Any]]:
    """Map every accepted list shape onto one list of raw nodes"""
    body = unwrap_envelope(body)
    if isinstance(body, dict):
        for key in LIST_KEYS:
            if isinstance(body.get(key), list):
                body = body[key]
                break
    if not isinstance(body, list):
        return []
    return [item for item in body if isinstance(item, dict)]


def extract_single_node(body: Any) -> Optional[Dict[str, Any]]:
    """Map every accepted single-node shape onto one raw node"""
    body = unwrap_envelope(body)
    if not isinstance(body, dict):
        return None
    for key in SINGLE_KEYS:
        if isinstance(body.get(key), dict):
            return body[key]
    if "id" in body:
        return body
    return None


class CategorySourceClient:
    """Reads categories and subcategories from the REST backend.

    Every fetch returns raw records in a single shape (see
    ``extract_node_list``) and raises ``SourceError`` on transport
    failures. A 404 on a single-node lookup returns ``None``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        token: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = (base_url or Config.API_BASE_URL).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout or Config.REQUEST_TIMEOUT)
        self.token = token if token is not None else Config.API_TOKEN
        self._session = session
        self._owns_session = session is None

    async def connect(self):
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True

    async def close(self):
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "CategorySourceClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", "Cache-Control": "no-cache"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get(self, path: str, params: Optional[Dict[str, str]] = None,
                   allow_not_found: bool = False) -> Any:
        if self._session is None or self._session.closed:
            await self.connect()

        url = f"{self.base_url}{path}"
        query = dict(params or {})
        # Cache buster
        query["_t"] = str(int(time.time() * 1000))
        logger.debug("GET %s", url)

        try:
            async with self._session.get(
                url, params=query, headers=self._headers(), timeout=self.timeout
            ) as response:
                if response.status == 404 and allow_not_found:
                    return None
                if not 200 <= response.status < 300:
                    raise SourceError(f"HTTP {response.status} from {path}", path, response.status)
                try:
                    body = await response.json(content_type=None)
                except ValueError as e:
                    raise SourceError(f"Non-JSON response from {path}", path, response.status) from e
        except aiohttp.ClientError as e:
            raise SourceError(f"Request to {path} failed: {e}", path) from e
        except asyncio.TimeoutError as e:
            raise SourceError(f"Request to {path} timed out", path) from e

        if isinstance(body, dict) and body.get("success") is False:
            message = body.get("message") or body.get("error") or "request unsuccessful"
            raise SourceError(f"{path}: {message}", path)
        return body

    async def fetch_top_level_categories(self, include_products: bool = False,
                                         include_subcategories: bool = False) -> List[Dict[str, Any]]:
        params = {}
        if include_products:
            params["includeProducts"] = "true"
        if include_subcategories:
            params["includeSubcategories"] = "true"
        return extract_node_list(await self._get("/categories", params))

    async def fetch_subcategories_by_category_id(self, category_id: int) -> List[Dict[str, Any]]:
        return extract_node_list(await self._get(f"/subcategories/by-category/{category_id}"))

    async def fetch_sub_subcategories_by_parent_id(self, parent_id: int) -> List[Dict[str, Any]]:
        return extract_node_list(await self._get(f"/subcategories/by-parent/{parent_id}"))

    async def fetch_node_by_slug(self, level: CategoryLevel, slug: str) -> Optional[Dict[str, Any]]:
        base = "/categories" if level == CategoryLevel.CATEGORY else "/subcategories"
        body = await self._get(f"{base}/slug/{quote(slug, safe='')}", allow_not_found=True)
        return extract_single_node(body)

    async def fetch_node_by_id(self, level: CategoryLevel, node_id: int) -> Optional[Dict[str, Any]]:
        base = "/categories" if level == CategoryLevel.CATEGORY else "/subcategories"
        body = await self._get(f"{base}/{node_id}", allow_not_found=True)
        return extract_single_node(body)
