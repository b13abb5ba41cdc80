"""Feishu (Lark) open API client for Bitable records and Drive media.

The tenant access token is held by a ``TenantTokenCache`` owned by the client
rather than a module global, so tests can swap in a fake clock and exchange.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx

from supplychain_api.config import Settings, settings as default_settings
from supplychain_api.errors import ConfigurationError, FeishuAPIError

logger = logging.getLogger(__name__)

TOKEN_PATH = "/auth/v3/tenant_access_token/internal"
UPLOAD_PATH = "/drive/v1/medias/upload_all"

# Refresh the token when it is this close to expiring
REFRESH_MARGIN_SECONDS = 60
DEFAULT_TOKEN_TTL_SECONDS = 3600


class TenantTokenCache:
    """Caches a tenant access token until ``REFRESH_MARGIN_SECONDS`` before expiry.

    Read-then-write without a lock: one cache per process, one request at a
    time per process.
    """

    def __init__(
        self,
        exchange: Callable[[], Tuple[str, float]],
        clock: Callable[[], float] = time.time,
        refresh_margin: float = REFRESH_MARGIN_SECONDS,
    ):
        self._exchange = exchange
        self._clock = clock
        self._refresh_margin = refresh_margin
        self._token: Optional[str] = None
        self._expire_at = 0.0

    def get(self) -> str:
        now = self._clock()
        if self._token and self._expire_at > now + self._refresh_margin:
            return self._token

        token, expires_in = self._exchange()
        self._token = token
        self._expire_at = now + expires_in
        logger.info(f"Refreshed tenant access token (expires in {expires_in:.0f}s)")
        return token

    def invalidate(self):
        self._token = None
        self._expire_at = 0.0


def _parse_body(response: httpx.Response) -> Any:
    text = response.text
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return {"raw": text}


def _dumps(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False)


def _seg(value: str) -> str:
    return quote(str(value), safe="")


class FeishuClient:
    """Thin synchronous wrapper over the Feishu open API."""

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        base_url: str = "https://open.feishu.cn/open-apis",
        http_client: Optional[httpx.Client] = None,
        token_cache: Optional[TenantTokenCache] = None,
        timeout: float = 60.0,
    ):
        self.app_id = app_id
        self.app_secret = app_secret
        self.base_url = base_url.rstrip("/")
        self.http = http_client or httpx.Client(timeout=timeout)
        self.token_cache = token_cache or TenantTokenCache(self._exchange_token)

    @classmethod
    def from_settings(cls, config: Settings, **kwargs) -> "FeishuClient":
        return cls(
            app_id=config.feishu_app_id,
            app_secret=config.feishu_app_secret,
            base_url=config.feishu_base_url,
            timeout=config.feishu_timeout_seconds,
            **kwargs,
        )

    # --- auth ---

    def _exchange_token(self) -> Tuple[str, float]:
        if not self.app_id or not self.app_secret:
            raise ConfigurationError("Missing FEISHU_APP_ID / FEISHU_APP_SECRET")

        response = self.http.post(
            f"{self.base_url}{TOKEN_PATH}",
            json={"app_id": self.app_id, "app_secret": self.app_secret},
            headers={"Content-Type": "application/json; charset=utf-8"},
        )
        data = _parse_body(response) or {}
        token = data.get("tenant_access_token") if isinstance(data, dict) else None
        if not response.is_success or not token:
            raise FeishuAPIError(
                f"Get tenant_access_token failed: {response.status_code} {_dumps(data)}",
                status=response.status_code,
                payload=data,
            )
        expire = data.get("expire") or DEFAULT_TOKEN_TTL_SECONDS
        return token, float(expire)

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token_cache.get()}"}

    # --- generic request ---

    def request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """Call an open API path and return the decoded JSON body.

        Raises FeishuAPIError on a non-2xx status and on HTTP 200 with a
        non-zero ``code``.
        """
        headers = {**self._auth_headers(), **kwargs.pop("headers", {})}
        response = self.http.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)
        data = _parse_body(response)

        if not response.is_success:
            raise FeishuAPIError(
                f"Feishu API {path} failed: {response.status_code} {_dumps(data)}",
                status=response.status_code,
                payload=data,
            )
        if isinstance(data, dict) and data.get("code"):
            raise FeishuAPIError(
                f"Feishu API {path} error: {_dumps(data)}",
                status=response.status_code,
                payload=data,
            )
        return data or {}

    # --- bitable ---

    def _record_path(self, app_token: str, table_id: str, record_id: str) -> str:
        return (
            f"/bitable/v1/apps/{_seg(app_token)}/tables/{_seg(table_id)}"
            f"/records/{_seg(record_id)}"
        )

    def get_record(self, app_token: str, table_id: str, record_id: str) -> Dict[str, Any]:
        """Fetch one record and return its ``fields`` mapping."""
        data = self.request("GET", self._record_path(app_token, table_id, record_id))
        record = (data.get("data") or {}).get("record") or {}
        return record.get("fields") or {}

    def update_record(
        self, app_token: str, table_id: str, record_id: str, fields: Dict[str, Any]
    ) -> Dict[str, Any]:
        return self.request(
            "PUT",
            self._record_path(app_token, table_id, record_id),
            content=_dumps({"fields": fields}).encode("utf-8"),
            headers={"Content-Type": "application/json; charset=utf-8"},
        )

    def list_records(self, app_token: str, table_id: str, page_size: int = 100) -> List[Dict[str, Any]]:
        """Fetch every record of a table, following ``page_token`` pagination."""
        path = f"/bitable/v1/apps/{_seg(app_token)}/tables/{_seg(table_id)}/records"
        items: List[Dict[str, Any]] = []
        page_token = None
        while True:
            params = {"page_size": str(page_size)}
            if page_token:
                params["page_token"] = page_token
            data = (self.request("GET", path, params=params).get("data")) or {}
            items.extend(data.get("items") or [])
            page_token = data.get("page_token")
            if not data.get("has_more") or not page_token:
                break
        logger.info(f"Listed {len(items)} records from table {table_id}")
        return items

    def list_fields(self, app_token: str, table_id: str) -> Dict[str, Any]:
        data = self.request(
            "GET", f"/bitable/v1/apps/{_seg(app_token)}/tables/{_seg(table_id)}/fields"
        )
        return data.get("data") or data

    # --- drive media ---

    def download_media(self, file_token: str) -> httpx.Response:
        """GET the raw media; status checking is left to the caller."""
        return self.http.get(
            f"{self.base_url}/drive/v1/medias/{_seg(file_token)}/download",
            headers=self._auth_headers(),
        )

    def upload_media(
        self, content: bytes, file_name: str, parent_type: str, parent_node: str,
        mime_type: str = "application/pdf",
    ) -> httpx.Response:
        """Multipart ``upload_all``; returns the raw response for the caller to inspect."""
        form = {
            "file_name": file_name,
            "parent_type": parent_type,
            "parent_node": parent_node,
            "size": str(len(content)),
        }
        return self.http.post(
            f"{self.base_url}{UPLOAD_PATH}",
            data=form,
            files={"file": (file_name, content, mime_type)},
            headers=self._auth_headers(),
        )

    def close(self):
        self.http.close()


_client: Optional[FeishuClient] = None


def get_feishu_client() -> FeishuClient:
    """FastAPI dependency: one client (and token cache) per process."""
    global _client
    if _client is None:
        _client = FeishuClient.from_settings(default_settings)
    return _client
