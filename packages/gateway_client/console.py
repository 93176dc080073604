"""
Gateway console REST client (httpx).

Tool -> request mapping:
    list-ai-providers   GET    /v1/ai/providers
    get-ai-provider     GET    /v1/ai/providers/{name}
    add-ai-provider     POST   /v1/ai/providers
    update-ai-provider  PUT    /v1/ai/providers/{name}
    delete-ai-provider  DELETE /v1/ai/providers/{name}
    (same shape for /v1/ai/routes)

Session: POST /session/login once, the session cookie is replayed on every
request; a 401 triggers one re-login and one retry. Transport errors and
non-2xx statuses come back as ToolResponse(success=False), never raised.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import httpx

from protocol import OperationType, ResourceType, ToolResponse, UnknownToolError, operation_type_of, resource_type_of

logger = logging.getLogger(__name__)

ERROR_BODY_TRUNCATE = 500

_COLLECTIONS = {
    ResourceType.PROVIDER: "/v1/ai/providers",
    ResourceType.ROUTE: "/v1/ai/routes",
}

_WRITE_METHODS = {
    OperationType.CREATE: "POST",
    OperationType.UPDATE: "PUT",
    OperationType.DELETE: "DELETE",
}


def build_provider_body(args: Dict[str, Any]) -> Dict[str, Any]:
    """Console expects rawConfigs alongside type/tokens."""
    body = dict(args)
    provider_type = args.get("type")
    tokens = args.get("tokens")
    if provider_type and tokens:
        body["rawConfigs"] = {
            "type": provider_type,
            "apiTokens": tokens,
            "id": args.get("name") or provider_type,
        }
    return body


class ConsoleResourceClient:
    def __init__(
        self,
        console_url: str,
        username: str,
        password: str,
        timeout_sec: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.console_url = console_url.rstrip("/")
        self.username = username
        self._password = password
        self._client = httpx.AsyncClient(
            base_url=self.console_url,
            timeout=timeout_sec,
            transport=transport,
        )
        self._session_cookie: Optional[str] = None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ConsoleResourceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _ensure_session(self) -> None:
        if self._session_cookie:
            return
        try:
            resp = await self._client.post(
                "/session/login",
                json={"username": self.username, "password": self._password},
            )
        except httpx.RequestError as e:
            logger.warning("console.login_error url=%s error=%s", self.console_url, e)
            return

        if resp.is_success:
            set_cookie = resp.headers.get("set-cookie")
            if set_cookie:
                self._session_cookie = set_cookie.split(";")[0] or None
            logger.info("console.login_ok url=%s", self.console_url)
        else:
            logger.warning("console.login_failed url=%s status=%s", self.console_url, resp.status_code)

    def _reset_session(self) -> None:
        self._session_cookie = None
        self._client.cookies.clear()

    async def _send(self, method: str, path: str, body: Optional[Dict[str, Any]]) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        if self._session_cookie:
            headers["Cookie"] = self._session_cookie
        return await self._client.request(method, path, headers=headers, json=body)

    async def request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> ToolResponse:
        await self._ensure_session()
        try:
            resp = await self._send(method, path, body)
            if resp.status_code == 401:
                logger.info("console.session_expired method=%s path=%s", method, path)
                self._reset_session()
                await self._ensure_session()
                if self._session_cookie:
                    resp = await self._send(method, path, body)
        except httpx.HTTPError as e:
            logger.warning("console.request_error method=%s path=%s error=%s", method, path, e)
            return ToolResponse.fail(f"{method} {path} failed: {e}")

        try:
            data = resp.json()
        except ValueError:
            data = None

        if method != "GET":
            logger.info("console.response method=%s path=%s status=%s", method, path, resp.status_code)

        if not resp.is_success:
            detail = resp.text[:ERROR_BODY_TRUNCATE]
            return ToolResponse.fail(f"HTTP {resp.status_code}: {detail}")
        return ToolResponse(success=True, data=data)

    def _route(self, tool_name: str, args: Dict[str, Any]) -> Tuple[str, str, Optional[Dict[str, Any]]]:
        resource_type = resource_type_of(tool_name)
        operation = operation_type_of(tool_name)
        collection = _COLLECTIONS[resource_type]

        if tool_name.startswith("list-"):
            return "GET", collection, None

        name = args.get("name")
        if not name:
            raise ValueError(f"{tool_name} requires a name")
        item = f"{collection}/{quote(str(name), safe='')}"

        if operation is None:
            return "GET", item, None
        if operation == OperationType.DELETE:
            return "DELETE", item, None

        body = build_provider_body(args) if resource_type == ResourceType.PROVIDER else dict(args)
        if operation == OperationType.CREATE:
            return _WRITE_METHODS[operation], collection, body
        return _WRITE_METHODS[operation], item, body

    async def invoke(self, tool_name: str, args: Dict[str, Any]) -> ToolResponse:
        try:
            method, path, body = self._route(tool_name, args)
        except (UnknownToolError, ValueError) as e:
            return ToolResponse.fail(str(e))
        return await self.request(method, path, body)
