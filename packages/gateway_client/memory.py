"""In-memory provider/route store for local development and tests."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Optional

from protocol import OperationType, ResourceType, ToolResponse, UnknownToolError, operation_type_of, resource_type_of

logger = logging.getLogger(__name__)

_LABELS = {ResourceType.PROVIDER: "Provider", ResourceType.ROUTE: "Route"}


def _bump_version(version: Optional[str]) -> str:
    try:
        return str(int(version or "1") + 1)
    except ValueError:
        return "2"


class InMemoryResourceClient:
    """
    Dict-backed store with the console's semantics:
    - add on an existing name fails with "already exists"
    - get/update/delete on a missing name fail with "not found"
    - update merges args over the stored record and bumps version
    """

    def __init__(
        self,
        providers: Optional[Dict[str, Dict[str, Any]]] = None,
        routes: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        self._stores: Dict[ResourceType, Dict[str, Dict[str, Any]]] = {
            ResourceType.PROVIDER: copy.deepcopy(providers or {}),
            ResourceType.ROUTE: copy.deepcopy(routes or {}),
        }
        self.calls: list = []

    @property
    def providers(self) -> Dict[str, Dict[str, Any]]:
        return copy.deepcopy(self._stores[ResourceType.PROVIDER])

    @property
    def routes(self) -> Dict[str, Dict[str, Any]]:
        return copy.deepcopy(self._stores[ResourceType.ROUTE])

    def _build(self, resource_type: ResourceType, name: str, args: Dict[str, Any]) -> Dict[str, Any]:
        if resource_type == ResourceType.PROVIDER:
            record = {
                "name": name,
                "type": args.get("type"),
                "protocol": args.get("protocol") or "openai/v1",
                "tokens": list(args.get("tokens") or []),
            }
        else:
            record = {
                "name": name,
                "upstreams": copy.deepcopy(args.get("upstreams") or []),
            }
            fallback = args.get("fallbackConfig")
            if fallback is not None:
                record["fallbackConfig"] = copy.deepcopy(fallback)
        record["version"] = "1"
        return record

    async def invoke(self, tool_name: str, args: Dict[str, Any]) -> ToolResponse:
        self.calls.append((tool_name, copy.deepcopy(args)))
        try:
            resource_type = resource_type_of(tool_name)
            operation = operation_type_of(tool_name)
        except UnknownToolError as e:
            return ToolResponse.fail(str(e))

        store = self._stores[resource_type]
        label = _LABELS[resource_type]
        name = args.get("name")

        if tool_name.startswith("list-"):
            return ToolResponse.ok([copy.deepcopy(r) for r in store.values()])

        if not name:
            return ToolResponse.fail(f"Missing {label.lower()} name")

        if operation is None:
            if name not in store:
                return ToolResponse.fail(f"{label} {name} not found")
            return ToolResponse.ok(copy.deepcopy(store[name]))

        if operation == OperationType.CREATE:
            if name in store:
                return ToolResponse.fail(f"{label} {name} already exists")
            record = self._build(resource_type, name, args)
            store[name] = record
            logger.debug("memory_client.add resource=%s name=%s", resource_type.value, name)
            return ToolResponse.ok(copy.deepcopy(record))

        if name not in store:
            return ToolResponse.fail(f"{label} {name} not found")

        if operation == OperationType.UPDATE:
            existing = store[name]
            updated = {**existing, **copy.deepcopy(args), "version": _bump_version(existing.get("version"))}
            store[name] = updated
            logger.debug("memory_client.update resource=%s name=%s", resource_type.value, name)
            return ToolResponse.ok(copy.deepcopy(updated))

        del store[name]
        logger.debug("memory_client.delete resource=%s name=%s", resource_type.value, name)
        return ToolResponse(success=True, data={"message": f"{label} {name} deleted"})
