"""Operator-facing text for plans, batch summaries and read results."""

import json
from typing import Any, List, Sequence

from governance import describe_upstreams, mask_api_key
from protocol import PlannedCall

ROLLBACK_HINT_TEXT = 'If anything looks wrong, ask to "roll back the last step" to undo it.'

_DESCRIPTIONS = {
    "add-ai-provider": "Add AI provider {name}",
    "update-ai-provider": "Update AI provider {name}",
    "delete-ai-provider": "Delete AI provider {name}",
    "add-ai-route": "Create AI route {name}",
    "update-ai-route": "Update AI route {name}",
    "delete-ai-route": "Delete AI route {name}",
    "list-ai-providers": "List AI providers",
    "get-ai-provider": "Show AI provider {name}",
    "list-ai-routes": "List AI routes",
    "get-ai-route": "Show AI route {name}",
}


def describe_call(call: PlannedCall) -> str:
    template = _DESCRIPTIONS.get(call.tool_name)
    if template is None:
        return f"Run {call.tool_name}"
    return template.format(name=call.resource_name).rstrip()


def change_summary(call: PlannedCall) -> str:
    """describe_call plus the traffic split when the call carries upstreams."""
    upstreams = call.args.get("upstreams")
    if upstreams:
        return f"{describe_call(call)}: {describe_upstreams(upstreams, spaced=False)}"
    return describe_call(call)


def format_plan(calls: Sequence[PlannedCall]) -> str:
    steps = "\n".join(f"**Step {i}**: {describe_call(call)}" for i, call in enumerate(calls, start=1))
    return f"The following steps will run:\n\n{steps}"


def format_batch_summary(lines: List[str], any_applied: bool) -> str:
    text = "\n".join(lines)
    if any_applied:
        text += f"\n\n{ROLLBACK_HINT_TEXT}"
    return text


def format_tool_result(tool_name: str, payload: Any) -> str:
    if tool_name == "list-ai-providers":
        providers = payload or []
        if not providers:
            return "No AI providers are configured."
        rows = [
            f"- **{p.get('name')}**: type {p.get('type')}, {len(p.get('tokens') or [])} token(s)"
            for p in providers
        ]
        return "**AI providers:**\n\n" + "\n".join(rows)

    if tool_name == "list-ai-routes":
        routes = payload or []
        if not routes:
            return "No AI routes are configured."
        rows = [
            f"- **{r.get('name')}**: {describe_upstreams(r.get('upstreams'), spaced=False) or 'no upstreams'}"
            for r in routes
        ]
        return "**AI routes:**\n\n" + "\n".join(rows)

    if tool_name.startswith("get-"):
        return "```json\n" + json.dumps(_mask_tokens(payload), indent=2, ensure_ascii=False) + "\n```"

    return json.dumps(payload, indent=2, ensure_ascii=False)


def _mask_tokens(payload: Any) -> Any:
    if isinstance(payload, dict) and isinstance(payload.get("tokens"), list):
        return {**payload, "tokens": [mask_api_key(str(t)) for t in payload["tokens"]]}
    return payload
