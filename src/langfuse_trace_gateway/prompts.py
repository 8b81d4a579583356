"""Prompt listing and compilation on top of the Langfuse prompt API."""

import asyncio
import json
import logging
import re
from typing import Any

from langfuse_trace_gateway.backend import LangfuseClient
from langfuse_trace_gateway.models import (
    CompiledPrompt,
    PromptArgument,
    PromptInfo,
    PromptList,
    PromptMessage,
)

logger = logging.getLogger(__name__)

_VARIABLE_RE = re.compile(r"\{\{\s*([\w.-]+)\s*\}\}")

PROMPT_LABEL = "production"
PAGE_SIZE = 100


def extract_variables(text: str) -> list[str]:
    """Return ``{{variable}}`` names in first-seen order without duplicates."""
    return list(dict.fromkeys(_VARIABLE_RE.findall(text)))


def compile_template(template: str, arguments: dict[str, str]) -> str:
    """Substitute known variables; unknown placeholders are left untouched."""

    def _sub(m: re.Match[str]) -> str:
        key = m.group(1)
        return str(arguments[key]) if key in arguments else m.group(0)

    return _VARIABLE_RE.sub(_sub, template)


def parse_cursor(cursor: str | None) -> int:
    if cursor is None:
        return 1
    try:
        return int(cursor)
    except ValueError:
        raise ValueError("Cursor must be a valid number") from None


class PromptService:
    def __init__(self, client: LangfuseClient) -> None:
        self.client = client

    async def list_prompts(self, cursor: str | None = None) -> PromptList:
        page = parse_cursor(cursor)
        res = await self.client.list_prompts(page=page, limit=PAGE_SIZE, label=PROMPT_LABEL)
        names = [item["name"] for item in res.get("data", [])]
        prompts = await asyncio.gather(*(self._describe(name) for name in names))
        total_pages = (res.get("meta") or {}).get("totalPages") or 0
        return PromptList(
            prompts=list(prompts),
            next_cursor=str(page + 1) if total_pages > page else None,
        )

    async def get_prompt(self, name: str, arguments: dict[str, str] | None = None) -> CompiledPrompt:
        args = arguments or {}
        prompt = await self.client.get_prompt(name, label=PROMPT_LABEL)
        body = prompt.get("prompt")

        if prompt.get("type") == "chat" and isinstance(body, list):
            messages = [
                PromptMessage(
                    role="assistant" if msg.get("role") in ("ai", "assistant") else "user",
                    content=compile_template(msg.get("content") or "", args),
                )
                for msg in body
            ]
            return CompiledPrompt(name=name, type="chat", messages=messages)

        if not isinstance(body, str):
            raise ValueError(f"Failed to get prompt for '{name}': unsupported prompt body")
        return CompiledPrompt(
            name=name,
            type="text",
            messages=[PromptMessage(role="user", content=compile_template(body, args))],
        )

    async def check_auth(self) -> None:
        """Raise :class:`RemoteFetchError` unless the credentials are accepted."""
        await self.client.list_prompts(page=1, limit=1, label=None)

    async def _describe(self, name: str) -> PromptInfo:
        prompt: dict[str, Any] = await self.client.get_prompt(name, label=PROMPT_LABEL)
        variables = extract_variables(json.dumps(prompt.get("prompt")))
        return PromptInfo(name=name, arguments=[PromptArgument(name=v) for v in variables])
