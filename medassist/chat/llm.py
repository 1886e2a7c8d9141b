"""
Streaming completion client.

GeminiCompletionClient calls the Gemini REST API
(``models/{model}:streamGenerateContent?alt=sse``) and yields text fragments
as they arrive. When tools are registered, function calls returned by the
model are executed and fed back, for at most ``max_steps`` model rounds.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, Protocol, Sequence

import requests

logger = logging.getLogger(__name__)

DEFAULT_THINKING_BUDGET = 1024

_ROLE_MAP = {"user": "user", "assistant": "model"}


class CompletionError(Exception):
    """The provider could not produce a completion."""


@dataclass(frozen=True)
class Attachment:
    name: str
    url: str
    content_type: str


@dataclass(frozen=True)
class ToolSpec:
    """A function the model may call. `handler` receives the call arguments."""

    name: str
    description: str
    parameters: Mapping[str, Any]
    handler: Callable[[Mapping[str, Any]], Mapping[str, Any]]

    def declaration(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": dict(self.parameters)}


class CompletionClient(Protocol):
    def stream_completion(
        self,
        system_prompt: str,
        messages: Sequence[Mapping[str, Any]],
        *,
        max_steps: int,
        attachments: Sequence[Attachment] = (),
    ) -> Iterator[str]:
        """
        Start a completion and return its text fragments.

        The first provider call happens before this returns, so invocation
        failures raise here rather than from the iterator.
        """
        ...


def to_provider_contents(
    messages: Sequence[Mapping[str, Any]],
    attachments: Sequence[Attachment] = (),
) -> list[dict[str, Any]]:
    """Map chat messages to Gemini `contents`; system messages are dropped (the system prompt wins)."""

    contents: list[dict[str, Any]] = []
    for message in messages:
        role = _ROLE_MAP.get(str(message.get("role")))
        content = message.get("content")
        if role is None or not isinstance(content, str) or not content:
            continue
        contents.append({"role": role, "parts": [{"text": content}]})

    if attachments:
        for entry in reversed(contents):
            if entry["role"] == "user":
                entry["parts"].extend(
                    {"fileData": {"mimeType": a.content_type, "fileUri": a.url}} for a in attachments
                )
                break
    return contents


def _iter_sse_events(response: requests.Response) -> Iterator[dict[str, Any]]:
    # SSE is always UTF-8; without a charset requests would guess ISO-8859-1.
    response.encoding = "utf-8"
    for line in response.iter_lines(decode_unicode=True):
        if not line or not line.startswith("data:"):
            continue
        payload = line[len("data:") :].strip()
        if not payload:
            continue
        try:
            event = json.loads(payload)
        except ValueError as exc:
            raise CompletionError("Malformed event from model stream") from exc
        if isinstance(event, dict) and event.get("error"):
            error = event["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise CompletionError(str(message or "Model stream reported an error"))
        if isinstance(event, dict):
            yield event


def _candidate_parts(event: Mapping[str, Any]) -> list[dict[str, Any]]:
    candidates = event.get("candidates") or []
    if not candidates:
        return []
    content = candidates[0].get("content") or {}
    return [p for p in content.get("parts") or [] if isinstance(p, dict)]


class GeminiCompletionClient:
    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        api_base: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        tools: Sequence[ToolSpec] = (),
        thinking_budget: int = DEFAULT_THINKING_BUDGET,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._url = f"{api_base.rstrip('/')}/models/{model}:streamGenerateContent"
        self._timeout = timeout
        self._tools = {t.name: t for t in tools}
        self._thinking_budget = thinking_budget
        self._session = session or requests.Session()

    @property
    def model(self) -> str:
        return self._model

    def stream_completion(
        self,
        system_prompt: str,
        messages: Sequence[Mapping[str, Any]],
        *,
        max_steps: int,
        attachments: Sequence[Attachment] = (),
    ) -> Iterator[str]:
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        contents = to_provider_contents(messages, attachments)
        if not contents:
            raise CompletionError("No user or assistant messages to send")

        first = self._open(system_prompt, contents)
        return self._run(system_prompt, contents, first, max_steps)

    def _body(self, system_prompt: str, contents: list[dict[str, Any]]) -> dict[str, Any]:
        body: dict[str, Any] = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": contents,
            "generationConfig": {"thinkingConfig": {"thinkingBudget": self._thinking_budget}},
        }
        if self._tools:
            body["tools"] = [{"functionDeclarations": [t.declaration() for t in self._tools.values()]}]
        return body

    def _open(self, system_prompt: str, contents: list[dict[str, Any]]) -> requests.Response:
        try:
            resp = self._session.post(
                self._url,
                params={"alt": "sse"},
                headers={"x-goog-api-key": self._api_key, "Content-Type": "application/json"},
                json=self._body(system_prompt, contents),
                stream=True,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise CompletionError(f"Model request failed: {type(exc).__name__}") from exc

        if resp.status_code != 200:
            detail = _error_detail(resp)
            resp.close()
            raise CompletionError(f"Model returned status {resp.status_code}: {detail}")
        return resp

    def _run(
        self,
        system_prompt: str,
        contents: list[dict[str, Any]],
        response: requests.Response,
        max_steps: int,
    ) -> Iterator[str]:
        step = 1
        while True:
            text_parts: list[str] = []
            calls: list[dict[str, Any]] = []
            try:
                for event in _iter_sse_events(response):
                    for part in _candidate_parts(event):
                        if part.get("thought"):
                            continue
                        if isinstance(part.get("functionCall"), dict):
                            calls.append(part["functionCall"])
                        elif part.get("text"):
                            text_parts.append(part["text"])
                            yield part["text"]
            except requests.RequestException as exc:
                raise CompletionError(f"Model stream interrupted: {type(exc).__name__}") from exc
            finally:
                response.close()

            if not calls:
                return
            if step >= max_steps:
                logger.warning("Model requested tools after %d steps; stopping at the step budget", step)
                return

            model_parts: list[dict[str, Any]] = []
            if text_parts:
                model_parts.append({"text": "".join(text_parts)})
            model_parts.extend({"functionCall": call} for call in calls)
            contents.append({"role": "model", "parts": model_parts})
            contents.append(
                {
                    "role": "user",
                    "parts": [
                        {"functionResponse": {"name": call.get("name"), "response": self._call_tool(call)}}
                        for call in calls
                    ],
                }
            )
            step += 1
            response = self._open(system_prompt, contents)

    def _call_tool(self, call: Mapping[str, Any]) -> dict[str, Any]:
        name = str(call.get("name") or "")
        tool = self._tools.get(name)
        if tool is None:
            logger.warning("Model called unknown tool %r", name)
            return {"error": f"Unknown tool {name!r}"}
        args = call.get("args") if isinstance(call.get("args"), dict) else {}
        try:
            return dict(tool.handler(args))
        except Exception as exc:
            logger.exception("Tool %s failed", name)
            return {"error": f"Tool {name} failed: {type(exc).__name__}"}


def _error_detail(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "")[:200]
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return str(body)[:200]
