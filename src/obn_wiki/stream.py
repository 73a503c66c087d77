"""Streamed chat completions over server-sent events."""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterator, Sequence

import httpx

from obn_wiki.config import ChatSettings
from obn_wiki.models import ChatMessage

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
AUTH_FAILURE_STATUSES = frozenset({401, 403})

REFERER = "https://obn.wiki"
APP_TITLE = "OBN Wiki"


class ProviderError(RuntimeError):
    """The chat provider could not be reached or answered with an error."""


class AuthenticationError(ProviderError):
    """The provider rejected the bearer credential."""


class CancellationToken:
    """Cooperative cancel flag checked between received chunks."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class SSEDeltaDecoder:
    """Incrementally turn raw response chunks into content deltas.

    Only complete lines are interpreted; a partial trailing line is carried
    over to the next ``feed``. Frames whose JSON does not parse are dropped.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""
        self.done = False

    def feed(self, chunk: bytes | str) -> list[str]:
        if self.done:
            return []

        text = chunk if isinstance(chunk, str) else self._decoder.decode(chunk)
        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")

        deltas: list[str] = []
        for line in lines:
            delta = self._parse_line(line.rstrip("\r"))
            if self.done:
                break
            if delta:
                deltas.append(delta)
        return deltas

    def _parse_line(self, line: str) -> str | None:
        if not line.startswith(DATA_PREFIX):
            return None
        data = line[len(DATA_PREFIX):].strip()
        if data == DONE_SENTINEL:
            self.done = True
            return None
        try:
            payload = json.loads(data)
            content = payload["choices"][0]["delta"].get("content")
        except (json.JSONDecodeError, KeyError, IndexError, TypeError, AttributeError):
            logger.debug("Skipping malformed stream frame: %r", data[:120])
            return None
        return content if isinstance(content, str) else None


def build_chat_request(
    settings: ChatSettings,
    system_prompt: str,
    messages: Sequence[ChatMessage],
) -> dict[str, object]:
    return {
        "model": settings.model,
        "messages": [
            {"role": "system", "content": system_prompt},
            *(message.model_dump() for message in messages),
        ],
        "stream": True,
        "max_tokens": settings.max_tokens,
    }


async def stream_chat(
    client: httpx.AsyncClient,
    settings: ChatSettings,
    api_key: str,
    system_prompt: str,
    messages: Sequence[ChatMessage],
    cancel_token: CancellationToken | None = None,
) -> AsyncIterator[str]:
    """Yield content deltas from the provider in arrival order.

    Args:
        client: Shared async HTTP client.
        settings: Provider URL, model, and output cap.
        api_key: Bearer credential sent only to ``settings.api_url``.
        system_prompt: Grounding prompt placed before ``messages``.
        messages: Conversation so far, oldest first.
        cancel_token: Optional token; once cancelled the stream stops after
            the chunk being processed.

    Raises:
        AuthenticationError: If the provider answers 401 or 403.
        ProviderError: On any other non-success status or transport failure.
    """
    headers = {
        "Authorization": f"Bearer {api_key}",
        "HTTP-Referer": REFERER,
        "X-Title": APP_TITLE,
    }
    payload = build_chat_request(settings, system_prompt, messages)
    decoder = SSEDeltaDecoder()

    try:
        async with client.stream("POST", settings.api_url, json=payload, headers=headers) as response:
            if response.status_code >= 400:
                body = (await response.aread()).decode("utf-8", errors="replace")
                message = f"Chat API error: {response.status_code} - {body}"
                if response.status_code in AUTH_FAILURE_STATUSES:
                    raise AuthenticationError(message)
                raise ProviderError(message)

            async for chunk in response.aiter_bytes():
                if cancel_token is not None and cancel_token.cancelled:
                    logger.info("Chat stream cancelled by caller")
                    return
                for delta in decoder.feed(chunk):
                    yield delta
                if decoder.done:
                    return
    except httpx.HTTPError as exc:
        raise ProviderError(f"Chat request failed: {exc}") from exc
