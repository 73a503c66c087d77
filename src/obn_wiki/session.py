"""Chat session state machine: retrieve, ground, stream, and surface errors."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

import httpx

from obn_wiki.config import ChatSettings
from obn_wiki.context import gather_pattern_contents
from obn_wiki.credentials import CredentialStore
from obn_wiki.index_cache import PatternIndexCache, fetch_pattern_index, read_pattern_index
from obn_wiki.models import ChatMessage, PatternIndexEntry
from obn_wiki.prompting import NO_MATCH_MESSAGE, build_system_prompt
from obn_wiki.scorer import find_relevant_patterns
from obn_wiki.stream import AuthenticationError, CancellationToken, ProviderError, stream_chat

logger = logging.getLogger(__name__)

INVALID_KEY_MESSAGE = "Invalid API key. Please check your OpenRouter key."


class SessionState(str, Enum):
    NO_CREDENTIAL = "no_credential"
    CREDENTIAL_ENTERED = "credential_entered"
    IDLE = "idle"
    AWAITING_INDEX = "awaiting_index"
    SCORING = "scoring"
    FETCHING_CONTEXT = "fetching_context"
    STREAMING = "streaming"
    ERROR = "error"


IN_FLIGHT_STATES = frozenset(
    {
        SessionState.AWAITING_INDEX,
        SessionState.SCORING,
        SessionState.FETCHING_CONTEXT,
        SessionState.STREAMING,
    }
)


class SessionBusyError(RuntimeError):
    """A submission arrived while another request was still in flight."""


class MissingCredentialError(RuntimeError):
    """A submission arrived before any API key was saved."""


class ChatSession:
    """One interactive conversation grounded in the pattern index.

    Only one request runs at a time. Network and credential failures are
    caught here and exposed through ``last_error``; the transcript keeps any
    partial assistant text that arrived before the failure and drops an
    assistant entry that stayed empty.
    """

    def __init__(
        self,
        settings: ChatSettings,
        credentials: CredentialStore,
        index_cache: PatternIndexCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self.credentials = credentials
        self.index_cache = index_cache or PatternIndexCache()
        self._transport = transport
        self._cancel_token: CancellationToken | None = None

        self.transcript: list[ChatMessage] = []
        self.last_error: str | None = None
        self.last_sources: list[PatternIndexEntry] = []
        self.history: list[SessionState] = []
        self.state = SessionState.NO_CREDENTIAL
        self._enter(SessionState.IDLE if credentials.load() else SessionState.NO_CREDENTIAL)

    def _enter(self, state: SessionState) -> None:
        logger.debug("session %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    @property
    def busy(self) -> bool:
        return self.state in IN_FLIGHT_STATES

    def save_credential(self, api_key: str) -> None:
        """Persist the key; it is validated lazily by the first real request."""
        self.credentials.save(api_key)
        self.last_error = None
        self._enter(SessionState.CREDENTIAL_ENTERED)

    def clear_credential(self) -> None:
        self.credentials.clear()
        self.transcript.clear()
        self.last_sources = []
        self.last_error = None
        self._enter(SessionState.NO_CREDENTIAL)

    def cancel(self) -> None:
        """Stop the in-flight stream after the chunk currently being applied."""
        if self._cancel_token is not None:
            self._cancel_token.cancel()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.timeout,
            transport=self._transport,
            follow_redirects=True,
        )

    async def _load_index(self, client: httpx.AsyncClient) -> list[PatternIndexEntry]:
        index_path = self.settings.index_path
        if index_path is not None:
            return await self.index_cache.get(lambda: read_pattern_index(index_path))
        return await self.index_cache.get(lambda: fetch_pattern_index(client, self.settings.index_url))

    def _fail(self, message: str, reply: ChatMessage | None = None) -> None:
        # An assistant entry that never received text is not resent as history.
        if reply is not None and not reply.content:
            if self.transcript and self.transcript[-1] is reply:
                self.transcript.pop()
        self.last_error = message
        self._enter(SessionState.ERROR)

    async def submit(
        self,
        text: str,
        on_update: Callable[[str], None] | None = None,
    ) -> ChatMessage | None:
        """Answer one user message.

        Args:
            text: The user's question.
            on_update: Called with each piece of assistant text as it is
                appended to the transcript.

        Returns:
            The assistant transcript entry, or ``None`` when the request failed
            (see ``last_error``).

        Raises:
            SessionBusyError: If another request is still in flight.
            MissingCredentialError: If no API key has been saved.
            ValueError: If ``text`` is blank.
        """
        if self.busy:
            raise SessionBusyError("A request is already in progress.")
        question = text.strip()
        if not question:
            raise ValueError("Message must be a non-empty string.")

        api_key = self.credentials.load()
        if not api_key:
            self._enter(SessionState.NO_CREDENTIAL)
            raise MissingCredentialError("No API key saved. Run `obn-wiki set-key` first.")

        self.last_error = None
        self.transcript.append(ChatMessage(role="user", content=question))
        conversation = list(self.transcript)
        self._cancel_token = CancellationToken()
        reply: ChatMessage | None = None

        try:
            async with self._client() as client:
                self._enter(SessionState.AWAITING_INDEX)
                entries = await self._load_index(client)

                self._enter(SessionState.SCORING)
                relevant = find_relevant_patterns(question, entries, top_k=self.settings.top_k)
                self.last_sources = relevant
                if not relevant:
                    return self._reply_without_context(on_update)

                self._enter(SessionState.FETCHING_CONTEXT)
                contents = await gather_pattern_contents(
                    client,
                    relevant,
                    resolve_url=self.settings.page_url,
                    limit=self.settings.context_docs,
                )
                system_prompt = build_system_prompt(
                    relevant, contents, char_cap=self.settings.context_chars
                )

                self._enter(SessionState.STREAMING)
                reply = ChatMessage(role="assistant")
                self.transcript.append(reply)
                async for delta in stream_chat(
                    client,
                    self.settings,
                    api_key,
                    system_prompt,
                    conversation,
                    cancel_token=self._cancel_token,
                ):
                    reply.content += delta
                    if on_update:
                        on_update(delta)

                if not reply.content:
                    reply.content = NO_MATCH_MESSAGE
                    if on_update:
                        on_update(reply.content)
                return reply
        except AuthenticationError as exc:
            logger.info("Provider rejected credential: %s", exc)
            self._fail(INVALID_KEY_MESSAGE, reply)
            return None
        except (ProviderError, httpx.HTTPError, ValueError, OSError) as exc:
            logger.info("Chat request failed: %s", exc)
            self._fail(f"Request failed: {exc}", reply)
            return None
        finally:
            self._cancel_token = None
            self._enter(SessionState.IDLE)

    def _reply_without_context(self, on_update: Callable[[str], None] | None) -> ChatMessage:
        reply = ChatMessage(role="assistant", content=NO_MATCH_MESSAGE)
        self.transcript.append(reply)
        if on_update:
            on_update(reply.content)
        return reply
