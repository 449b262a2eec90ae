from __future__ import annotations

import asyncio
import json
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Protocol

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.shared.exceptions import McpError
from mcp.types import Implementation

from knowledge_fusion.config import ServerConfig
from knowledge_fusion.errors import ToolConnectionError, ToolInvocationError

LOGGER = logging.getLogger(__name__)

CLIENT_INFO = Implementation(name="knowledge-fusion", version="0.1.0")
DISCONNECT_TIMEOUT_SECONDS = 5.0
WRAPPED_RESULT_KEY = "result"


class ToolSession(Protocol):
    async def call_tool(
        self, name: str, arguments: dict[str, Any] | None = None
    ) -> Any: ...

    async def list_tools(self) -> Any: ...


SessionOpener = Callable[[ServerConfig, AsyncExitStack], Awaitable[ToolSession]]


@dataclass(frozen=True)
class Disconnected:
    pass


@dataclass(frozen=True)
class Connected:
    session: ToolSession
    owner: asyncio.Task[None]
    release: asyncio.Event


ConnectionState = Disconnected | Connected


async def open_stdio_session(
    server_config: ServerConfig,
    exit_stack: AsyncExitStack,
) -> ToolSession:
    parameters = StdioServerParameters(
        command=server_config.command,
        args=list(server_config.args),
        env=server_config.resolved_env(),
    )
    read_stream, write_stream = await exit_stack.enter_async_context(
        stdio_client(parameters)
    )
    session = await exit_stack.enter_async_context(
        ClientSession(read_stream, write_stream, client_info=CLIENT_INFO)
    )
    await session.initialize()
    return session


class ToolClient:
    """Owns the connection to a single tool server.

    The session is opened lazily: ``call_tool`` connects first when needed.
    Transport failures drop the connection so the next call reconnects, while
    protocol errors and backend-reported errors leave it in place.

    Each session lives inside a dedicated owner task that both opens and
    closes it, because the stdio transport's cancel scopes must be exited by
    the task that entered them. Callers in any task may use the session.
    """

    def __init__(
        self,
        server_name: str,
        server_config: ServerConfig,
        session_opener: SessionOpener | None = None,
    ) -> None:
        self._server_name = server_name
        self._server_config = server_config
        self._session_opener = session_opener or open_stdio_session
        self._state: ConnectionState = Disconnected()
        self._lock = asyncio.Lock()
        self._owners: set[asyncio.Task[None]] = set()

    @property
    def name(self) -> str:
        return self._server_name

    @property
    def connected(self) -> bool:
        return isinstance(self._state, Connected)

    async def connect(self) -> None:
        await self._ensure_session()

    async def call_tool(
        self,
        tool_name: str,
        arguments: Mapping[str, Any] | None = None,
    ) -> Any:
        session = await self._ensure_session()
        try:
            result = await session.call_tool(tool_name, arguments=dict(arguments or {}))
        except McpError as exc:
            LOGGER.warning(
                "Tool call rejected",
                extra={"server": self._server_name, "tool": tool_name},
            )
            raise ToolInvocationError(self._server_name, tool_name, exc) from exc
        except Exception as exc:
            LOGGER.warning(
                "Tool call failed; dropping connection",
                extra={"server": self._server_name, "tool": tool_name},
                exc_info=exc,
            )
            await self._drop_session(session)
            raise ToolInvocationError(self._server_name, tool_name, exc) from exc

        if _is_error_result(result):
            detail = _result_text(result) or "backend reported an error"
            raise ToolInvocationError(self._server_name, tool_name, detail)
        return decode_tool_result(result)

    async def list_tools(self) -> list[str]:
        try:
            session = await self._ensure_session()
            listing = await session.list_tools()
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning(
                "Failed to list tools",
                extra={"server": self._server_name},
                exc_info=exc,
            )
            return []
        tools = getattr(listing, "tools", None) or []
        return [
            tool.name for tool in tools if isinstance(getattr(tool, "name", None), str)
        ]

    async def disconnect(self) -> None:
        async with self._lock:
            state = self._state
            self._state = Disconnected()
        if isinstance(state, Connected):
            await _release_session(state, self._server_name)

    async def _ensure_session(self) -> ToolSession:
        state = self._state
        if isinstance(state, Connected):
            return state.session

        async with self._lock:
            state = self._state
            if isinstance(state, Connected):
                return state.session

            ready: asyncio.Future[ToolSession] = (
                asyncio.get_running_loop().create_future()
            )
            release = asyncio.Event()
            owner = asyncio.create_task(
                self._own_session(ready, release),
                name=f"tool-session:{self._server_name}",
            )
            self._owners.add(owner)
            owner.add_done_callback(self._owners.discard)
            try:
                session = await ready
            except asyncio.CancelledError:
                release.set()
                raise
            except Exception as exc:
                await owner
                LOGGER.warning(
                    "Could not connect to tool server",
                    extra={"server": self._server_name},
                    exc_info=exc,
                )
                raise ToolConnectionError(self._server_name, exc) from exc

            self._state = Connected(session=session, owner=owner, release=release)
            LOGGER.info("Connected to tool server", extra={"server": self._server_name})
            return session

    async def _own_session(
        self,
        ready: asyncio.Future[ToolSession],
        release: asyncio.Event,
    ) -> None:
        try:
            async with AsyncExitStack() as exit_stack:
                session = await self._session_opener(self._server_config, exit_stack)
                if not ready.done():
                    ready.set_result(session)
                await release.wait()
        except Exception as exc:
            if not ready.done():
                ready.set_exception(exc)
            else:
                LOGGER.warning(
                    "Failed to close tool server session",
                    extra={"server": self._server_name},
                    exc_info=exc,
                )
        finally:
            state = self._state
            if isinstance(state, Connected) and state.owner is asyncio.current_task():
                self._state = Disconnected()

    async def _drop_session(self, session: ToolSession) -> None:
        async with self._lock:
            state = self._state
            if not isinstance(state, Connected) or state.session is not session:
                return
            self._state = Disconnected()
        await _release_session(state, self._server_name)


async def _release_session(state: Connected, server_name: str) -> None:
    state.release.set()
    done, _ = await asyncio.wait({state.owner}, timeout=DISCONNECT_TIMEOUT_SECONDS)
    if not done:
        LOGGER.warning(
            "Timed out closing tool server session",
            extra={"server": server_name},
        )
        state.owner.cancel()


def decode_tool_result(result: Any) -> Any:
    structured = _field(result, "structuredContent")
    if isinstance(structured, Mapping) and set(structured) == {WRAPPED_RESULT_KEY}:
        # Non-object tool outputs arrive wrapped as {"result": value}.
        value = structured[WRAPPED_RESULT_KEY]
        if not isinstance(value, str):
            return value
        try:
            return json.loads(value)
        except ValueError:
            return _decode_text(result)
    if structured is not None:
        return structured
    return _decode_text(result)


def _decode_text(result: Any) -> Any:
    text = _result_text(result)
    if not text:
        return {}
    try:
        return json.loads(text)
    except ValueError:
        return {"text": text}


def _is_error_result(result: Any) -> bool:
    return bool(_field(result, "isError"))


def _result_text(result: Any) -> str:
    content = _field(result, "content")
    if not isinstance(content, list):
        return ""
    parts = [_field(item, "text") for item in content]
    return "".join(part for part in parts if isinstance(part, str))


def _field(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name)
    return getattr(value, name, None)
