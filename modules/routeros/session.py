"""
Async RouterOS API session.

One RouterSession owns one TCP connection to one router:
  - hard connect timeout (ConnectTimeout / ConnectRefused)
  - plain login, falling back to the legacy MD5 challenge when the router
    answers with =ret= (RouterOS < 6.43)
  - every command carries a .tag; a background receiver task decodes replies
    and dispatches them to the waiting command by tag
  - close() is idempotent and never raises

Usage:
    session = await RouterSession.connect("192.168.88.1", 8728, "admin", "", timeout=15)
    try:
        rows = await session.write("/ppp/secret/print")
    finally:
        await session.close()

Callers must not issue concurrent write() calls on one session; open a new
session per logical operation instead.
"""
import asyncio
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from utils.logging import logger
from modules.routeros.exceptions import (
    AuthFailed,
    ConnectError,
    ConnectRefused,
    ConnectTimeout,
    ProtocolError,
    RouterError,
    RouterOSError,
)
from modules.routeros.protocol import (
    Reply,
    build_command,
    decode_sentence,
    encode_sentence,
    md5_challenge_response,
    parse_reply,
)

DEFAULT_PORT = 8728

_QueueItem = Union[Reply, BaseException]


class RouterSession:

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        username: str = "admin",
        password: str = "",
        timeout: float = 15.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password or ""
        self.timeout = timeout

        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._recv_task: Optional[asyncio.Task] = None
        self._pending: Dict[str, asyncio.Queue] = {}
        self._tag_counter = 0
        self._connected = False
        self._closed = False

    # ─── Connection ───────────────────────────────────────────────────────────

    @classmethod
    async def connect(
        cls,
        host: str,
        port: int = DEFAULT_PORT,
        username: str = "admin",
        password: str = "",
        timeout: float = 15.0,
    ) -> "RouterSession":
        """Open the TCP connection and log in. The session is closed on any failure."""
        session = cls(host, port or DEFAULT_PORT, username, password, timeout)
        try:
            await session._open()
            await asyncio.wait_for(session._login(), timeout=timeout)
        except asyncio.TimeoutError as e:
            await session.close()
            raise ConnectTimeout(f"Login to {host}:{session.port} timed out after {timeout}s") from e
        except BaseException:
            await session.close()
            raise
        logger.debug(f"RouterOS session open: {host}:{session.port} as {username}")
        return session

    async def _open(self) -> None:
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ConnectTimeout(
                f"Timed out connecting to {self.host}:{self.port} after {self.timeout}s"
            ) from e
        except ConnectionRefusedError as e:
            raise ConnectRefused(f"Connection refused by {self.host}:{self.port}") from e
        except OSError as e:
            raise ConnectError(f"Cannot reach {self.host}:{self.port}: {e}") from e

        self._connected = True
        self._recv_task = asyncio.create_task(self._receiver_loop())

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._connected = False
        if self._recv_task and not self._recv_task.done():
            self._recv_task.cancel()
            try:
                await self._recv_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Receiver task ended with {e!r}")
        if self._writer is not None:
            try:
                self._writer.close()
                await self._writer.wait_closed()
            except Exception as e:
                logger.debug(f"Error closing socket to {self.host}: {e!r}")
        self._fail_pending(ConnectError("session closed"))

    @property
    def connected(self) -> bool:
        return self._connected

    # ─── Authentication ───────────────────────────────────────────────────────

    async def _login(self) -> None:
        try:
            rows = await self._request(
                "/login", {"name": self.username, "password": self.password}
            )
        except RouterError as e:
            raise AuthFailed(f"Login rejected by {self.host}: {e.message}") from e

        done = rows[-1] if rows else None
        challenge = done.attrs.get("ret") if done else None
        if not challenge:
            return

        # Legacy login: the router ignored the password and sent a challenge
        try:
            await self._request(
                "/login",
                {
                    "name": self.username,
                    "response": md5_challenge_response(self.password, challenge),
                },
            )
        except RouterError as e:
            raise AuthFailed(f"Login rejected by {self.host}: {e.message}") from e

    # ─── Command Execution ────────────────────────────────────────────────────

    async def write(
        self,
        command: str,
        params: Optional[Mapping[str, Any]] = None,
        words: Sequence[str] = (),
    ) -> List[Dict[str, str]]:
        """
        Send one command and collect its !re rows until !done.

        Raises RouterError on !trap / !fatal and ProtocolError if the
        connection drops before the command completes.
        """
        replies = await self._request(command, params, words)
        return [r.attrs for r in replies if r.type == "!re"]

    async def _request(
        self,
        command: str,
        params: Optional[Mapping[str, Any]] = None,
        words: Sequence[str] = (),
    ) -> List[Reply]:
        """Send a tagged command; returns the !re replies followed by the !done reply."""
        if not self._connected or self._writer is None:
            raise ConnectError(f"Not connected to {self.host}:{self.port}")

        tag = self._next_tag()
        sentence = build_command(command, params, words, tag=tag)
        queue: asyncio.Queue = asyncio.Queue()
        self._pending[tag] = queue
        try:
            logger.debug(f"{self.host} >>> {sentence[0]} (tag {tag})")
            self._writer.write(encode_sentence(sentence))
            await self._writer.drain()

            replies: List[Reply] = []
            while True:
                try:
                    item = await asyncio.wait_for(queue.get(), timeout=self.timeout)
                except asyncio.TimeoutError as e:
                    raise ConnectTimeout(
                        f"{command} on {self.host} timed out after {self.timeout}s"
                    ) from e
                if isinstance(item, BaseException):
                    raise item
                if item.type == "!re":
                    replies.append(item)
                elif item.type == "!done":
                    replies.append(item)
                    return replies
                else:
                    message = item.message or f"{command} failed"
                    raise RouterError(message, item.attrs.get("category", ""))
        except (ConnectionError, OSError) as e:
            raise ProtocolError(f"Connection to {self.host} lost: {e}") from e
        finally:
            self._pending.pop(tag, None)

    # ─── Internal ─────────────────────────────────────────────────────────────

    def _next_tag(self) -> str:
        self._tag_counter += 1
        return str(self._tag_counter)

    def _fail_pending(self, exc: BaseException) -> None:
        for queue in self._pending.values():
            queue.put_nowait(exc)

    async def _receiver_loop(self) -> None:
        """Background task: decodes sentences and dispatches them to waiting commands."""
        try:
            while self._connected and self._reader is not None:
                words = await decode_sentence(self._reader)
                reply = parse_reply(words)

                if reply.tag is not None and reply.tag in self._pending:
                    self._pending[reply.tag].put_nowait(reply)
                elif reply.type == "!fatal":
                    # Untagged !fatal: the router is closing the connection
                    self._fail_pending(RouterError(reply.message or "fatal error"))
                    break
                else:
                    logger.debug(f"{self.host} untagged/unknown reply: {reply}")
        except asyncio.CancelledError:
            raise
        except RouterOSError as e:
            if not self._closed:
                logger.debug(f"Receiver loop for {self.host} stopped: {e}")
            self._fail_pending(e)
        except Exception as e:
            logger.warning(f"Receiver loop error for {self.host}: {e!r}")
            self._fail_pending(ProtocolError(str(e)))
        finally:
            self._connected = False
