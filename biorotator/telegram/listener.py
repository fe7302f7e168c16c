"""Long-polling command listener."""
from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional

from .client import TelegramProfileClient
from .errors import UnauthorizedError, UpdateError

if TYPE_CHECKING:
    from biorotator.commands import CommandHandler

logger = logging.getLogger(__name__)

DEFAULT_POLL_TIMEOUT = 25
RETRY_DELAY = 5.0


class CommandListener:
    """Feed chat messages from authorised chats into a :class:`CommandHandler`.

    Messages from chats outside ``chat_ids`` are ignored.  Replies are sent
    back to the originating chat.
    """

    def __init__(
        self,
        client: TelegramProfileClient,
        handler: "CommandHandler",
        chat_ids: Iterable[int],
        *,
        poll_timeout: int = DEFAULT_POLL_TIMEOUT,
    ) -> None:
        self._client = client
        self._handler = handler
        self._chat_ids = frozenset(int(cid) for cid in chat_ids)
        self._poll_timeout = poll_timeout
        self._offset: Optional[int] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self.run, name="command-listener", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self) -> None:
        logger.info("Listening for commands from %d chat(s)", len(self._chat_ids))
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except UnauthorizedError as exc:
                logger.error("Command listener stopped, bot token rejected: %s", exc)
                return
            except UpdateError as exc:
                logger.warning("Polling for commands failed: %s", exc)
                self._stop_event.wait(RETRY_DELAY)

    def poll_once(self) -> int:
        """Fetch and process one batch of updates; return how many were handled."""

        updates = self._client.get_updates(self._offset, self._poll_timeout)
        handled = 0
        for update in updates:
            update_id = update.get("update_id")
            if isinstance(update_id, int):
                self._offset = update_id + 1
            try:
                if self._process(update):
                    handled += 1
            except Exception:  # noqa: BLE001
                logger.exception("Unexpected error while handling update %s", update_id)
        return handled

    def _process(self, update: Dict[str, Any]) -> bool:
        message = update.get("message") or {}
        text = message.get("text")
        chat_id = (message.get("chat") or {}).get("id")
        if not isinstance(text, str) or chat_id is None:
            return False
        if chat_id not in self._chat_ids:
            logger.debug("Ignoring message from unauthorised chat %s", chat_id)
            return False

        result = self._handler.handle(text)
        if result is None:
            return False
        try:
            self._client.send_message(chat_id, result.message)
        except UpdateError as exc:
            logger.warning("Failed to reply to chat %s: %s", chat_id, exc)
        return True
