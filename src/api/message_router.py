"""
Message Router
==============
Parses inbound collaboration frames, enforces the per-connection protocol
state machine and dispatches each message to its handler.

Nothing is ever sent back for a rejected frame: malformed input is logged
at warning level, out-of-state messages at debug level, and the
connection stays open either way.
"""

import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from ..core.exceptions import MessageValidationError
from ..core.logger import StructuredLogger
from ..domain.models.collaboration import ConnectionState
from .connection_registry import ClientConnection
from .protocol import INBOUND_TYPES, MessageType, parse_inbound

MessageHandler = Callable[[ClientConnection, Any], Awaitable[None]]


class MessageRouter:
    """
    Routes each inbound message of one connection to its handler.

    State gating:
    - UNJOINED accepts only join
    - JOINED accepts everything except a second join
    - CLOSED accepts nothing
    """

    def __init__(self,
                 handlers: Dict[MessageType, MessageHandler],
                 max_message_bytes: int = 1_000_000,
                 logger: Optional[StructuredLogger] = None):
        """
        Initialize MessageRouter.

        Args:
            handlers: One async handler per inbound message type
            max_message_bytes: Frames larger than this are dropped unparsed
            logger: Optional logger instance

        Raises:
            ValueError: if any inbound message type has no handler
        """
        self.logger = logger
        self.max_message_bytes = max_message_bytes
        self.handlers: Dict[MessageType, MessageHandler] = {}

        for message_type, handler in handlers.items():
            self.register_handler(message_type, handler)

        missing = sorted(t.value for t in INBOUND_TYPES if t not in self.handlers)
        if missing:
            raise ValueError(f"No handler registered for message types: {missing}")

        # Performance tracking
        self.messages_processed = 0
        self.messages_failed = 0
        self.messages_invalid = 0
        self.messages_dropped = 0
        self.average_processing_time = 0.0
        self._processing_time_sum = 0.0
        self._processing_count = 0

    def register_handler(self, message_type: Union[MessageType, str], handler: MessageHandler):
        """
        Register (or replace) the handler for one inbound message type.

        Raises:
            ValueError: for outbound or unknown message types
        """
        message_type = MessageType(message_type)
        if message_type not in INBOUND_TYPES:
            raise ValueError(f"{message_type.value} is not an inbound message type")

        self.handlers[message_type] = handler

        if self.logger:
            self.logger.debug("message_router.handler_registered", {
                "message_type": message_type.value,
                "handler": getattr(handler, "__name__", repr(handler))
            })

    async def route_message(self, connection: ClientConnection, raw_message: Union[str, bytes]) -> bool:
        """
        Parse, gate and dispatch one raw frame.

        Args:
            connection: Connection the frame arrived on
            raw_message: Raw frame payload (text or binary)

        Returns:
            True if a handler ran to completion
        """
        start_time = time.time()
        self.messages_processed += 1

        size = len(raw_message.encode("utf-8")) if isinstance(raw_message, str) else len(raw_message)
        if size > self.max_message_bytes:
            self.messages_invalid += 1
            if self.logger:
                self.logger.warning("message_router.message_too_large", {
                    "client_id": connection.client_id,
                    "size_bytes": size,
                    "max_bytes": self.max_message_bytes
                })
            return False

        try:
            message = parse_inbound(raw_message)
        except MessageValidationError as e:
            self.messages_invalid += 1
            if self.logger:
                self.logger.warning("message_router.validation_failed", {
                    "client_id": connection.client_id,
                    "message_type": e.message_type or "unknown",
                    "errors": e.errors
                })
            return False

        message_type = message.message_type
        drop_reason = self._gate(connection.state, message_type)
        if drop_reason:
            self.messages_dropped += 1
            if self.logger:
                self.logger.debug("message_router.message_dropped", {
                    "client_id": connection.client_id,
                    "message_type": message_type.value,
                    "state": connection.state.value,
                    "reason": drop_reason
                })
            return False

        try:
            await self.handlers[message_type](connection, message)
        except Exception as e:
            self.messages_failed += 1
            if self.logger:
                self.logger.error("message_router.handler_error", {
                    "client_id": connection.client_id,
                    "message_type": message_type.value,
                    "error": str(e),
                    "error_type": type(e).__name__
                }, exc_info=True)
            return False

        processing_time = (time.time() - start_time) * 1000
        self._processing_time_sum += processing_time
        self._processing_count += 1
        self.average_processing_time = self._processing_time_sum / self._processing_count

        if self.logger:
            self.logger.debug("message_router.message_processed", {
                "client_id": connection.client_id,
                "message_type": message_type.value,
                "processing_time_ms": processing_time
            })
        return True

    @staticmethod
    def _gate(state: ConnectionState, message_type: MessageType) -> Optional[str]:
        """Reason to drop a message in the given state, or None to dispatch it"""
        if state == ConnectionState.CLOSED:
            return "connection_closed"
        if state == ConnectionState.UNJOINED and message_type != MessageType.JOIN:
            return "not_joined"
        if state == ConnectionState.JOINED and message_type == MessageType.JOIN:
            return "already_joined"
        return None

    def get_stats(self) -> Dict[str, Any]:
        """Get router performance statistics"""
        return {
            "messages_processed": self.messages_processed,
            "messages_failed": self.messages_failed,
            "messages_invalid": self.messages_invalid,
            "messages_dropped": self.messages_dropped,
            "average_processing_time_ms": self.average_processing_time,
            "handler_types": sorted(t.value for t in self.handlers)
        }

    async def health_check(self) -> Dict[str, Any]:
        return {
            "healthy": True,
            "component": "MessageRouter",
            "stats": self.get_stats(),
            "timestamp": datetime.now().isoformat()
        }
