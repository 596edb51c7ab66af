"""
Test doubles and frame builders for collaboration tests
"""

import asyncio
import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Union

from starlette.websockets import WebSocketState

from src.api.connection_registry import ClientConnection


class FakeWebSocket:
    """
    Starlette WebSocket stand-in.

    Outbound frames are collected in `sent`. Inbound frames (str or bytes)
    are served from `incoming` as ASGI receive events; once it is exhausted
    a disconnect event is returned, or, with `idle=True`, receive() waits
    until the serving task is cancelled.
    """

    def __init__(self, host: str = "10.0.0.5", incoming: Optional[List[Union[str, bytes]]] = None,
                 idle: bool = False):
        self.client = SimpleNamespace(host=host, port=50000)
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.sent: List[str] = []
        self.incoming: List[Union[str, bytes]] = list(incoming or [])
        self.idle = idle
        self.send_error: Optional[BaseException] = None
        self.send_delay = 0.0

    async def send_text(self, data: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        self.sent.append(data)

    async def receive(self) -> Dict[str, Any]:
        if not self.incoming:
            if self.idle:
                await asyncio.Event().wait()
            self.client_state = WebSocketState.DISCONNECTED
            return {"type": "websocket.disconnect", "code": 1000}

        data = self.incoming.pop(0)
        if isinstance(data, bytes):
            return {"type": "websocket.receive", "bytes": data}
        return {"type": "websocket.receive", "text": data}

    def drop(self) -> None:
        """Simulate the peer vanishing without a close handshake"""
        self.client_state = WebSocketState.DISCONNECTED

    def messages(self) -> List[Dict[str, Any]]:
        return [json.loads(frame) for frame in self.sent]

    def messages_of(self, message_type: str) -> List[Dict[str, Any]]:
        return [m for m in self.messages() if m["type"] == message_type]


def join_frame(project_id: str, user_id: str, username: Optional[str] = None) -> str:
    return json.dumps({
        "type": "join",
        "projectId": project_id,
        "userId": user_id,
        "username": username or user_id,
    })


def frame(message_type: str, data: Any = None) -> str:
    payload: Dict[str, Any] = {"type": message_type}
    if data is not None:
        payload["data"] = data
    return json.dumps(payload)


def make_connection(host: str = "10.0.0.5") -> ClientConnection:
    return ClientConnection(websocket=FakeWebSocket(host=host), ip_address=host)
