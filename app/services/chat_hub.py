"""
In-memory fan-out hub for chat WebSockets.

Registration is serialized by one lock. Delivery never waits on a client: each
connection has a bounded outbound queue and a client whose queue is full is
dropped from the hub (its writer task then closes the socket).
"""

import asyncio
import logging
from typing import Dict, Iterable, Set

from app.core.config import CHAT_CLIENT_QUEUE_SIZE

logger = logging.getLogger(__name__)


class ChatClient:
    def __init__(self, user_id: int, queue_size: int = CHAT_CLIENT_QUEUE_SIZE):
        self.user_id = user_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.closed = False

    def offer(self, message: dict) -> bool:
        if self.closed:
            return False
        try:
            self.queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            return False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Wake the writer so it can exit; make room if the queue is full
        while True:
            try:
                self.queue.put_nowait(None)
                break
            except asyncio.QueueFull:
                self.queue.get_nowait()


class ChatHub:
    def __init__(self):
        self._clients: Dict[int, Set[ChatClient]] = {}
        self._lock = asyncio.Lock()

    async def register(self, client: ChatClient) -> None:
        async with self._lock:
            self._clients.setdefault(client.user_id, set()).add(client)
        logger.info(f"💬 User {client.user_id} connected to chat")

    async def unregister(self, client: ChatClient) -> None:
        async with self._lock:
            clients = self._clients.get(client.user_id)
            if clients is not None:
                clients.discard(client)
                if not clients:
                    del self._clients[client.user_id]
        client.close()
        logger.info(f"💬 User {client.user_id} left chat")

    async def online_user_ids(self) -> Set[int]:
        async with self._lock:
            return set(self._clients)

    async def send_to_users(self, user_ids: Iterable[int], message: dict) -> int:
        """Queue ``message`` for every connection of the given users; returns deliveries."""
        async with self._lock:
            targets = [client for uid in set(user_ids) for client in self._clients.get(uid, ())]
        delivered = 0
        slow = []
        for client in targets:
            if client.offer(message):
                delivered += 1
            else:
                slow.append(client)
        for client in slow:
            logger.warning(f"⚠️ Dropping slow chat client of user {client.user_id}")
            await self.unregister(client)
        return delivered


hub = ChatHub()


def get_chat_hub() -> ChatHub:
    return hub
