"""Cluster membership and leadership state of the current node."""

from __future__ import annotations

import asyncio
import threading
from enum import Enum
from typing import Mapping


class StatusCode(Enum):
    """Status codes carried by :class:`StatusError`."""

    INVALID_ARGUMENT = "invalid_argument"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    INTERNAL = "internal"
    UNIMPLEMENTED = "unimplemented"


class StatusError(Exception):
    """An error reported to a client, tagged with a status code."""

    def __init__(self, code: StatusCode, message: str) -> None:
        super().__init__(f"{code.value}: {message}")
        self.code = code
        self.message = message


def _wake(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)


class State:
    """Identity, members and current leader of this node."""

    def __init__(
        self,
        node_id: str,
        leader_id: str | None = None,
        members: Mapping[str, str] | None = None,
    ) -> None:
        self.id = node_id
        self.members: dict[str, str] = dict(members or {})
        self._leader_id = leader_id
        self._lock = threading.Lock()
        self._waiters: list[asyncio.Future] = []

    @property
    def leader_id(self) -> str | None:
        """Id of the current leader, if known."""
        with self._lock:
            return self._leader_id

    def self_address(self) -> str:
        """Address of this node; raises LookupError if it is not a member."""
        try:
            return self.members[self.id]
        except KeyError:
            raise LookupError(
                f"Self address not found, id: {self.id}, members: {self.members!r}"
            ) from None

    def leader_address(self) -> str | None:
        """Address of the current leader, or None if unknown."""
        leader = self.leader_id
        if leader is None:
            return None
        return self.members.get(leader)

    def leader_listener(self) -> asyncio.Future:
        """A future that resolves the next time a leader is set."""
        future = asyncio.get_running_loop().create_future()
        with self._lock:
            self._waiters.append(future)
        return future

    def set_leader_id(self, leader_id: str | None) -> bool:
        """Set the leader; return whether this node's leadership changed."""
        with self._lock:
            was_leader = self._leader_id == self.id
            self._leader_id = leader_id
            is_leader = leader_id == self.id
            waiters: list[asyncio.Future] = []
            if leader_id is not None:
                waiters, self._waiters = self._waiters, []
        for future in waiters:
            loop = future.get_loop()
            if not loop.is_closed():
                loop.call_soon_threadsafe(_wake, future)
        return was_leader != is_leader

    def is_leader(self) -> bool:
        """Whether this node is the current leader."""
        return self.leader_id == self.id

    def others(self) -> dict[str, str]:
        """Addresses of every member except this node."""
        return {name: addr for name, addr in self.members.items() if name != self.id}

    async def wait_leader(self) -> str:
        """Wait until a leader is known and return its address."""
        address = self.leader_address()
        if address is not None:
            return address
        await self.leader_listener()
        address = self.leader_address()
        if address is None:
            raise StatusError(StatusCode.INTERNAL, "Get leader address error")
        return address