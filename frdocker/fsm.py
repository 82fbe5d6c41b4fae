"""Per-API finite state machine of the states a container goes through."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from frdocker.http_info import HttpInfo
from frdocker.state import ContainerState


@dataclass(eq=False)
class StateFSMNode:
    """A working state, opened by a message into the container and closed by one out."""

    id: str = ""
    api: str = ""
    source: str = ""
    target: str = ""
    state: ContainerState | None = None
    next: StateFSMNode | None = field(default=None, repr=False)
    prev: StateFSMNode | None = field(default=None, repr=False)

    def is_leave_state(self, http_info: HttpInfo) -> bool:
        return http_info.is_leave_container(self.id) and http_info.dst.name == self.target


def _node_to_dict(node: StateFSMNode) -> dict[str, Any]:
    return {
        "id": node.id,
        "api": node.api,
        "from": node.source,
        "to": node.target,
        "state": node.state.to_dict() if node.state is not None else None,
    }


def _node_from_dict(data: dict[str, Any]) -> StateFSMNode:
    state = data.get("state")
    return StateFSMNode(
        id=data.get("id") or "",
        api=data.get("api") or "",
        source=data.get("from") or "",
        target=data.get("to") or "",
        state=ContainerState.from_dict(state) if state else None,
    )


@dataclass(eq=False)
class StateFSM:
    """A linked chain of states between head and tail sentinels."""

    id: str
    api: str
    size: int = 0
    head: StateFSMNode = field(default_factory=StateFSMNode, repr=False)
    tail: StateFSMNode = field(default_factory=StateFSMNode, repr=False)
    all_nodes: list[StateFSMNode] = field(default_factory=list)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def __post_init__(self) -> None:
        self.head.next = self.tail
        self.tail.prev = self.head

    def add_node(self, http_info: HttpInfo) -> StateFSMNode:
        """Append a state opened by ``http_info``."""
        with self.lock:
            other = http_info.get_other_role(self.id)
            last = self.tail.prev
            node = StateFSMNode(
                id=self.id,
                api=self.api,
                source=other.name,
                state=ContainerState(self.id),
                next=self.tail,
                prev=last,
            )
            self.size += 1
            self.all_nodes.append(node)
            last.next = node
            self.tail.prev = node
            return node

    def get_first_node(self) -> StateFSMNode | None:
        with self.lock:
            if self.size == 0:
                return None
            return self.head.next

    def relink(self) -> None:
        """Rebuild the chain from ``all_nodes`` and clear waiting traces."""
        with self.lock:
            if not self.all_nodes:
                return
            chain = [self.head, *self.all_nodes, self.tail]
            for left, right in zip(chain, chain[1:]):
                left.next = right
                right.prev = left
            for node in self.all_nodes:
                if node.state is not None:
                    node.state.ensure_pending()

    def to_dict(self) -> dict[str, Any]:
        with self.lock:
            return {
                "id": self.id,
                "api": self.api,
                "size": self.size,
                "head": _node_to_dict(self.head),
                "tail": _node_to_dict(self.tail),
                "allNodes": [_node_to_dict(node) for node in self.all_nodes],
            }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> StateFSM:
        fsm = StateFSM(
            id=data.get("id") or "",
            api=data.get("api") or "",
            size=int(data.get("size") or 0),
            all_nodes=[_node_from_dict(item) for item in data.get("allNodes") or []],
        )
        fsm.relink()
        return fsm