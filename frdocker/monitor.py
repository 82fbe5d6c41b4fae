"""Per-container monitor tying traced HTTP messages to state machines."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from frdocker.fsm import StateFSM, StateFSMNode
from frdocker.http_info import HttpInfo
from frdocker.metric import ContainerMetric, StatsSource
from frdocker.state import MonitorStateCallback, TaskPool


class InvalidOrderError(ValueError):
    """A message arrived that does not continue any known trace."""


@dataclass(eq=False)
class ContainerMonitor:
    """State machines by API and resource metrics of one container."""

    id: str
    container_id: str
    fsms: dict[str, StateFSM] = field(default_factory=dict)
    metric: ContainerMetric | None = None
    _running_state: dict[str, StateFSMNode] = field(
        default_factory=dict, init=False, repr=False
    )

    def __post_init__(self) -> None:
        if self.metric is None:
            self.metric = ContainerMetric(self.id, self.container_id)

    def update_container_metric(self, docker_client: StatsSource) -> None:
        self.metric.update(docker_client)

    def update_container_ecc(self, ecc: float, thresh: float) -> None:
        self.metric.update_ecc(ecc, thresh)

    def update_container_state(
        self, http_info: HttpInfo, callback: MonitorStateCallback, pool: TaskPool
    ) -> None:
        """Advance the trace of ``http_info`` through its state machine."""
        node = self._state_node(http_info)
        if node is None:
            raise InvalidOrderError("invalid order of httpInfo")
        self._running_state[http_info.trace_id] = node
        node.state.ensure_callback(callback)
        node.state.update(http_info, pool)
        if http_info.is_end_container_process(self.id):
            self._running_state.pop(http_info.trace_id, None)

    def _state_node(self, http_info: HttpInfo) -> StateFSMNode | None:
        if http_info.is_start_container_process(self.id):
            fsm = self._fsm(http_info.url)
            return fsm.get_first_node() or fsm.add_node(http_info)
        node = self._running_state.get(http_info.trace_id)
        if node is None:
            return None
        fsm = self._fsm(node.api)
        # the machine is still being learnt: the exit target is not known yet
        if not node.target and http_info.is_leave_container(self.id):
            node.target = http_info.dst.name
        if node.is_leave_state(http_info):
            return node
        if http_info.is_enter_container(self.id):
            if node.next is fsm.tail:
                fsm.add_node(http_info)
            return node.next
        return None

    def _fsm(self, api: str) -> StateFSM:
        fsm = self.fsms.get(api)
        if fsm is None:
            fsm = self.fsms[api] = StateFSM(self.id, api)
        return fsm

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "containerId": self.container_id,
            "fsms": {api: fsm.to_dict() for api, fsm in self.fsms.items()},
            "metric": self.metric.to_dict(),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> ContainerMonitor:
        metric = data.get("metric")
        return ContainerMonitor(
            id=data.get("id") or "",
            container_id=data.get("containerId") or "",
            fsms={
                api: StateFSM.from_dict(fsm)
                for api, fsm in (data.get("fsms") or {}).items()
            },
            metric=ContainerMetric.from_dict(metric) if metric else None,
        )