import functools

import pytest

from frdocker.docker_client import DockerStats
from frdocker.http_info import HttpInfo, HttpRole, HttpType
from frdocker.model import ContainerType
from frdocker.monitor import ContainerMonitor, InvalidOrderError

GW = HttpRole(id="10.0.0.1", ip="10.0.0.1", port=8080, type=ContainerType.GATEWAY, name="gateway")
SVC = HttpRole(id="10.0.0.2", ip="10.0.0.2", port=9000, type=ContainerType.SERVICE, name="orders")


class RecordingPool:
    def __init__(self):
        self.tasks = []

    def submit(self, fn, *args, **kwargs):
        self.tasks.append(functools.partial(fn, *args, **kwargs))

    def run_all(self):
        for task in self.tasks:
            task()


def msg(kind, src, dst, trace="t1", ts=0.0):
    url = "/api" if kind == HttpType.REQUEST else ""
    return HttpInfo(type=kind, url=url, src=src, dst=dst, trace_id=trace, timestamp=ts)


def new_monitor():
    return ContainerMonitor(SVC.id, "abc")


def test_simple_request_response():
    monitor = new_monitor()
    pool = RecordingPool()
    calls = []

    def callback(trace_id, state):
        calls.append(trace_id)

    monitor.update_container_state(msg(HttpType.REQUEST, GW, SVC, ts=1.0), callback, pool)
    monitor.update_container_state(msg(HttpType.RESPONSE, SVC, GW, ts=2.0), callback, pool)
    fsm = monitor.fsms["/api"]
    node = fsm.get_first_node()
    assert fsm.all_nodes == [node]
    assert node.source == GW.name
    assert node.target == GW.name
    pool.run_all()
    assert node.state.cnt == 1
    assert calls == ["t1"]
    with pytest.raises(InvalidOrderError):
        monitor.update_container_state(msg(HttpType.RESPONSE, SVC, GW), callback, pool)


def test_out_of_order_message():
    monitor = new_monitor()
    with pytest.raises(InvalidOrderError):
        monitor.update_container_state(
            msg(HttpType.RESPONSE, SVC, GW), lambda t, s: None, RecordingPool()
        )
    assert monitor.fsms == {}


def test_second_trace_reuses_first_node():
    monitor = new_monitor()
    pool = RecordingPool()
    for trace in ("a", "b"):
        monitor.update_container_state(msg(HttpType.REQUEST, GW, SVC, trace), None, pool)
        monitor.update_container_state(msg(HttpType.RESPONSE, SVC, GW, trace), None, pool)
    fsm = monitor.fsms["/api"]
    assert fsm.all_nodes == [fsm.get_first_node()]
    assert len(pool.tasks) == len(("a", "b"))


def test_outgoing_call_adds_second_state():
    monitor = new_monitor()
    pool = RecordingPool()
    monitor.update_container_state(msg(HttpType.REQUEST, GW, SVC), None, pool)
    monitor.update_container_state(msg(HttpType.REQUEST, SVC, GW), None, pool)
    monitor.update_container_state(msg(HttpType.RESPONSE, GW, SVC), None, pool)
    monitor.update_container_state(msg(HttpType.RESPONSE, SVC, GW), None, pool)
    fsm = monitor.fsms["/api"]
    first, second = fsm.all_nodes
    assert first.next is second
    assert second.next is fsm.tail
    assert (first.target, second.source, second.target) == (GW.name, GW.name, GW.name)
    assert len(pool.tasks) == len(fsm.all_nodes)


def test_metric_and_ecc_updates():
    class FakeDocker:
        def get_container_stats(self, container_id):
            return DockerStats(container_id=container_id, cpu_percent=50.0)

    monitor = new_monitor()
    monitor.update_container_metric(FakeDocker())
    monitor.update_container_ecc(0.9, 0.3)
    assert monitor.metric.cpu == 50.0
    assert (monitor.metric.ecc, monitor.metric.thresh) == (0.9, 0.3)


def test_round_trip():
    monitor = new_monitor()
    pool = RecordingPool()
    monitor.update_container_state(msg(HttpType.REQUEST, GW, SVC, ts=1.0), None, pool)
    monitor.update_container_state(msg(HttpType.RESPONSE, SVC, GW, ts=2.0), None, pool)
    pool.run_all()
    restored = ContainerMonitor.from_dict(monitor.to_dict())
    assert restored.to_dict() == monitor.to_dict()
    fsm = restored.fsms["/api"]
    assert fsm.get_first_node() is fsm.all_nodes[0]