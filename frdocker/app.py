"""The fault recovery application: discovery, monitoring, persistence and recovery."""

from __future__ import annotations

import contextlib
import logging
import signal
import threading
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import httpx
from pymongo.errors import PyMongoError

from frdocker import config
from frdocker.container import Container, new_container
from frdocker.dto import MSInstance
from frdocker.http_info import HttpInfo, InvalidPacketError, parse_http_info
from frdocker.logger import TRACE
from frdocker.model import ContainerType, Service
from frdocker.monitor import InvalidOrderError
from frdocker.packets import Packet, PacketCapture, generate_container_id
from frdocker.registry import (
    GatewayNotifyError,
    check_container_health,
    get_registry_info,
    notify_gateway_replay_message,
)
from frdocker.state import ContainerState
from frdocker.teda import calculate_with_sample

_MIN_PAYLOAD = 16
_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_STOP_SIGNALS = tuple(
    getattr(signal, name)
    for name in ("SIGINT", "SIGTERM", "SIGPIPE", "SIGABRT", "SIGQUIT")
    if hasattr(signal, name)
)


def _parse_bool(text: str) -> bool:
    """Boolean flag from registry metadata; anything unrecognised is false."""
    return text in _TRUE_WORDS


class _PeriodicTask:
    """Runs a function every ``interval`` seconds on a background thread."""

    def __init__(self, interval: float, fn: Callable[[], None], logger: logging.Logger):
        self._interval = interval
        self._fn = fn
        self._logger = logger
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._loop, daemon=True)

    def _loop(self) -> None:
        while not self._stopped.wait(self._interval):
            try:
                self._fn()
            except Exception:
                self._logger.exception("scheduled task failed")

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join()


class FrecoveryApp:
    """Watches traced traffic and resource use of services and triggers recovery."""

    def __init__(
        self,
        registry_address: str,
        network_interface: str,
        docker_client: Any,
        logger: logging.Logger | None,
        db: Any,
        pool: Any = None,
        capture: PacketCapture | None = None,
    ) -> None:
        self.registry_address = registry_address
        self.network_interface = network_interface
        self.docker_client = docker_client
        self.logger = logger or logging.getLogger(__name__)
        self.db = db
        self.pool = pool if pool is not None else ThreadPoolExecutor(
            max_workers=config.FRECOVERY_POOL_SIZE
        )
        self.capture = capture
        self.services: dict[str, Service] = {}
        self.gateways: dict[str, Service] = {}
        self.containers: dict[str, Container] = {}
        self._persist_task: _PeriodicTask | None = None
        self._metric_task: _PeriodicTask | None = None

    # lookups

    def get_container(self, id: str) -> Container | None:
        return self.containers.get(id)

    def get_service(self, service_name: str) -> Service | None:
        return self.services.get(service_name)

    def get_gateway(self, gateway_name: str) -> Service | None:
        return self.gateways.get(gateway_name)

    def container_type(self, id: str) -> ContainerType:
        container = self.containers.get(id)
        if container is None:
            return ContainerType.INVALID
        if container.service_name in self.services:
            return ContainerType.SERVICE
        if container.service_name in self.gateways:
            return ContainerType.GATEWAY
        return ContainerType.INVALID

    # initialisation

    def init_ms_system(self) -> None:
        """Load services, gateways and their containers from the registry."""
        self.logger.info("init microservice system...")
        try:
            registry_config = get_registry_info(self.registry_address)
        except (httpx.HTTPError, ValueError) as exc:
            self.logger.critical("error while getting config from registry: %s", exc)
            raise
        self.init_services_and_gateways(registry_config.services, self.services)
        self.init_services_and_gateways(registry_config.gateways, self.gateways)
        self.set_gateway_for_services(registry_config.gateways)
        self.restore_from_db()
        self.logger.info("init microservice system success")

    def init_services_and_gateways(
        self, src: Mapping[str, Iterable[MSInstance]], dst: dict[str, Service]
    ) -> None:
        """Create a service per registry entry and a container per instance."""
        for key, instances in src.items():
            service = Service(key.lower())
            for instance in instances:
                leaf = instance.metadata.get(config.REGISTRY_METADATA_LEAF_KEY)
                if leaf is not None:
                    service.is_leaf = _parse_bool(leaf)
                try:
                    container = new_container(
                        self.docker_client, instance.ip, instance.port, service.service_name
                    )
                except Exception as exc:
                    self.logger.critical(
                        "error while init container of %s:%s:%d: %s",
                        service.service_name,
                        instance.ip,
                        instance.port,
                        exc,
                    )
                    raise
                service.containers.append(container.id)
                self.containers[container.id] = container
            dst[service.service_name] = service

    def set_gateway_for_services(self, gateways: Mapping[str, Iterable[MSInstance]]) -> None:
        """Record for each service the gateway that fronts it."""
        for key, instances in gateways.items():
            gateway_name = key.lower()
            for instance in instances:
                service_name = instance.metadata.get(
                    config.REGISTRY_METADATA_GATEWAY_KEY, ""
                ).lower()
                service = self.services.get(service_name)
                if service is not None:
                    service.gateway = gateway_name

    def _init_capture(self) -> None:
        self.logger.info("init pcap...")
        if self.capture is None:
            try:
                self.capture = PacketCapture(self.network_interface)
            except OSError as exc:
                self.logger.critical("error while init pcap handle: %s", exc)
                raise
        self.logger.info("init pcap success")

    # persistence

    def _filter(self) -> dict[str, str]:
        return {"networkInterface": self.network_interface}

    def persistence_task(self) -> None:
        """Store the whole application state, replacing the previous copy."""
        collection = self.db[config.FRECOVERY_PERSISTENCE_COLLECTION]
        try:
            collection.replace_one(self._filter(), self.to_dict(), upsert=True)
        except PyMongoError:
            self.logger.error("failed to persist frecovery app")

    def get_persisted_app(self) -> FrecoveryApp | None:
        """Load the stored state of this network interface, or None."""
        collection = self.db[config.FRECOVERY_PERSISTENCE_COLLECTION]
        try:
            document = collection.find_one(self._filter())
        except PyMongoError:
            return None
        if document is None:
            return None
        try:
            return self._from_document(document)
        except (AttributeError, KeyError, TypeError, ValueError):
            return None

    def _from_document(self, document: Mapping[str, Any]) -> FrecoveryApp:
        app = FrecoveryApp(
            document.get("registryAddress") or "",
            document.get("networkInterface") or "",
            docker_client=None,
            logger=self.logger,
            db=None,
            pool=self.pool,
        )
        app.services = {
            name: Service.from_dict(data)
            for name, data in (document.get("services") or {}).items()
        }
        app.gateways = {
            name: Service.from_dict(data)
            for name, data in (document.get("gateways") or {}).items()
        }
        app.containers = {
            cid: Container.from_dict(data)
            for cid, data in (document.get("containers") or {}).items()
        }
        return app

    def restore_from_db(self) -> None:
        """Carry learnt call graphs, health and state machines over from storage."""
        self.logger.info("restore from db...")
        persisted = self.get_persisted_app()
        if persisted is None:
            return
        for name, stored in persisted.services.items():
            service = self.get_service(name)
            if service is not None:
                service.calls = stored.calls
                service.is_leaf = stored.is_leaf
                service.is_root = stored.is_root
        for cid, stored in persisted.containers.items():
            container = self.get_container(cid)
            if container is None:
                continue
            container.is_healthy = stored.is_healthy
            container.monitor = stored.monitor
            for fsm in container.monitor.fsms.values():
                fsm.relink()

    def to_dict(self) -> dict[str, Any]:
        return {
            "registryAddress": self.registry_address,
            "networkInterface": self.network_interface,
            "services": {name: s.to_dict() for name, s in self.services.items()},
            "gateways": {name: g.to_dict() for name, g in self.gateways.items()},
            "containers": {cid: c.to_dict() for cid, c in self.containers.items()},
        }

    # metric monitoring

    def grouped_containers(self) -> list[list[Container]]:
        """Containers grouped by the service they run."""
        return [
            [c for c in map(self.get_container, service.containers) if c is not None]
            for service in self.services.values()
        ]

    def monitor_metric_task(self) -> None:
        """Score every service's containers against each other in the background."""
        for group in self.grouped_containers():
            threading.Thread(
                target=self.monitor_metric_for_group, args=(group,), daemon=True
            ).start()

    def _collect_metric(self, container: Container) -> list[float]:
        try:
            container.monitor.update_container_metric(self.docker_client)
        except Exception as exc:
            self.logger.debug("metric update of %s failed: %s", container.id, exc)
        return container.monitor.metric.values()

    def monitor_metric_for_group(self, containers: list[Container]) -> None:
        """Refresh metrics of a container group and flag the eccentric ones."""
        futures = [self.pool.submit(self._collect_metric, c) for c in containers]
        data = [future.result() for future in futures]
        all_ecc, thresh = calculate_with_sample(data)
        for container, ecc in zip(containers, all_ecc):
            container.monitor.update_container_ecc(ecc, thresh)
            if ecc > thresh:
                self.logger.error(
                    "[metric][%s][%s:%d] ecc: %.4f, thresh: %.4f",
                    container.service_name,
                    container.ip,
                    container.port,
                    ecc,
                    thresh,
                )

    # state monitoring

    def check_packet_valid(self, packet: Packet | None) -> bool:
        """Whether the packet is traffic between two known containers."""
        if packet is None or len(packet.payload) < _MIN_PAYLOAD:
            return False
        src_type = self.container_type(generate_container_id(packet.src_ip, packet.src_port))
        dst_type = self.container_type(generate_container_id(packet.dst_ip, packet.dst_port))
        return ContainerType.INVALID not in (src_type, dst_type)

    def set_http_role(self, http_info: HttpInfo) -> None:
        """Fill in ids, roles and service names of both ends."""
        src_id = generate_container_id(http_info.src.ip, http_info.src.port)
        dst_id = generate_container_id(http_info.dst.ip, http_info.dst.port)
        src_type = self.container_type(src_id)
        dst_type = self.container_type(dst_id)
        if ContainerType.INVALID in (src_type, dst_type):
            raise InvalidPacketError("invalid httpInfo")
        http_info.src.id = src_id
        http_info.dst.id = dst_id
        http_info.src.type = src_type
        http_info.dst.type = dst_type
        http_info.src.name = self.containers[src_id].service_name
        http_info.dst.name = self.containers[dst_id].service_name

    def get_checking_container(self, http_info: HttpInfo) -> Container | None:
        """The service container whose state the message belongs to."""
        if http_info.src.type == ContainerType.SERVICE:
            return self.get_container(http_info.src.id)
        return self.get_container(http_info.dst.id)

    def handle_packet(self, packet: Packet | None) -> None:
        """Feed one captured packet into the state machines."""
        if not self.check_packet_valid(packet):
            return
        try:
            http_info = parse_http_info(packet)
            self.set_http_role(http_info)
        except InvalidPacketError as exc:
            self.logger.error("%s", exc)
            return
        container = self.get_checking_container(http_info)
        if container is None or not container.is_healthy:
            return
        with contextlib.suppress(InvalidOrderError):
            container.monitor.update_container_state(
                http_info, self.monitor_state_callback, self.pool
            )

    def monitor_state_callback(self, trace_id: str, state: ContainerState) -> None:
        """Check a freshly scored state and start recovery when it is abnormal."""
        container = self.get_container(state.id)
        if container is None:
            return
        with state.lock:
            ecc, thresh = state.ecc, state.thresh
        args = (container.service_name, container.ip, container.port, trace_id, ecc, thresh)
        message = "[state][%s][%s:%d][%s] ecc: %.4f, thresh: %.4f"
        if ecc > thresh:
            self.logger.error(message, *args)
            threading.Thread(
                target=self.handle_container_abnormal, args=(container,), daemon=True
            ).start()
        else:
            self.logger.log(TRACE, message, *args)

    def handle_container_abnormal(self, container: Container) -> None:
        """Confirm a failure and ask the service's gateway to replay its messages."""
        try:
            healthy = check_container_health(container.ip, container.port)
        except (httpx.HTTPError, ValueError):
            healthy = False
        if healthy:
            return
        with container.lock:
            if not container.is_healthy:
                return
            service = self.get_service(container.service_name)
            gateway = self.get_gateway(service.gateway) if service is not None else None
            if gateway is None:
                self.logger.error(
                    "[%s][%s:%d] no gateway to notify",
                    container.service_name,
                    container.ip,
                    container.port,
                )
                return
            for ctn in gateway.containers:
                gateway_container = self.containers[ctn]
                addr = f"{gateway_container.ip}:{gateway_container.port}"
                try:
                    notify_gateway_replay_message(
                        addr, container.service_name, container.ip, container.port
                    )
                except (httpx.HTTPError, GatewayNotifyError, ValueError) as exc:
                    self.logger.error(
                        "[%s][%s:%d] notify gateway %s replay message failed: %s",
                        container.service_name,
                        container.ip,
                        container.port,
                        ctn,
                        exc,
                    )
                else:
                    container.is_healthy = False
                    self.logger.info(
                        "[%s][%s:%d] notify gateway %s replay message success",
                        container.service_name,
                        container.ip,
                        container.port,
                        ctn,
                    )

    def _monitor_state(self) -> None:
        self.logger.info("start state monitoring...")
        stop = threading.Event()
        capture = self.capture

        def _on_signal(signum: int, frame: object) -> None:
            stop.set()
            capture.close()

        previous = {}
        if threading.current_thread() is threading.main_thread():
            for sig in _STOP_SIGNALS:
                previous[sig] = signal.signal(sig, _on_signal)
        try:
            for packet in capture.packets():
                self.handle_packet(packet)
                if stop.is_set():
                    break
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

    # lifecycle

    def run(self) -> None:
        """Start everything and block until capture stops or a stop signal arrives."""
        self.logger.info("start frdocker...")
        self.init_ms_system()
        self._init_capture()
        self.logger.info("register persistence scheduled task...")
        self._persist_task = _PeriodicTask(
            config.FRECOVERY_PERSISTENCE_INTERVAL, self.persistence_task, self.logger
        )
        self._persist_task.start()
        self.logger.info("start metric monitoring...")
        self._metric_task = _PeriodicTask(
            config.CONTAINER_METRIC_MONITOR_INTERVAL, self.monitor_metric_task, self.logger
        )
        self._metric_task.start()
        self._monitor_state()
        self.close()
        self.logger.info("stop frdocker...")

    def close(self) -> None:
        """Stop the schedules, persist a final time and release resources."""
        if self._persist_task is not None:
            self._persist_task.stop()
            self._persist_task = None
        self.persistence_task()
        if self._metric_task is not None:
            self._metric_task.stop()
            self._metric_task = None
        client = getattr(self.db, "client", None)
        if client is not None:
            client.close()
        if self.capture is not None:
            self.capture.close()
        self.pool.shutdown(wait=False)
        for handler in self.logger.handlers:
            handler.flush()