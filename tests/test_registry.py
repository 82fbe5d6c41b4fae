import json
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from types import SimpleNamespace

import httpx
import pytest

from frdocker.dto import MSConfig, ReplayMessage
from frdocker.registry import (
    GatewayNotifyError,
    check_container_health,
    get_registry_info,
    notify_gateway_replay_message,
)


@pytest.fixture(autouse=True)
def _no_proxy(monkeypatch):
    for name in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def server():
    routes = {}
    received = []

    class Handler(BaseHTTPRequestHandler):
        def _reply(self):
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length) if length else b""
            received.append(SimpleNamespace(method=self.command, path=self.path, headers=self.headers, body=body))
            status, payload = routes.get((self.command, self.path), (404, {}))
            data = json.dumps(payload).encode()
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        do_GET = _reply
        do_POST = _reply

        def log_message(self, *args):
            pass

    httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield SimpleNamespace(
        host="127.0.0.1",
        port=httpd.server_port,
        addr=f"127.0.0.1:{httpd.server_port}",
        routes=routes,
        received=received,
    )
    httpd.shutdown()
    httpd.server_close()


def _free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_get_registry_info(server):
    server.routes[("GET", "/frecovery/conf")] = (
        200,
        {
            "services": {"USER": [{"name": "user", "ip": "10.0.0.2", "port": 8080, "metadata": {"leaf": "true"}}]},
            "gateways": {},
            "groups": ["shop"],
        },
    )
    cfg = get_registry_info(server.addr)
    instance = cfg.services["USER"][0]
    assert (instance.ip, instance.port, instance.metadata) == ("10.0.0.2", 8080, {"leaf": "true"})
    assert cfg.groups == ["shop"]
    assert server.received[0].headers.get("Accept") == "application/json"


def test_get_registry_info_error_status_gives_empty_config(server):
    assert get_registry_info(server.addr) == MSConfig()


def test_health_up(server):
    server.routes[("GET", "/actuator/health")] = (200, {"status": "UP"})
    assert check_container_health(server.host, server.port) is True


def test_health_down(server):
    server.routes[("GET", "/actuator/health")] = (200, {"status": "DOWN"})
    assert check_container_health(server.host, server.port) is False


def test_health_bad_status(server):
    server.routes[("GET", "/actuator/health")] = (500, {"status": "UP"})
    with pytest.raises(httpx.HTTPStatusError):
        check_container_health(server.host, server.port)


def test_health_unreachable():
    with pytest.raises(httpx.TransportError):
        check_container_health("127.0.0.1", _free_port())


def test_notify_gateway_success(server):
    server.routes[("POST", "/frecovery/replace")] = (200, {"code": 200, "message": "ok"})
    notify_gateway_replay_message(server.addr, "user", "10.0.0.5", 8080)
    request = server.received[0]
    assert json.loads(request.body) == ReplayMessage("user", "10.0.0.5", 8080).to_dict()
    assert request.headers.get("Content-Type") == "application/json"


def test_notify_gateway_bad_result_code(server):
    server.routes[("POST", "/frecovery/replace")] = (200, {"code": 500, "message": "fail"})
    with pytest.raises(GatewayNotifyError) as info:
        notify_gateway_replay_message(server.addr, "user", "10.0.0.5", 8080)
    assert (info.value.code, info.value.status_code) == (500, 200)


def test_notify_gateway_bad_status(server):
    server.routes[("POST", "/frecovery/replace")] = (503, {"code": 200})
    with pytest.raises(GatewayNotifyError) as info:
        notify_gateway_replay_message(server.addr, "user", "10.0.0.5", 8080)
    assert info.value.status_code == 503