from frdocker.dto import (
    CommonResponse,
    ContainerHealth,
    MSConfig,
    MSInstance,
    ReplayMessage,
)


def test_instance_from_dict():
    inst = MSInstance.from_dict(
        {
            "name": "orders",
            "ip": "172.18.0.5",
            "port": 8080,
            "address": "172.18.0.5:8080",
            "metadata": {"leaf": "true"},
        }
    )
    assert inst.name == "orders"
    assert inst.ip == "172.18.0.5"
    assert inst.port == 8080
    assert inst.metadata == {"leaf": "true"}


def test_instance_missing_fields_default():
    inst = MSInstance.from_dict({"metadata": None})
    assert inst == MSInstance()
    assert inst.metadata == {}


def test_config_from_dict():
    cfg = MSConfig.from_dict(
        {
            "services": {"ORDERS": [{"ip": "10.0.0.1", "port": 81}]},
            "gateways": {"gw": [{"ip": "10.0.0.9", "port": 90, "metadata": {"gateway": "orders"}}]},
            "groups": ["a", "b"],
        }
    )
    assert cfg.services["ORDERS"][0].ip == "10.0.0.1"
    assert cfg.gateways["gw"][0].metadata["gateway"] == "orders"
    assert cfg.groups == ["a", "b"]


def test_config_nulls():
    cfg = MSConfig.from_dict({"services": None, "gateways": {"gw": None}})
    assert cfg.services == {}
    assert cfg.gateways == {"gw": []}
    assert cfg.groups == []


def test_health():
    assert ContainerHealth.from_dict({"status": "UP"}).status == "UP"
    assert ContainerHealth.from_dict({}).status == ""


def test_replay_message_keys():
    body = ReplayMessage("orders", "10.0.0.1", 8080).to_dict()
    assert body == {
        "serviceName": "orders",
        "downInstanceHost": "10.0.0.1",
        "downInstancePort": 8080,
        "replaceInstanceHost": "",
        "replaceInstancePort": 0,
    }


def test_common_response():
    resp = CommonResponse.from_dict({"code": 200, "message": "ok", "data": [1, 2]})
    assert resp.code == 200
    assert resp.message == "ok"
    assert resp.data == [1, 2]
    assert CommonResponse.from_dict({}) == CommonResponse()