# frdocker

A monitoring and fault localization tool for microservice systems running in
Docker containers.

frdocker captures the TCP traffic on a Docker network interface and follows
each traced HTTP message (identified by its `trace-id` header) as it passes
between services and gateways. For every service container and every API it
learns a chain of processing states; the time spent in each state is scored
with the TEDA eccentricity algorithm. When a state's eccentricity exceeds its
threshold and the container then fails its health check, every gateway
container in front of the service is asked to replay the affected messages,
and the container is marked unhealthy.

Every 30 seconds the resource metrics of each container (CPU, memory,
network up/down, disk read/write) are read from the Docker daemon and the
instances of each service are scored against each other. The whole
application state is stored in MongoDB every minute, once more on exit, and
restored on start.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Requirements

- Linux: live capture uses `AF_PACKET` raw sockets, which usually needs root.
- Access to the Docker Engine API. The address is taken from `DOCKER_HOST`
  (`unix://` or `tcp://`, default `unix:///var/run/docker.sock`); with
  `DOCKER_TLS_VERIFY` set, `ca.pem`, `cert.pem` and `key.pem` are read from
  `DOCKER_CERT_PATH` (default `~/.docker`).
- A MongoDB instance for persistence.
- A service registry answering `GET /frecovery/conf` with JSON holding
  `services`, `gateways` and `groups`. An instance's metadata key `leaf`
  marks leaf services; on gateway instances the key `gateway` names the
  service the gateway fronts.
- Services exposing `GET /actuator/health` (status `UP` when healthy) and
  gateways accepting `POST /frecovery/replace`.

## Usage

```
frdocker frecovery [-r REGISTRY_ADDRESS] [-n NETWORK_INTERFACE] [-c]
                   [--mongoUri URI] [--logDir DIR]
```

Options of `frecovery`:

- `-r`, `--registryAddress`: address of the system registry
  (default `localhost:8030`).
- `-n`, `--networkInterface`: network interface of the Docker network
  (default `br-7651c77b1278`).
- `-c`, `--color`: print colored log lines.
- `--mongoUri`: MongoDB connection URI
  (default `mongodb://localhost:27017/frecovery`). The database named in the
  URI is used, `frecovery` if it names none; state goes to the `frecovery`
  collection, one document per network interface.
- `--logDir`: directory of the log file `frecovery.log`
  (default `/var/log/frecovery/`). If it cannot be created, logs go to
  standard output only.

Without a subcommand, `frdocker` prints its help. The command runs until
capture ends or it receives SIGINT, SIGTERM, SIGPIPE, SIGABRT or SIGQUIT; it
then saves its state once more and exits with status 0. It exits with
status 1 if the Docker client, the database client or the application fails.

## Library use

The building blocks can be used on their own:

- `frdocker.teda`: `calculate_with_history` and `calculate_with_sample`.
- `frdocker.packets`: `parse_ethernet_frame` decodes TCP over IPv4/IPv6
  (with VLAN tags); `PacketCapture` captures live.
- `frdocker.http_info`: `parse_http_info` and the `HttpInfo` message model.
- `frdocker.docker_client`: `DockerClient` and `stats_from_json`.
- `frdocker.registry`: registry, health check and gateway replay calls.
- `frdocker.app`: `FrecoveryApp`, the whole monitor.

```python
from frdocker.teda import calculate_with_sample

eccentricities, threshold = calculate_with_sample([[1.0, 2.0], [1.1, 2.1], [9.0, 9.0]])
outliers = [i for i, ecc in enumerate(eccentricities) if ecc > threshold]
```

## Limitations

- Live capture works on Linux only; elsewhere `PacketCapture` raises
  `OSError`.
- Only HTTP/1.1 messages whose payload carries the `trace-id` header in a
  single TCP segment are followed; containers are identified by IP address
  alone.
- The registry configuration is read once at start; instances added later
  are not picked up.