# Copyright 2019 Yelp Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
from typing import Any
from typing import List
from typing import Mapping
from typing import Sequence
from typing import Union

import colorlog
import requests
import staticconf
from mypy_extensions import TypedDict

from kubescale.exceptions import FetchError
from kubescale.exceptions import ParseError
from kubescale.interfaces.types import Resource
from kubescale.interfaces.types import ResourceKind
from kubescale.interfaces.types import Sample
from kubescale.metrics.units import parse_cpu
from kubescale.metrics.units import parse_memory

logger = colorlog.getLogger(__name__)
RESOURCES_PATH = "/api/v1"
METRICS_PATH = "/apis/metrics.k8s.io/v1beta1"
DEFAULT_TIMEOUT_SECONDS = 10

# JSON shapes served by the API server and the metrics API; payloads are checked against them field by
# field, and anything that does not match is rejected with a ParseError
MetadataDict = TypedDict("MetadataDict", {"name": str})
UsageDict = TypedDict("UsageDict", {"cpu": str, "memory": str})
ResourceItemDict = TypedDict("ResourceItemDict", {"metadata": MetadataDict})
ResourceListDict = TypedDict("ResourceListDict", {"items": Sequence[ResourceItemDict]})
ContainerUsageDict = TypedDict("ContainerUsageDict", {"name": str, "usage": UsageDict})
NodeUsageDict = TypedDict("NodeUsageDict", {"metadata": MetadataDict, "usage": UsageDict})
PodUsageDict = TypedDict("PodUsageDict", {"metadata": MetadataDict, "containers": Sequence[ContainerUsageDict]})
NodeUsageListDict = TypedDict("NodeUsageListDict", {"items": Sequence[NodeUsageDict]})
PodUsageListDict = TypedDict("PodUsageListDict", {"items": Sequence[PodUsageDict]})


def _get_field(obj: Any, field: str, expected_type: type, context: str) -> Any:
    if not isinstance(obj, Mapping):
        raise ParseError(f"Expected an object for {context}, got {type(obj).__name__}")
    value = obj.get(field)
    if not isinstance(value, expected_type):
        raise ParseError(f"Expected '{field}' in {context} to be {expected_type.__name__}, got {value!r}")
    return value


def _get_items(payload: Any) -> List[Any]:
    return _get_field(payload, "items", list, "response")


def _get_name(item: Union[ResourceItemDict, NodeUsageDict, PodUsageDict]) -> str:
    metadata = _get_field(item, "metadata", dict, "item")
    name = _get_field(metadata, "name", str, "metadata")
    if not name:
        raise ParseError("Resource has an empty name")
    return name


def parse_resource_list(payload: ResourceListDict, kind: ResourceKind) -> List[Resource]:
    return [Resource(name=_get_name(item), kind=kind) for item in _get_items(payload)]


def parse_node_usage(payload: NodeUsageListDict, timestamp: int) -> List[Sample]:
    samples = []
    node: NodeUsageDict
    for node in _get_items(payload):
        name = _get_name(node)
        usage: UsageDict = _get_field(node, "usage", dict, f"node {name}")
        samples.append(Sample(
            resource_name=name,
            timestamp=timestamp,
            cpu_value=parse_cpu(usage.get("cpu")),
            memory_value=parse_memory(usage.get("memory")),
        ))
    return samples


def parse_pod_usage(payload: PodUsageListDict, timestamp: int) -> List[Sample]:
    """ Pod usage is reported per container; the pod's sample is the sum over its containers """
    samples = []
    pod: PodUsageDict
    for pod in _get_items(payload):
        name = _get_name(pod)
        cpu_total, memory_total = 0.0, 0.0
        container: ContainerUsageDict
        for container in _get_field(pod, "containers", list, f"pod {name}"):
            container_usage: UsageDict = _get_field(container, "usage", dict, f"a container of pod {name}")
            cpu_total += parse_cpu(container_usage.get("cpu"))
            memory_total += parse_memory(container_usage.get("memory"))
        samples.append(Sample(resource_name=name, timestamp=timestamp, cpu_value=cpu_total, memory_value=memory_total))
    return samples


class MetricsSource:
    def __init__(self, base_url: str, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        """ Read-only client for the Kubernetes API server (usually reached through `kubectl proxy`)

        :param base_url: the address of the API server, e.g. http://localhost:8001
        :param timeout_seconds: how long to wait for each request
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def fetch_resources(self) -> List[Resource]:
        """ List every pod and node currently known to the cluster """
        return (
            parse_resource_list(self._get(f"{RESOURCES_PATH}/pods"), ResourceKind.POD)
            + parse_resource_list(self._get(f"{RESOURCES_PATH}/nodes"), ResourceKind.NODE)
        )

    def fetch_node_samples(self, timestamp: int) -> List[Sample]:
        return parse_node_usage(self._get(f"{METRICS_PATH}/nodes"), timestamp)

    def fetch_pod_samples(self, timestamp: int) -> List[Sample]:
        return parse_pod_usage(self._get(f"{METRICS_PATH}/pods"), timestamp)

    def _get(self, endpoint: str) -> Any:
        request_url = self.base_url + endpoint
        response = None
        try:
            response = requests.get(
                request_url,
                headers={"user-agent": "kubescale"},
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            log_message = f"Metrics source is unreachable:\n\n{str(e)}\nQuerying URL: {request_url}\n"
            if response is not None:
                log_message += f"Response Code: {response.status_code}\nResponse Text: {response.text}\n"
            logger.error(log_message)
            raise FetchError(f"Could not fetch {request_url}: check the logs for details") from e

        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"Response from {request_url} is not valid JSON") from e


def get_metrics_source() -> MetricsSource:
    return MetricsSource(
        staticconf.read_string("metrics_source.url"),
        timeout_seconds=staticconf.read_float("metrics_source.timeout_seconds", default=DEFAULT_TIMEOUT_SECONDS),
    )
