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
from typing import List
from typing import Optional

import pytest
import staticconf.testing

from kubescale.config import CREDENTIALS_NAMESPACE
from kubescale.interfaces.types import Sample
from kubescale.metrics.memory_store import MemorySampleStore
from kubescale.util import Clock

# 2017-07-14 01:00:00 UTC, the start of an hour
HOUR_START = 1499994000


class FakeClock(Clock):
    """ A clock that never sleeps: waiting just moves "now" forward """

    def __init__(self, now: int = HOUR_START, interrupt_after: Optional[int] = None) -> None:
        super().__init__()
        self.time = now
        self.interrupt_after = interrupt_after
        self.waits: List[float] = []

    def now(self) -> int:
        return self.time

    def wait(self, seconds: float) -> bool:
        self.waits.append(seconds)
        self.time += int(seconds)
        if self.interrupt_after is not None and len(self.waits) >= self.interrupt_after:
            self.shutdown()
        return self.cancelled


@pytest.fixture(autouse=True)
def main_kubescale_config():
    config = {
        "metrics_source": {
            "url": "http://localhost:8001",
            "timeout_seconds": 5,
        },
        "store": {
            "backend": "dynamodb",
            "region": "us-west-2",
            "endpoint_url": "http://localhost:8000",
        },
        "autoscaling": {
            "cpu_threshold": 0.5,
            "mem_threshold": 0.5,
            "poll_interval_seconds": 15,
            "max_poll_attempts": 10,
        },
        "batches": {
            "control_loop": {
                "run_interval_seconds": 30,
                "autoscale_interval_seconds": 300,
            },
        },
        "droplet": {
            "region": "fra1",
            "size": "s-2vcpu-4gb",
            "image": "ubuntu-18-04-x64",
            "ssh_keys": [12345],
            "tags": ["kubescale"],
        },
        "cluster": {
            "hosts_file": "/tmp/kube-cluster/hosts",
            "playbook_directory": "/tmp/kube-cluster",
            "playbooks": ["initial.yml", "kube-dependencies.yml", "workers.yml"],
        },
        "webapp": {
            "host": "127.0.0.1",
            "port": 3001,
        },
    }
    with staticconf.testing.MockConfiguration(config):
        yield


@pytest.fixture(autouse=True)
def mock_digital_ocean_credentials():
    with staticconf.testing.MockConfiguration({"token": "not-a-real-token"}, namespace=CREDENTIALS_NAMESPACE):
        yield


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    return MemorySampleStore()


@pytest.fixture
def node_usage_payload():
    return {
        "kind": "NodeMetricsList",
        "items": [
            {
                "metadata": {"name": "k8s-master"},
                "timestamp": "2017-07-14T01:00:00Z",
                "usage": {"cpu": "250000000n", "memory": "1000000Ki"},
            },
            {
                "metadata": {"name": "worker1"},
                "timestamp": "2017-07-14T01:00:00Z",
                "usage": {"cpu": "500000000n", "memory": "500000Ki"},
            },
        ],
    }


@pytest.fixture
def pod_usage_payload():
    return {
        "kind": "PodMetricsList",
        "items": [
            {
                "metadata": {"name": "web-1", "namespace": "default"},
                "containers": [
                    {"name": "app", "usage": {"cpu": "100000000n", "memory": "200000Ki"}},
                    {"name": "sidecar", "usage": {"cpu": "50000000n", "memory": "100000Ki"}},
                ],
            },
            {
                "metadata": {"name": "idle-1", "namespace": "default"},
                "containers": [],
            },
        ],
    }


def make_sample(resource_name: str, timestamp: int, cpu_value: float = 0.5, memory_value: float = 1.0) -> Sample:
    return Sample(resource_name=resource_name, timestamp=timestamp, cpu_value=cpu_value, memory_value=memory_value)
