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
from typing import NamedTuple
from typing import Sequence

import colorlog

from kubescale.interfaces.types import Sample
from kubescale.metrics.source import MetricsSource

logger = colorlog.getLogger(__name__)
# Machine sizes are not looked up from the provider; these unit counts approximate the droplet sizes
# used for each role.
WORKER_CAPACITY_UNITS = 1.0
MASTER_CAPACITY_UNITS = 2.0


class CapacitySnapshot(NamedTuple):
    total_cpu: float = 0
    total_memory: float = 0
    used_cpu: float = 0
    used_memory: float = 0


def node_capacity_units(node_name: str) -> float:
    if "worker" in node_name:
        return WORKER_CAPACITY_UNITS
    elif "master" in node_name:
        return MASTER_CAPACITY_UNITS
    return 0


def snapshot_from_samples(node_samples: Sequence[Sample]) -> CapacitySnapshot:
    total_units = sum(node_capacity_units(sample.resource_name) for sample in node_samples)
    return CapacitySnapshot(
        total_cpu=total_units,
        total_memory=total_units,
        used_cpu=round(sum(sample.cpu_value for sample in node_samples), 2),
        used_memory=round(sum(sample.memory_value for sample in node_samples), 2),
    )


class CapacityModel:
    def __init__(self, metrics_source: MetricsSource) -> None:
        self.metrics_source = metrics_source

    def snapshot(self, now: int) -> CapacitySnapshot:
        """ Compute the cluster's total and used capacity from the nodes' current usage

        :param now: timestamp to attach to the samples that are fetched
        :raises MetricsError: if node usage could not be fetched
        """
        snapshot = snapshot_from_samples(self.metrics_source.fetch_node_samples(now))
        logger.info(f"Current cluster capacity: {snapshot}")
        return snapshot
