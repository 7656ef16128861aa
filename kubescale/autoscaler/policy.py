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
import enum

from kubescale.autoscaler.capacity import CapacitySnapshot

DEFAULT_CPU_THRESHOLD = 0.5
DEFAULT_MEM_THRESHOLD = 0.5


class ScalingDecision(enum.Enum):
    SCALE_OUT = "scale out"
    NO_ACTION = "no action"


def decide(
    snapshot: CapacitySnapshot,
    cpu_threshold: float = DEFAULT_CPU_THRESHOLD,
    mem_threshold: float = DEFAULT_MEM_THRESHOLD,
) -> ScalingDecision:
    """ Scale out when either resource's usage is over its threshold fraction of the cluster total

    Memory usage is compared against total memory capacity.
    """
    if (
        snapshot.used_cpu > cpu_threshold * snapshot.total_cpu
        or snapshot.used_memory > mem_threshold * snapshot.total_memory
    ):
        return ScalingDecision.SCALE_OUT
    return ScalingDecision.NO_ACTION
