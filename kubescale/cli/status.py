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
import sys

import arrow
import staticconf

from kubescale.args import subparser
from kubescale.autoscaler.capacity import CapacityModel
from kubescale.autoscaler.capacity import CapacitySnapshot
from kubescale.autoscaler.policy import decide
from kubescale.autoscaler.policy import DEFAULT_CPU_THRESHOLD
from kubescale.autoscaler.policy import DEFAULT_MEM_THRESHOLD
from kubescale.autoscaler.policy import ScalingDecision
from kubescale.exceptions import MetricsError
from kubescale.metrics.source import get_metrics_source
from kubescale.util import any_of
from kubescale.util import color_conditions


def _usage_percent(used: float, total: float) -> str:
    if not total:
        return color_conditions("no capacity", red=lambda x: True)
    return color_conditions(
        int(used / total * 100),
        postfix="%",
        green=lambda x: x <= 50,
        yellow=lambda x: x <= 80,
        red=lambda x: x > 80,
    )


def print_status(snapshot: CapacitySnapshot, cpu_threshold: float, mem_threshold: float) -> None:
    decision = decide(snapshot, cpu_threshold, mem_threshold)
    decision_str = color_conditions(
        decision.value,
        green=any_of(ScalingDecision.NO_ACTION.value),
        yellow=any_of(ScalingDecision.SCALE_OUT.value),
    )

    print("Cluster capacity:")
    print(
        f"\tCPU: {snapshot.used_cpu:.2f} used of {snapshot.total_cpu:.1f} "
        f"({_usage_percent(snapshot.used_cpu, snapshot.total_cpu)}, threshold {cpu_threshold:.0%})"
    )
    print(
        f"\tMemory: {snapshot.used_memory:.2f} used of {snapshot.total_memory:.1f} "
        f"({_usage_percent(snapshot.used_memory, snapshot.total_memory)}, threshold {mem_threshold:.0%})"
    )
    print(f"Scaling decision: {decision_str}")


def main(args):  # pragma: no cover
    capacity_model = CapacityModel(get_metrics_source())
    try:
        snapshot = capacity_model.snapshot(arrow.utcnow().int_timestamp)
    except MetricsError as e:
        print(f"Could not determine cluster capacity: {e}")
        sys.exit(1)

    print_status(
        snapshot,
        staticconf.read_float("autoscaling.cpu_threshold", default=DEFAULT_CPU_THRESHOLD),
        staticconf.read_float("autoscaling.mem_threshold", default=DEFAULT_MEM_THRESHOLD),
    )


@subparser("status", "show the cluster's capacity and what the autoscaler would do", main)
def add_status_parser(subparser, required_named_args, optional_named_args):  # pragma: no cover
    pass
