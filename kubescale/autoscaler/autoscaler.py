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
from typing import Optional

import colorlog
import staticconf

from kubescale.autoscaler.capacity import CapacityModel
from kubescale.autoscaler.policy import decide
from kubescale.autoscaler.policy import DEFAULT_CPU_THRESHOLD
from kubescale.autoscaler.policy import DEFAULT_MEM_THRESHOLD
from kubescale.autoscaler.policy import ScalingDecision
from kubescale.autoscaler.provisioning import ProvisioningAttempt
from kubescale.autoscaler.provisioning import ProvisioningController
from kubescale.util import format_timestamp

logger = colorlog.getLogger(__name__)


class Autoscaler:
    def __init__(
        self,
        capacity_model: CapacityModel,
        provisioning_controller: ProvisioningController,
        cpu_threshold: float = DEFAULT_CPU_THRESHOLD,
        mem_threshold: float = DEFAULT_MEM_THRESHOLD,
    ) -> None:
        """ Class containing the core logic for scaling the cluster out

        :param capacity_model: computes how much of the cluster is in use
        :param provisioning_controller: brings up new workers
        :param cpu_threshold: the fraction of total CPU that may be used before scaling out
        :param mem_threshold: the fraction of total memory that may be used before scaling out
        """
        self.capacity_model = capacity_model
        self.provisioning_controller = provisioning_controller
        self.cpu_threshold = cpu_threshold
        self.mem_threshold = mem_threshold

    def run(self, now: int, dry_run: bool = False) -> Optional[ProvisioningAttempt]:
        """ Do a single check to scale the cluster out if necessary.

        :param now: the current timestamp
        :param dry_run: if True, don't create any workers, just log what would happen
        :returns: the provisioning attempt, if one was made
        :raises MetricsError: if the cluster's usage could not be determined
        :raises ProvisioningError: if a provisioning attempt was made and did not complete
        """
        logger.info(f"Autoscaling run starting at {format_timestamp(now)}")
        snapshot = self.capacity_model.snapshot(now)
        decision = decide(snapshot, self.cpu_threshold, self.mem_threshold)
        logger.info(
            f"CPU: {snapshot.used_cpu} used of {snapshot.total_cpu} (threshold {self.cpu_threshold}); "
            f"memory: {snapshot.used_memory} used of {snapshot.total_memory} (threshold {self.mem_threshold}); "
            f"decision: {decision.value}"
        )

        if decision == ScalingDecision.NO_ACTION:
            return None
        elif dry_run:
            logger.warning("Would have added a new worker to the cluster (dry run)")
            return None

        attempt = self.provisioning_controller.provision()
        if attempt.error:
            raise attempt.error
        return attempt


def get_autoscaler(capacity_model: CapacityModel, provisioning_controller: ProvisioningController) -> Autoscaler:
    return Autoscaler(
        capacity_model,
        provisioning_controller,
        cpu_threshold=staticconf.read_float("autoscaling.cpu_threshold", default=DEFAULT_CPU_THRESHOLD),
        mem_threshold=staticconf.read_float("autoscaling.mem_threshold", default=DEFAULT_MEM_THRESHOLD),
    )
