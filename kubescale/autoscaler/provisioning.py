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
import re
from typing import NamedTuple
from typing import Optional
from typing import Sequence

import colorlog
import staticconf

from kubescale.autoscaler.registration import Bootstrapper
from kubescale.autoscaler.registration import HostRegistry
from kubescale.exceptions import BootstrapError
from kubescale.exceptions import CreateFailedError
from kubescale.exceptions import NameConflictError
from kubescale.exceptions import PollFailedError
from kubescale.exceptions import ProviderError
from kubescale.exceptions import ProvisioningError
from kubescale.exceptions import ProvisioningTimedOutError
from kubescale.exceptions import RegistrationError
from kubescale.interfaces.provider import ACTIVE_STATUS
from kubescale.interfaces.provider import Provider
from kubescale.interfaces.types import Instance
from kubescale.util import Clock

logger = colorlog.getLogger(__name__)
DEFAULT_POLL_INTERVAL_SECONDS = 15
DEFAULT_MAX_POLL_ATTEMPTS = 10
WORKER_NAME_PREFIX = "worker"
WORKER_NAME_EXPR = re.compile(WORKER_NAME_PREFIX + r"(\d+)")


class ProvisioningStatus(enum.Enum):
    REQUESTED = "requested"
    POLLING = "polling"
    ACTIVE = "active"
    TIMED_OUT = "timed out"
    FAILED = "failed"


class ProvisioningAttempt(NamedTuple):
    worker_name: Optional[str]
    external_id: Optional[int] = None
    status: ProvisioningStatus = ProvisioningStatus.REQUESTED
    retries_used: int = 0
    ip: Optional[str] = None
    registered: bool = False
    bootstrapped: bool = False
    cancelled: bool = False
    error: Optional[ProvisioningError] = None

    @property
    def complete(self) -> bool:
        """ True if the worker is up, in the inventory and has joined the cluster """
        return self.status == ProvisioningStatus.ACTIVE and self.registered and self.bootstrapped


def next_worker_name(instances: Sequence[Instance]) -> str:
    """ Pick the name for a new worker: one more than the highest-numbered existing worker (gaps are not reused) """
    indices = [0]
    for instance in instances:
        match = WORKER_NAME_EXPR.search(instance.name)
        if match:
            indices.append(int(match.group(1)))
    return f"{WORKER_NAME_PREFIX}{max(indices) + 1}"


class ProvisioningController:
    def __init__(
        self,
        provider: Provider,
        host_registry: HostRegistry,
        bootstrapper: Bootstrapper,
        clock: Clock,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_poll_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS,
    ) -> None:
        """ Brings up one new worker per call to provision().

        :param provider: the cloud provider to create the worker with
        :param host_registry: the inventory that the new worker is added to once it is active
        :param bootstrapper: joins the new worker to the cluster once it is in the inventory
        :param clock: used to wait between status polls; a shutdown request interrupts the wait
        :param poll_interval_seconds: how long to wait between status polls
        :param max_poll_attempts: how many status polls to make before giving up on the worker
        """
        self.provider = provider
        self.host_registry = host_registry
        self.bootstrapper = bootstrapper
        self.clock = clock
        self.poll_interval_seconds = poll_interval_seconds
        self.max_poll_attempts = max_poll_attempts

    def provision(self) -> ProvisioningAttempt:
        """ Create a new worker, wait for it to become active, then register and bootstrap it.

        Failures are recorded in the returned attempt rather than raised.  A droplet that was created is never
        destroyed here, even if a later step fails.
        """
        try:
            instances = self.provider.list_instances()
        except ProviderError as e:
            logger.error(f"Could not list existing instances: {e}")
            return ProvisioningAttempt(
                worker_name=None,
                status=ProvisioningStatus.FAILED,
                error=CreateFailedError(f"Could not list existing instances: {e}"),
            )

        attempt = self._request(ProvisioningAttempt(worker_name=next_worker_name(instances)))
        if attempt.status == ProvisioningStatus.POLLING:
            attempt = self._poll(attempt)
        if attempt.status == ProvisioningStatus.ACTIVE:
            attempt = self._register(attempt)

        self._log_outcome(attempt)
        return attempt

    def _request(self, attempt: ProvisioningAttempt) -> ProvisioningAttempt:
        logger.info(f"Spawning a new worker machine: {attempt.worker_name}")
        try:
            instance = self.provider.create_instance(attempt.worker_name)
        except NameConflictError as e:
            return attempt._replace(status=ProvisioningStatus.FAILED, error=e)
        except ProviderError as e:
            return attempt._replace(
                status=ProvisioningStatus.FAILED,
                error=CreateFailedError(f"Could not create {attempt.worker_name}: {e}"),
            )

        return attempt._replace(external_id=instance.id, status=ProvisioningStatus.POLLING)

    def _poll(self, attempt: ProvisioningAttempt) -> ProvisioningAttempt:
        while attempt.retries_used < self.max_poll_attempts:
            try:
                instance = self.provider.get_instance(attempt.external_id)
            except ProviderError as e:
                return attempt._replace(
                    status=ProvisioningStatus.FAILED,
                    retries_used=attempt.retries_used + 1,
                    error=PollFailedError(f"Could not check the status of {attempt.worker_name}: {e}"),
                )

            attempt = attempt._replace(retries_used=attempt.retries_used + 1)
            if instance.status == ACTIVE_STATUS:
                return attempt._replace(status=ProvisioningStatus.ACTIVE, ip=instance.ip)

            logger.info(
                f"Waiting for {attempt.worker_name} to become active; current status is {instance.status} "
                f"({attempt.retries_used}/{self.max_poll_attempts})"
            )
            if attempt.retries_used < self.max_poll_attempts and self.clock.wait(self.poll_interval_seconds):
                return self._cancel(attempt)

        return attempt._replace(
            status=ProvisioningStatus.TIMED_OUT,
            error=ProvisioningTimedOutError(
                f"{attempt.worker_name} (id {attempt.external_id}) was not active after "
                f"{attempt.retries_used} status checks"
            ),
        )

    def _cancel(self, attempt: ProvisioningAttempt) -> ProvisioningAttempt:
        try:
            status = self.provider.get_instance(attempt.external_id).status
        except ProviderError as e:
            status = f"unknown ({e})"
        logger.warning(
            f"Shutdown requested while waiting for {attempt.worker_name} (id {attempt.external_id}); its status "
            f"is {status}.  It has not been added to the inventory or joined to the cluster."
        )
        return attempt._replace(cancelled=True)

    def _register(self, attempt: ProvisioningAttempt) -> ProvisioningAttempt:
        try:
            instance = self.provider.get_instance(attempt.external_id)
        except ProviderError as e:
            return attempt._replace(
                error=RegistrationError(f"Could not fetch the address of {attempt.worker_name}: {e}"),
            )
        if not instance.ip:
            return attempt._replace(
                error=RegistrationError(f"{attempt.worker_name} is active but has no network address"),
            )
        logger.info(f"New worker {attempt.worker_name} is active with address {instance.ip}")

        try:
            self.host_registry.append(attempt.worker_name, instance.ip)
        except RegistrationError as e:
            return attempt._replace(ip=instance.ip, error=e)
        attempt = attempt._replace(ip=instance.ip, registered=True)

        try:
            self.bootstrapper.run()
        except BootstrapError as e:
            return attempt._replace(error=e)
        return attempt._replace(bootstrapped=True)

    def _log_outcome(self, attempt: ProvisioningAttempt) -> None:
        if attempt.complete:
            logger.info(f"{attempt.worker_name} ({attempt.ip}) has joined the cluster")
        elif attempt.cancelled:
            pass  # already logged in _cancel
        elif attempt.external_id is not None:
            logger.error(
                f"Provisioning {attempt.worker_name} ended as {attempt.status.value}: {attempt.error}; "
                f"droplet {attempt.external_id} has been left in place and may need manual cleanup"
            )
        else:
            logger.error(f"Provisioning {attempt.worker_name} failed: {attempt.error}")


def get_provisioning_controller(
    provider: Provider,
    host_registry: HostRegistry,
    bootstrapper: Bootstrapper,
    clock: Clock,
) -> ProvisioningController:
    return ProvisioningController(
        provider,
        host_registry,
        bootstrapper,
        clock,
        poll_interval_seconds=staticconf.read_float(
            "autoscaling.poll_interval_seconds",
            default=DEFAULT_POLL_INTERVAL_SECONDS,
        ),
        max_poll_attempts=staticconf.read_int("autoscaling.max_poll_attempts", default=DEFAULT_MAX_POLL_ATTEMPTS),
    )
