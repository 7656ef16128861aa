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
import signal
import sys
from typing import Optional

import colorlog
import staticconf
import staticconf.errors

from kubescale.args import add_dry_run_arg
from kubescale.args import subparser
from kubescale.autoscaler.autoscaler import Autoscaler
from kubescale.autoscaler.autoscaler import get_autoscaler
from kubescale.autoscaler.capacity import CapacityModel
from kubescale.autoscaler.provisioning import get_provisioning_controller
from kubescale.autoscaler.registration import get_bootstrapper
from kubescale.autoscaler.registration import get_host_registry
from kubescale.digital_ocean.provider import get_provider
from kubescale.exceptions import ConfigError
from kubescale.exceptions import MetricsError
from kubescale.exceptions import PersistenceError
from kubescale.exceptions import ProvisioningError
from kubescale.metrics.rollup import retention_cutoff
from kubescale.metrics.rollup import RollupEngine
from kubescale.metrics.source import get_metrics_source
from kubescale.metrics.source import MetricsSource
from kubescale.metrics.store import get_sample_store
from kubescale.util import Clock
from kubescale.util import format_timestamp
from kubescale.util import splay_event_time

logger = colorlog.getLogger(__name__)
DEFAULT_RUN_INTERVAL_SECONDS = 30
DEFAULT_AUTOSCALE_INTERVAL_SECONDS = 300


class ControlLoop:
    def __init__(
        self,
        metrics_source: MetricsSource,
        rollup_engine: RollupEngine,
        autoscaler: Autoscaler,
        clock: Clock,
        run_interval_seconds: int = DEFAULT_RUN_INTERVAL_SECONDS,
        autoscale_interval_seconds: int = DEFAULT_AUTOSCALE_INTERVAL_SECONDS,
        dry_run: bool = False,
    ) -> None:
        """ Samples the cluster's usage, maintains the hourly rollups and scales the cluster out when needed.

        Only one control loop may run against a cluster at a time: two loops would both provision workers.

        :param metrics_source: where usage samples come from
        :param rollup_engine: records samples and maintains the rollups
        :param autoscaler: decides whether to add a worker, and adds it
        :param clock: the time source; its shutdown event stops the loop
        :param run_interval_seconds: how often to sample usage
        :param autoscale_interval_seconds: how often to evaluate whether to scale out
        :param dry_run: if True, log scale-out decisions instead of acting on them
        """
        self.metrics_source = metrics_source
        self.rollup_engine = rollup_engine
        self.autoscaler = autoscaler
        self.clock = clock
        self.run_interval_seconds = run_interval_seconds
        self.autoscale_interval_seconds = autoscale_interval_seconds
        self.dry_run = dry_run
        self.last_autoscale_time: Optional[int] = None

    @property
    def running(self) -> bool:
        return not self.clock.cancelled

    def run(self) -> None:
        logger.info("Starting the kubescale control loop")
        while self.running:
            try:
                self.run_once(self.clock.now())
            except Exception as e:
                logger.exception(f"Control loop cycle failed: {e}")

            if self.clock.wait(splay_event_time(self.run_interval_seconds, "kubescale", self.clock.now())):
                break
        logger.info("Control loop stopped")

    def run_once(self, now: int) -> None:
        """ Run one cycle: ingest -> roll up closed hours -> flush -> (periodically) autoscale """
        logger.info(f"Control loop cycle starting at {format_timestamp(now)}")
        try:
            self.ingest(now)
            self.rollup_engine.rollup_pending(now)
            self.rollup_engine.flush(retention_cutoff(now), now)
        except PersistenceError as e:
            logger.error(f"Metrics store failure, skipping the rest of this cycle: {e}")
            return

        if self._autoscale_due(now):
            self.last_autoscale_time = now
            self.autoscale(now)

    def ingest(self, now: int) -> int:
        """ Fetch node and pod usage and record it in the transient bucket

        :returns: the number of newly-recorded samples
        :raises PersistenceError: if the store failed
        """
        try:
            samples = self.metrics_source.fetch_node_samples(now) + self.metrics_source.fetch_pod_samples(now)
        except MetricsError as e:
            logger.warning(f"Could not fetch usage metrics, skipping ingestion: {e}")
            return 0

        recorded = sum(1 for sample in samples if self.rollup_engine.ingest(sample))
        logger.info(f"Recorded {recorded} of {len(samples)} samples")
        return recorded

    def autoscale(self, now: int) -> None:
        try:
            self.autoscaler.run(now, dry_run=self.dry_run)
        except MetricsError as e:
            logger.warning(f"Could not determine cluster capacity, skipping autoscaling: {e}")
        except ProvisioningError as e:
            logger.error(f"Scale-out attempt did not complete: {e}")

    def _autoscale_due(self, now: int) -> bool:
        return self.last_autoscale_time is None or now - self.last_autoscale_time >= self.autoscale_interval_seconds


def build_control_loop(clock: Clock, dry_run: bool = False) -> ControlLoop:
    metrics_source = get_metrics_source()
    provisioning_controller = get_provisioning_controller(
        get_provider(),
        get_host_registry(),
        get_bootstrapper(),
        clock,
    )
    return ControlLoop(
        metrics_source,
        RollupEngine(get_sample_store(ensure_tables=True)),
        get_autoscaler(CapacityModel(metrics_source), provisioning_controller),
        clock,
        run_interval_seconds=staticconf.read_int(
            "batches.control_loop.run_interval_seconds",
            default=DEFAULT_RUN_INTERVAL_SECONDS,
        ),
        autoscale_interval_seconds=staticconf.read_int(
            "batches.control_loop.autoscale_interval_seconds",
            default=DEFAULT_AUTOSCALE_INTERVAL_SECONDS,
        ),
        dry_run=dry_run,
    )


def main(args):  # pragma: no cover
    clock = Clock()
    try:
        control_loop = build_control_loop(clock, dry_run=args.dry_run)
    except (ConfigError, staticconf.errors.ConfigurationError) as e:
        logger.critical(f"Could not start the control loop: {e}")
        sys.exit(1)

    def shutdown(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        clock.shutdown()

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)
    control_loop.run()


@subparser("run", "sample cluster usage and scale the cluster out when needed", main)
def add_run_parser(subparser, required_named_args, optional_named_args):  # pragma: no cover
    add_dry_run_arg(optional_named_args)
