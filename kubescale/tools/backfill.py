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
import random
import sys
from typing import List
from typing import Sequence

import arrow
import colorlog

from kubescale.args import subparser
from kubescale.exceptions import MetricsError
from kubescale.interfaces.sample_store import SampleStore
from kubescale.interfaces.types import HourlyRollup
from kubescale.interfaces.types import Resource
from kubescale.metrics.source import get_metrics_source
from kubescale.metrics.store import get_sample_store
from kubescale.util import floor_hour
from kubescale.util import SECONDS_PER_HOUR

logger = colorlog.getLogger(__name__)
BACKFILL_SECONDS = 14 * 24 * SECONDS_PER_HOUR


def random_rollup(resource_name: str, timestamp: int, rng: random.Random) -> HourlyRollup:
    return HourlyRollup(
        resource_name=resource_name,
        timestamp=timestamp,
        cpu_value=rng.random(),
        memory_value=rng.randint(0, 1) + rng.randint(0, 99) / 100,
    )


def backfill_rollups(
    store: SampleStore,
    resources: Sequence[Resource],
    now: int,
    rng: random.Random,
) -> List[HourlyRollup]:
    """ Write two weeks of synthetic hourly rollups for each resource, ending with the last closed hour

    Existing rollups in that range are overwritten.

    :returns: the rollups that were written
    """
    last_closed_hour = floor_hour(now) - SECONDS_PER_HOUR
    written = []
    for resource in resources:
        for timestamp in range(last_closed_hour - BACKFILL_SECONDS, last_closed_hour + 1, SECONDS_PER_HOUR):
            rollup = random_rollup(resource.name, timestamp, rng)
            store.upsert_rollup(rollup)
            written.append(rollup)
        logger.info(f"Backfilled {resource.name} ({resource.kind.value})")
    return written


def main(args):  # pragma: no cover
    try:
        resources = get_metrics_source().fetch_resources()
    except MetricsError as e:
        logger.critical(f"Could not list the cluster's resources: {e}")
        sys.exit(1)

    now = arrow.utcnow().int_timestamp
    seed = args.seed if args.seed is not None else now
    logger.info(f"Random seed: {seed}")

    store = get_sample_store(ensure_tables=True)
    written = backfill_rollups(store, resources, now, random.Random(seed))
    logger.info(f"Wrote {len(written)} hourly rollups for {len(resources)} resources")


@subparser("backfill", "seed two weeks of synthetic hourly metrics for every resource", main)
def add_backfill_parser(subparser, required_named_args, optional_named_args):  # pragma: no cover
    optional_named_args.add_argument(
        "--seed",
        type=int,
        default=None,
        help="seed value for the random number generator (defaults to the current time)",
    )
