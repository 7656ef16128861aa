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
from collections import defaultdict
from typing import Dict
from typing import List
from typing import Optional
from typing import Sequence

import colorlog

from kubescale.exceptions import DuplicateKeyError
from kubescale.interfaces.sample_store import SampleStore
from kubescale.interfaces.types import HourlyRollup
from kubescale.interfaces.types import Sample
from kubescale.util import floor_hour
from kubescale.util import format_timestamp
from kubescale.util import SECONDS_PER_HOUR

logger = colorlog.getLogger(__name__)


def compute_rollup(resource_name: str, samples: Sequence[Sample], hour_start: int) -> Optional[HourlyRollup]:
    """ Average a resource's samples for one hour; every sample counts once, regardless of sampling cadence

    :returns: the rollup, or None if there are no samples to average
    """
    if not samples:
        return None
    return HourlyRollup(
        resource_name=resource_name,
        timestamp=floor_hour(hour_start),
        cpu_value=sum(s.cpu_value for s in samples) / len(samples),
        memory_value=sum(s.memory_value for s in samples) / len(samples),
    )


def retention_cutoff(now: int) -> int:
    """ The newest timestamp that may be flushed: everything before the last closed hour """
    return floor_hour(now) - SECONDS_PER_HOUR - 1


class RollupEngine:
    def __init__(self, store: SampleStore) -> None:
        self.store = store
        # start of the newest closed hour that rollup_pending has finished with
        self.last_rolled_up_hour: Optional[int] = None

    def ingest(self, sample: Sample) -> bool:
        """ Record a sample in the transient bucket

        :returns: True if the sample was newly recorded, False if it had already been recorded
        """
        try:
            self.store.insert_sample(sample)
        except DuplicateKeyError:
            logger.debug(f"Sample for {sample.resource_name} at {sample.timestamp} was already recorded")
            return False
        return True

    def rollup(self, hour_start: int) -> List[HourlyRollup]:
        """ Write one rollup per resource for the hour starting at hour_start.  Safe to re-run: the rollup
        for a given resource and hour is overwritten with the same value.

        :param hour_start: any timestamp in the hour to roll up (it is aligned to the start of the hour)
        :returns: the rollups that were written
        """
        hour_start = floor_hour(hour_start)
        samples_by_resource: Dict[str, List[Sample]] = defaultdict(list)
        for sample in self.store.get_samples(None, hour_start, hour_start + SECONDS_PER_HOUR - 1):
            samples_by_resource[sample.resource_name].append(sample)

        rollups = []
        for resource_name, samples in sorted(samples_by_resource.items()):
            rollup = compute_rollup(resource_name, samples, hour_start)
            if rollup:
                self.store.upsert_rollup(rollup)
                rollups.append(rollup)

        logger.info(f"Rolled up {len(rollups)} resources for the hour starting at {format_timestamp(hour_start)}")
        return rollups

    def rollup_pending(self, now: int) -> List[HourlyRollup]:
        """ Roll up every closed hour that still has samples in the transient bucket

        The first call scans the whole transient bucket so that hours missed while nothing was running get
        rolled up; after that, only hours that closed since the previous call are scanned.
        """
        open_hour_start = floor_hour(now)
        last_closed_hour = open_hour_start - SECONDS_PER_HOUR
        if self.last_rolled_up_hour is not None and self.last_rolled_up_hour >= last_closed_hour:
            return []

        scan_start = 0 if self.last_rolled_up_hour is None else self.last_rolled_up_hour + SECONDS_PER_HOUR
        pending_hours = sorted({
            floor_hour(sample.timestamp)
            for sample in self.store.get_samples(None, scan_start, open_hour_start - 1)
        })
        rollups = []
        for hour_start in pending_hours:
            rollups.extend(self.rollup(hour_start))

        self.last_rolled_up_hour = last_closed_hour
        return rollups

    def flush(self, cutoff: int, now: int) -> int:
        """ Remove samples with timestamp <= cutoff from the transient bucket.

        The last closed hour is kept until the next hour closes, so that its rollup has had the chance
        to run; flushing it earlier would lose data permanently.

        :raises ValueError: if cutoff is later than retention_cutoff(now)
        """
        if cutoff > retention_cutoff(now):
            raise ValueError(
                f"Refusing to flush samples up to {cutoff}: the newest flushable timestamp at {now} "
                f"is {retention_cutoff(now)}"
            )

        flushed = self.store.flush_samples(cutoff)
        logger.info(f"Flushed {flushed} samples older than {format_timestamp(cutoff)}")
        return flushed
