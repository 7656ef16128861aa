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

import colorlog

from kubescale.interfaces.sample_store import SampleStore
from kubescale.interfaces.types import HourlyRollup
from kubescale.metrics.rollup import compute_rollup
from kubescale.util import Clock
from kubescale.util import floor_hour
from kubescale.util import SECONDS_PER_HOUR

logger = colorlog.getLogger(__name__)


class MetricsQueryService:
    def __init__(self, store: SampleStore, clock: Optional[Clock] = None) -> None:
        self.store = store
        self.clock = clock or Clock()

    def query(self, resource_name: str, start: int, end: int, now: Optional[int] = None) -> List[HourlyRollup]:
        """ Get the hourly metrics for a resource, oldest first

        The open hour has no stored rollup yet; if the requested range reaches into it, a rollup is computed
        on the fly from its transient samples and returned as the final point.

        :param resource_name: the pod or node to get metrics for
        :param start: first timestamp of the range (inclusive)
        :param end: last timestamp of the range (inclusive)
        :param now: the current time (defaults to the clock's time)
        """
        if start > end:
            return []

        now = self.clock.now() if now is None else now
        open_hour_start = floor_hour(now)

        # anything stored at or after the open hour would collide with the live rollup
        points = self.store.get_rollups(resource_name, start, min(end, open_hour_start - 1))

        if end >= open_hour_start and start < open_hour_start + SECONDS_PER_HOUR:
            samples = self.store.get_samples(resource_name, open_hour_start, open_hour_start + SECONDS_PER_HOUR - 1)
            live_rollup = compute_rollup(resource_name, samples, open_hour_start)
            if live_rollup:
                points.append(live_rollup)
            else:
                logger.debug(f"No samples for {resource_name} in the open hour yet")

        return points
