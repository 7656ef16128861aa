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
import threading
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple

from kubescale.exceptions import DuplicateKeyError
from kubescale.interfaces.sample_store import SampleStore
from kubescale.interfaces.types import HourlyRollup
from kubescale.interfaces.types import Sample


class MemorySampleStore(SampleStore):
    """ A process-local SampleStore; nothing survives a restart, so this is only for local runs and tests """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._samples: Dict[Tuple[str, int], Sample] = {}
        self._rollups: Dict[Tuple[str, int], HourlyRollup] = {}

    def insert_sample(self, sample: Sample) -> None:
        key = (sample.resource_name, sample.timestamp)
        with self._lock:
            if key in self._samples:
                raise DuplicateKeyError(f"A sample for {sample.resource_name} at {sample.timestamp} already exists")
            self._samples[key] = sample

    def upsert_rollup(self, rollup: HourlyRollup) -> None:
        with self._lock:
            self._rollups[(rollup.resource_name, rollup.timestamp)] = rollup

    def get_samples(self, resource_name: Optional[str], start: int, end: int) -> List[Sample]:
        with self._lock:
            samples = [
                s for s in self._samples.values()
                if (resource_name is None or s.resource_name == resource_name) and start <= s.timestamp <= end
            ]
        return sorted(samples, key=lambda s: (s.timestamp, s.resource_name))

    def get_rollups(self, resource_name: str, start: int, end: int) -> List[HourlyRollup]:
        with self._lock:
            rollups = [
                r for r in self._rollups.values()
                if r.resource_name == resource_name and start <= r.timestamp <= end
            ]
        return sorted(rollups, key=lambda r: r.timestamp)

    def flush_samples(self, cutoff: int) -> int:
        with self._lock:
            old_keys = [key for key, sample in self._samples.items() if sample.timestamp <= cutoff]
            for key in old_keys:
                del self._samples[key]
        return len(old_keys)
