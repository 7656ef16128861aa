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
from abc import ABCMeta
from abc import abstractmethod
from typing import List
from typing import Optional

from kubescale.interfaces.types import HourlyRollup
from kubescale.interfaces.types import Sample


class SampleStore(metaclass=ABCMeta):
    """ Persistent storage for metrics, split into two buckets:

    - the transient bucket holds instant samples for the open hour and the last closed hour, and is
      flushed after the samples have been rolled up;
    - the durable bucket holds one hourly rollup per resource per hour, and is retained.

    Both buckets are unique on (resource_name, timestamp).  Implementations must be safe to share
    between the control loop and the query server.
    """

    @abstractmethod
    def insert_sample(self, sample: Sample) -> None:
        """ Add a sample to the transient bucket

        :raises DuplicateKeyError: if a sample with the same resource name and timestamp is already stored
        :raises PersistenceError: if the store could not be written to
        """
        pass

    @abstractmethod
    def upsert_rollup(self, rollup: HourlyRollup) -> None:
        """ Write a rollup to the durable bucket, replacing any rollup with the same key """
        pass

    @abstractmethod
    def get_samples(self, resource_name: Optional[str], start: int, end: int) -> List[Sample]:
        """ Get transient samples with start <= timestamp <= end, sorted by timestamp

        :param resource_name: only return samples for this resource; if None, return samples for every resource
        """
        pass

    @abstractmethod
    def get_rollups(self, resource_name: str, start: int, end: int) -> List[HourlyRollup]:
        """ Get durable rollups for a resource with start <= timestamp <= end, sorted by timestamp """
        pass

    @abstractmethod
    def flush_samples(self, cutoff: int) -> int:
        """ Delete every transient sample with timestamp <= cutoff

        :returns: the number of samples removed
        """
        pass
