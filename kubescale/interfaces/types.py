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
from typing import NamedTuple
from typing import Optional


class ResourceKind(enum.Enum):
    POD = "POD"
    NODE = "NODE"


class Resource(NamedTuple):
    name: str
    kind: ResourceKind


class Sample(NamedTuple):
    resource_name: str
    timestamp: int
    cpu_value: float  # cores
    memory_value: float  # GiB


class HourlyRollup(NamedTuple):
    resource_name: str
    timestamp: int  # always aligned to the start of the hour
    cpu_value: float
    memory_value: float


class Instance(NamedTuple):
    id: int
    name: str
    status: str
    ip: Optional[str] = None
