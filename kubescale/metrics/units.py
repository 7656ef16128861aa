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
from typing import Any

from kubescale.exceptions import ParseError

CPU_UNIT_SUFFIX = "n"
MEMORY_UNIT_SUFFIX = "Ki"
NANOCORES_PER_CORE = 1e9
BYTES_PER_KIBIBYTE = 1024
# Stored memory values have always been bytes / 1e9 (not / 2**30); changing this would make new
# rollups incomparable with the ones already in the durable store.
BYTES_PER_GIGABYTE = 1e9


def _strip_unit(value: Any, suffix: str, what: str) -> float:
    if not isinstance(value, str) or not value.endswith(suffix):
        raise ParseError(f"Expected a {what} string ending in '{suffix}', got {value!r}")
    try:
        return float(value[: -len(suffix)])
    except ValueError as e:
        raise ParseError(f"Could not parse {what} value {value!r}") from e


def parse_cpu(value: Any) -> float:
    """ Convert a metrics-server CPU reading (e.g. "500000000n") into cores """
    return _strip_unit(value, CPU_UNIT_SUFFIX, "CPU") / NANOCORES_PER_CORE


def parse_memory(value: Any) -> float:
    """ Convert a metrics-server memory reading (e.g. "1048576Ki") into "GiB" (see BYTES_PER_GIGABYTE) """
    return _strip_unit(value, MEMORY_UNIT_SUFFIX, "memory") * BYTES_PER_KIBIBYTE / BYTES_PER_GIGABYTE
