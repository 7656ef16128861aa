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
from unittest import mock

import pytest

from kubescale.exceptions import PersistenceError
from kubescale.interfaces.types import HourlyRollup
from kubescale.metrics.query import MetricsQueryService
from tests.conftest import FakeClock
from tests.conftest import HOUR_START
from tests.conftest import make_sample


@pytest.fixture
def query_service(memory_store):
    memory_store.upsert_rollup(HourlyRollup("worker1", HOUR_START - 7200, 0.1, 0.2))
    memory_store.upsert_rollup(HourlyRollup("worker1", HOUR_START - 3600, 0.3, 0.4))
    memory_store.upsert_rollup(HourlyRollup("worker2", HOUR_START - 3600, 0.9, 0.9))
    memory_store.insert_sample(make_sample("worker1", HOUR_START + 60, cpu_value=0.5, memory_value=1.0))
    memory_store.insert_sample(make_sample("worker1", HOUR_START + 120, cpu_value=0.7, memory_value=2.0))
    return MetricsQueryService(memory_store, FakeClock(HOUR_START + 600))


def test_query_includes_live_rollup(query_service):
    points = query_service.query("worker1", HOUR_START - 7200, HOUR_START + 3599)
    assert points == [
        HourlyRollup("worker1", HOUR_START - 7200, 0.1, 0.2),
        HourlyRollup("worker1", HOUR_START - 3600, 0.3, 0.4),
        HourlyRollup("worker1", HOUR_START, pytest.approx(0.6), pytest.approx(1.5)),
    ]


def test_query_closed_hours_only(query_service):
    points = query_service.query("worker1", HOUR_START - 7200, HOUR_START - 1)
    assert [p.timestamp for p in points] == [HOUR_START - 7200, HOUR_START - 3600]


def test_query_range_ends_at_open_hour_start(query_service):
    points = query_service.query("worker1", HOUR_START - 3600, HOUR_START)
    assert [p.timestamp for p in points] == [HOUR_START - 3600, HOUR_START]


def test_query_range_after_open_hour(query_service):
    assert query_service.query("worker1", HOUR_START + 3600, HOUR_START + 7200) == []


def test_query_no_live_samples(query_service):
    points = query_service.query("worker2", HOUR_START - 7200, HOUR_START + 3599)
    assert points == [HourlyRollup("worker2", HOUR_START - 3600, 0.9, 0.9)]


def test_query_no_duplicate_open_hour(query_service, memory_store):
    # a rollup stored for the open hour is shadowed by the live one
    memory_store.upsert_rollup(HourlyRollup("worker1", HOUR_START, 0.0, 0.0))
    points = query_service.query("worker1", HOUR_START, HOUR_START + 3599)
    assert len(points) == 1
    assert points[0].cpu_value == pytest.approx(0.6)


def test_query_explicit_now(query_service):
    # an hour later, the samples above belong to a closed (but not yet rolled-up) hour
    assert query_service.query("worker1", HOUR_START, HOUR_START + 7199, now=HOUR_START + 3600) == []


def test_query_store_failure():
    store = mock.Mock()
    store.get_rollups.side_effect = PersistenceError("table is gone")
    with pytest.raises(PersistenceError):
        MetricsQueryService(store, FakeClock()).query("worker1", HOUR_START, HOUR_START)


def test_query_reversed_range_in_open_hour(query_service, memory_store):
    with mock.patch.object(memory_store, "get_samples", wraps=memory_store.get_samples) as mock_get_samples:
        assert query_service.query("worker1", HOUR_START + 500, HOUR_START + 100) == []
    assert mock_get_samples.call_count == 0


def test_query_reversed_range_over_closed_hours(query_service):
    assert query_service.query("worker1", HOUR_START - 1, HOUR_START - 7200) == []
