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
from kubescale.metrics.rollup import compute_rollup
from kubescale.metrics.rollup import retention_cutoff
from kubescale.metrics.rollup import RollupEngine
from tests.conftest import HOUR_START
from tests.conftest import make_sample


@pytest.fixture
def rollup_engine(memory_store):
    return RollupEngine(memory_store)


def test_compute_rollup_no_samples():
    assert compute_rollup("worker1", [], HOUR_START) is None


def test_compute_rollup_unweighted_mean():
    samples = [
        make_sample("worker1", HOUR_START, cpu_value=1.0, memory_value=2.0),
        make_sample("worker1", HOUR_START + 5, cpu_value=3.0, memory_value=4.0),
        make_sample("worker1", HOUR_START + 3000, cpu_value=2.0, memory_value=0.0),
    ]
    assert compute_rollup("worker1", samples, HOUR_START + 17) == HourlyRollup("worker1", HOUR_START, 2.0, 2.0)


def test_retention_cutoff():
    assert retention_cutoff(HOUR_START + 10) == HOUR_START - 3601


def test_ingest(rollup_engine):
    assert rollup_engine.ingest(make_sample("worker1", HOUR_START)) is True
    assert rollup_engine.ingest(make_sample("worker1", HOUR_START)) is False
    assert rollup_engine.ingest(make_sample("worker2", HOUR_START)) is True


def test_rollup(rollup_engine, memory_store):
    for sample in [
        make_sample("worker1", HOUR_START, cpu_value=1.0, memory_value=2.0),
        make_sample("worker1", HOUR_START + 3599, cpu_value=3.0, memory_value=4.0),
        make_sample("worker1", HOUR_START + 3600, cpu_value=100.0, memory_value=100.0),
        make_sample("worker1", HOUR_START - 1, cpu_value=100.0, memory_value=100.0),
        make_sample("web-1", HOUR_START + 60, cpu_value=0.1, memory_value=0.2),
    ]:
        rollup_engine.ingest(sample)

    rollups = rollup_engine.rollup(HOUR_START + 1800)

    assert rollups == [
        HourlyRollup("web-1", HOUR_START, 0.1, 0.2),
        HourlyRollup("worker1", HOUR_START, 2.0, 3.0),
    ]
    assert memory_store.get_rollups("worker1", 0, HOUR_START * 2) == [HourlyRollup("worker1", HOUR_START, 2.0, 3.0)]


def test_rollup_is_idempotent(rollup_engine, memory_store):
    rollup_engine.ingest(make_sample("worker1", HOUR_START, cpu_value=1.0, memory_value=1.0))
    first = rollup_engine.rollup(HOUR_START)
    second = rollup_engine.rollup(HOUR_START)
    assert first == second
    assert len(memory_store.get_rollups("worker1", HOUR_START, HOUR_START)) == 1


def test_rollup_no_samples(rollup_engine, memory_store):
    assert rollup_engine.rollup(HOUR_START) == []
    assert memory_store.get_rollups("worker1", 0, HOUR_START * 2) == []


def test_rollup_pending_skips_open_hour(rollup_engine, memory_store):
    for ts in (HOUR_START - 7200, HOUR_START - 3600, HOUR_START):
        rollup_engine.ingest(make_sample("worker1", ts))

    rollups = rollup_engine.rollup_pending(HOUR_START + 30)

    assert [r.timestamp for r in rollups] == [HOUR_START - 7200, HOUR_START - 3600]
    assert memory_store.get_rollups("worker1", HOUR_START, HOUR_START) == []


def test_flush_keeps_last_closed_hour(rollup_engine, memory_store):
    now = HOUR_START + 10
    for ts in (HOUR_START - 3601, HOUR_START - 3600, HOUR_START):
        rollup_engine.ingest(make_sample("worker1", ts))

    assert rollup_engine.flush(retention_cutoff(now), now) == 1
    assert [s.timestamp for s in memory_store.get_samples("worker1", 0, now)] == [HOUR_START - 3600, HOUR_START]


@pytest.mark.parametrize("cutoff", [HOUR_START - 3600, HOUR_START - 3599, HOUR_START, HOUR_START + 10])
def test_flush_refuses_recent_cutoff(rollup_engine, memory_store, cutoff):
    rollup_engine.ingest(make_sample("worker1", HOUR_START - 3600))
    with pytest.raises(ValueError):
        rollup_engine.flush(cutoff, HOUR_START)
    assert len(memory_store.get_samples("worker1", 0, HOUR_START)) == 1


def test_flush_at_retention_cutoff_keeps_hour_that_just_closed(rollup_engine, memory_store):
    for ts in (HOUR_START - 3601, HOUR_START - 3600, HOUR_START - 1):
        rollup_engine.ingest(make_sample("worker1", ts))

    assert rollup_engine.flush(HOUR_START - 3601, HOUR_START) == 1
    rollups = rollup_engine.rollup(HOUR_START - 3600)

    assert rollups == [HourlyRollup("worker1", HOUR_START - 3600, 0.5, 1.0)]
    assert memory_store.get_rollups("worker1", HOUR_START - 3600, HOUR_START - 3600) == rollups


def test_rollup_pending_only_scans_newly_closed_hours(rollup_engine, memory_store):
    rollup_engine.ingest(make_sample("worker1", HOUR_START - 3600))
    assert [r.timestamp for r in rollup_engine.rollup_pending(HOUR_START + 30)] == [HOUR_START - 3600]

    rollup_engine.ingest(make_sample("worker1", HOUR_START + 60))
    with mock.patch.object(memory_store, "get_samples", wraps=memory_store.get_samples) as mock_get_samples:
        assert rollup_engine.rollup_pending(HOUR_START + 60) == []
        assert mock_get_samples.call_count == 0

        rollups = rollup_engine.rollup_pending(HOUR_START + 3630)

    assert [r.timestamp for r in rollups] == [HOUR_START]
    assert mock_get_samples.call_args_list[0] == mock.call(None, HOUR_START, HOUR_START + 3599)


def test_rollup_pending_retries_after_store_failure(rollup_engine, memory_store):
    rollup_engine.ingest(make_sample("worker1", HOUR_START - 3600))
    with mock.patch.object(memory_store, "upsert_rollup", side_effect=PersistenceError("table is gone")):
        with pytest.raises(PersistenceError):
            rollup_engine.rollup_pending(HOUR_START + 30)

    assert [r.timestamp for r in rollup_engine.rollup_pending(HOUR_START + 60)] == [HOUR_START - 3600]
