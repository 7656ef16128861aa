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
import pytest
from pyramid.registry import Registry
from pyramid.testing import DummyRequest
from webtest import TestApp

from kubescale.interfaces.types import HourlyRollup
from kubescale.metrics.query import MetricsQueryService
from kubescale.webapp import create_application
from tests.conftest import FakeClock
from tests.conftest import HOUR_START
from tests.conftest import make_sample


@pytest.fixture
def query_service(memory_store):
    memory_store.upsert_rollup(HourlyRollup("worker1", HOUR_START - 3600, 0.25, 0.5))
    memory_store.insert_sample(make_sample("worker1", HOUR_START + 60, cpu_value=0.5, memory_value=1.0))
    return MetricsQueryService(memory_store, FakeClock(HOUR_START + 120))


@pytest.fixture
def dummy_request(query_service):
    request = DummyRequest()
    request.registry = Registry()
    request.registry.query_service = query_service
    return request


@pytest.fixture
def test_app(query_service):
    """Creates a test app for use in integration tests."""
    return TestApp(create_application(query_service))
