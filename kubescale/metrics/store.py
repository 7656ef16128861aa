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
import boto3
import colorlog
import staticconf

from kubescale.config import STORE_BACKENDS
from kubescale.exceptions import ConfigError
from kubescale.interfaces.sample_store import SampleStore
from kubescale.metrics.dynamodb_store import DEFAULT_ROLLUPS_TABLE
from kubescale.metrics.dynamodb_store import DEFAULT_SAMPLES_TABLE
from kubescale.metrics.dynamodb_store import DynamoSampleStore
from kubescale.metrics.memory_store import MemorySampleStore

logger = colorlog.getLogger(__name__)


def get_sample_store(ensure_tables: bool = False) -> SampleStore:
    """ Build the SampleStore described by the `store` section of the configuration

    The returned handle is meant to be created once at startup and passed to every component that needs it.

    :param ensure_tables: create the backing tables if they are missing (only meaningful for DynamoDB)
    """
    backend = staticconf.read_string("store.backend", default="dynamodb")
    if backend == "memory":
        logger.warning("Using the in-memory metrics store; nothing will be persisted across restarts")
        return MemorySampleStore()
    elif backend != "dynamodb":
        raise ConfigError(f"Unknown store backend {backend}; expected one of {STORE_BACKENDS}")

    session = boto3.session.Session(region_name=staticconf.read_string("store.region"))
    client = session.client("dynamodb", endpoint_url=staticconf.read_string("store.endpoint_url", default=None))
    store = DynamoSampleStore(
        client,
        samples_table=staticconf.read_string("store.samples_table", default=DEFAULT_SAMPLES_TABLE),
        rollups_table=staticconf.read_string("store.rollups_table", default=DEFAULT_ROLLUPS_TABLE),
    )
    if ensure_tables:
        store.ensure_tables()
    return store
