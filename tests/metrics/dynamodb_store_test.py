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
from botocore.exceptions import ClientError

from kubescale.exceptions import DuplicateKeyError
from kubescale.exceptions import PersistenceError
from kubescale.interfaces.types import HourlyRollup
from kubescale.interfaces.types import Sample
from kubescale.metrics.dynamodb_store import DynamoSampleStore
from tests.conftest import HOUR_START
from tests.conftest import make_sample


def _client_error(code, operation="PutItem"):
    return ClientError({"Error": {"Code": code, "Message": "something went wrong"}}, operation)


def _item(resource_name, timestamp, cpu_value=0.5, memory_value=1.0):
    return {
        "resource_name": {"S": resource_name},
        "timestamp": {"N": str(timestamp)},
        "cpu_value": {"N": str(cpu_value)},
        "memory_value": {"N": str(memory_value)},
    }


@pytest.fixture
def mock_client():
    return mock.Mock()


@pytest.fixture
def store(mock_client):
    return DynamoSampleStore(mock_client, samples_table="samples", rollups_table="rollups")


def test_insert_sample(store, mock_client):
    store.insert_sample(make_sample("worker1", HOUR_START))
    mock_client.put_item.assert_called_once_with(
        TableName="samples",
        Item=_item("worker1", HOUR_START),
        ConditionExpression="attribute_not_exists(resource_name)",
    )


def test_insert_sample_duplicate(store, mock_client):
    mock_client.put_item.side_effect = _client_error("ConditionalCheckFailedException")
    with pytest.raises(DuplicateKeyError):
        store.insert_sample(make_sample("worker1", HOUR_START))


def test_insert_sample_other_error(store, mock_client):
    mock_client.put_item.side_effect = _client_error("ProvisionedThroughputExceededException")
    with pytest.raises(PersistenceError):
        store.insert_sample(make_sample("worker1", HOUR_START))


def test_upsert_rollup(store, mock_client):
    store.upsert_rollup(HourlyRollup("worker1", HOUR_START, 0.25, 0.75))
    mock_client.put_item.assert_called_once_with(TableName="rollups", Item=_item("worker1", HOUR_START, 0.25, 0.75))


def test_upsert_rollup_error(store, mock_client):
    mock_client.put_item.side_effect = _client_error("InternalServerError")
    with pytest.raises(PersistenceError):
        store.upsert_rollup(HourlyRollup("worker1", HOUR_START, 0.25, 0.75))


def test_get_samples_paginates(store, mock_client):
    last_key = {"resource_name": {"S": "worker1"}, "timestamp": {"N": str(HOUR_START)}}
    mock_client.query.side_effect = [
        {"Items": [_item("worker1", HOUR_START)], "LastEvaluatedKey": last_key},
        {"Items": [_item("worker1", HOUR_START + 60, cpu_value=0.25)]},
    ]
    assert store.get_samples("worker1", HOUR_START, HOUR_START + 3599) == [
        Sample("worker1", HOUR_START, 0.5, 1.0),
        Sample("worker1", HOUR_START + 60, 0.25, 1.0),
    ]
    first_call, second_call = mock_client.query.call_args_list
    assert "ExclusiveStartKey" not in first_call[1]
    assert second_call[1]["ExclusiveStartKey"] == last_key
    assert first_call[1]["ExpressionAttributeValues"] == {
        ":name": {"S": "worker1"},
        ":start": {"N": str(HOUR_START)},
        ":end": {"N": str(HOUR_START + 3599)},
    }


def test_get_samples_all_resources(store, mock_client):
    mock_client.scan.return_value = {"Items": [_item("worker2", HOUR_START + 60), _item("worker1", HOUR_START + 60)]}
    samples = store.get_samples(None, HOUR_START, HOUR_START + 3599)
    assert [s.resource_name for s in samples] == ["worker1", "worker2"]
    assert mock_client.scan.call_args[1]["TableName"] == "samples"
    assert mock_client.query.call_count == 0


def test_get_samples_empty_range(store, mock_client):
    assert store.get_samples("worker1", HOUR_START, HOUR_START - 1) == []
    assert mock_client.query.call_count == 0


def test_get_rollups(store, mock_client):
    mock_client.query.return_value = {"Items": [_item("worker1", HOUR_START - 3600), _item("worker1", HOUR_START)]}
    rollups = store.get_rollups("worker1", HOUR_START - 3600, HOUR_START)
    assert rollups == [
        HourlyRollup("worker1", HOUR_START - 3600, 0.5, 1.0),
        HourlyRollup("worker1", HOUR_START, 0.5, 1.0),
    ]
    assert mock_client.query.call_args[1]["TableName"] == "rollups"


def test_get_rollups_error(store, mock_client):
    mock_client.query.side_effect = _client_error("ResourceNotFoundException", "Query")
    with pytest.raises(PersistenceError):
        store.get_rollups("worker1", HOUR_START, HOUR_START)


def test_flush_samples(store, mock_client):
    keys = [
        {"resource_name": {"S": "worker1"}, "timestamp": {"N": str(HOUR_START - 60)}},
        {"resource_name": {"S": "worker2"}, "timestamp": {"N": str(HOUR_START - 60)}},
    ]
    mock_client.scan.return_value = {"Items": keys}
    assert store.flush_samples(HOUR_START - 1) == 2
    assert mock_client.scan.call_args[1]["ExpressionAttributeValues"] == {":cutoff": {"N": str(HOUR_START - 1)}}
    assert mock_client.delete_item.call_args_list == [mock.call(TableName="samples", Key=key) for key in keys]


def test_ensure_tables(store, mock_client):
    mock_client.describe_table.side_effect = [_client_error("ResourceNotFoundException", "DescribeTable"), {}]
    store.ensure_tables()
    mock_client.create_table.assert_called_once()
    assert mock_client.create_table.call_args[1]["TableName"] == "samples"
    mock_client.get_waiter.return_value.wait.assert_called_once_with(TableName="samples")


def test_ensure_tables_error(store, mock_client):
    mock_client.describe_table.side_effect = _client_error("AccessDeniedException", "DescribeTable")
    with pytest.raises(PersistenceError):
        store.ensure_tables()
    assert mock_client.create_table.call_count == 0
