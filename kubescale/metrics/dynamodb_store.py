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
from contextlib import contextmanager
from typing import Any
from typing import Dict
from typing import Iterator
from typing import List
from typing import Mapping
from typing import Optional

import botocore.exceptions
import colorlog

from kubescale.exceptions import DuplicateKeyError
from kubescale.exceptions import PersistenceError
from kubescale.interfaces.sample_store import SampleStore
from kubescale.interfaces.types import HourlyRollup
from kubescale.interfaces.types import Sample

logger = colorlog.getLogger(__name__)
DEFAULT_SAMPLES_TABLE = "kubescale_metrics_last_hour"
DEFAULT_ROLLUPS_TABLE = "kubescale_metrics_hourly"
CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"
RESOURCE_NOT_FOUND = "ResourceNotFoundException"
# "timestamp" is a DynamoDB reserved word, so it always has to be aliased in expressions
TIMESTAMP_ALIAS = {"#ts": "timestamp"}


def _error_code(e: botocore.exceptions.ClientError) -> str:
    return e.response.get("Error", {}).get("Code", "")


@contextmanager
def _persistence_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (botocore.exceptions.ClientError, botocore.exceptions.BotoCoreError) as e:
        logger.error(f"DynamoDB {operation} failed: {e}")
        raise PersistenceError(f"Could not {operation}: {e}") from e


def _to_item(point: Any) -> Dict[str, Dict[str, str]]:
    return {
        "resource_name": {"S": point.resource_name},
        "timestamp": {"N": str(point.timestamp)},
        "cpu_value": {"N": str(point.cpu_value)},
        "memory_value": {"N": str(point.memory_value)},
    }


def _from_item(item: Mapping[str, Mapping[str, str]], point_type: Any) -> Any:
    return point_type(
        resource_name=item["resource_name"]["S"],
        timestamp=int(item["timestamp"]["N"]),
        cpu_value=float(item["cpu_value"]["N"]),
        memory_value=float(item["memory_value"]["N"]),
    )


class DynamoSampleStore(SampleStore):
    def __init__(
        self,
        client: Any,
        samples_table: str = DEFAULT_SAMPLES_TABLE,
        rollups_table: str = DEFAULT_ROLLUPS_TABLE,
    ) -> None:
        """ A SampleStore backed by two DynamoDB tables, keyed on resource_name (hash) and timestamp (range)

        :param client: a boto3 DynamoDB client
        :param samples_table: name of the table holding the transient bucket
        :param rollups_table: name of the table holding the hourly rollups
        """
        self.client = client
        self.samples_table = samples_table
        self.rollups_table = rollups_table

    def ensure_tables(self) -> None:
        """ Create the tables (and so the uniqueness constraint on their keys) if they don't exist yet """
        for table_name in (self.samples_table, self.rollups_table):
            with _persistence_errors(f"create table {table_name}"):
                try:
                    self.client.describe_table(TableName=table_name)
                    continue
                except botocore.exceptions.ClientError as e:
                    if _error_code(e) != RESOURCE_NOT_FOUND:
                        raise

                logger.info(f"Creating DynamoDB table {table_name}")
                self.client.create_table(
                    TableName=table_name,
                    KeySchema=[
                        {"AttributeName": "resource_name", "KeyType": "HASH"},
                        {"AttributeName": "timestamp", "KeyType": "RANGE"},
                    ],
                    AttributeDefinitions=[
                        {"AttributeName": "resource_name", "AttributeType": "S"},
                        {"AttributeName": "timestamp", "AttributeType": "N"},
                    ],
                    BillingMode="PAY_PER_REQUEST",
                )
                self.client.get_waiter("table_exists").wait(TableName=table_name)

    def insert_sample(self, sample: Sample) -> None:
        try:
            self.client.put_item(
                TableName=self.samples_table,
                Item=_to_item(sample),
                ConditionExpression="attribute_not_exists(resource_name)",
            )
        except botocore.exceptions.ClientError as e:
            if _error_code(e) == CONDITIONAL_CHECK_FAILED:
                raise DuplicateKeyError(
                    f"A sample for {sample.resource_name} at {sample.timestamp} already exists"
                ) from e
            logger.error(f"DynamoDB insert failed: {e}")
            raise PersistenceError(f"Could not insert sample for {sample.resource_name}: {e}") from e
        except botocore.exceptions.BotoCoreError as e:
            raise PersistenceError(f"Could not insert sample for {sample.resource_name}: {e}") from e

    def upsert_rollup(self, rollup: HourlyRollup) -> None:
        with _persistence_errors(f"write rollup for {rollup.resource_name}"):
            self.client.put_item(TableName=self.rollups_table, Item=_to_item(rollup))

    def get_samples(self, resource_name: Optional[str], start: int, end: int) -> List[Sample]:
        if start > end:
            return []

        if resource_name is None:
            items = self._scan(
                self.samples_table,
                FilterExpression="#ts BETWEEN :start AND :end",
                ExpressionAttributeNames=TIMESTAMP_ALIAS,
                ExpressionAttributeValues={":start": {"N": str(start)}, ":end": {"N": str(end)}},
            )
        else:
            items = self._query(self.samples_table, resource_name, start, end)

        samples = [_from_item(item, Sample) for item in items]
        return sorted(samples, key=lambda s: (s.timestamp, s.resource_name))

    def get_rollups(self, resource_name: str, start: int, end: int) -> List[HourlyRollup]:
        if start > end:
            return []
        return [_from_item(item, HourlyRollup) for item in self._query(self.rollups_table, resource_name, start, end)]

    def flush_samples(self, cutoff: int) -> int:
        old_keys = self._scan(
            self.samples_table,
            FilterExpression="#ts <= :cutoff",
            ProjectionExpression="resource_name, #ts",
            ExpressionAttributeNames=TIMESTAMP_ALIAS,
            ExpressionAttributeValues={":cutoff": {"N": str(cutoff)}},
        )
        with _persistence_errors("flush old samples"):
            for key in old_keys:
                self.client.delete_item(TableName=self.samples_table, Key=key)
        return len(old_keys)

    def _query(self, table_name: str, resource_name: str, start: int, end: int) -> List[Mapping]:
        return self._paginate(
            "query",
            TableName=table_name,
            KeyConditionExpression="resource_name = :name AND #ts BETWEEN :start AND :end",
            ExpressionAttributeNames=TIMESTAMP_ALIAS,
            ExpressionAttributeValues={
                ":name": {"S": resource_name},
                ":start": {"N": str(start)},
                ":end": {"N": str(end)},
            },
            ConsistentRead=True,
            ScanIndexForward=True,
        )

    def _scan(self, table_name: str, **kwargs: Any) -> List[Mapping]:
        return self._paginate("scan", TableName=table_name, ConsistentRead=True, **kwargs)

    def _paginate(self, operation: str, **kwargs: Any) -> List[Mapping]:
        items: List[Mapping] = []
        with _persistence_errors(f"{operation} {kwargs['TableName']}"):
            while True:
                page = getattr(self.client, operation)(**kwargs)
                items.extend(page.get("Items", []))
                if not page.get("LastEvaluatedKey"):
                    break
                kwargs["ExclusiveStartKey"] = page["LastEvaluatedKey"]
        return items
