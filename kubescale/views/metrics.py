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
import colorlog
from pyramid.httpexceptions import HTTPBadRequest
from pyramid.httpexceptions import HTTPInternalServerError
from pyramid.view import view_config

from kubescale.exceptions import PersistenceError

logger = colorlog.getLogger(__name__)


def _get_timestamp_param(request, param: str) -> int:
    try:
        value = int(request.params.get(param, ""))
    except ValueError:
        value = 0

    # timestamp 0 is indistinguishable from a missing parameter
    if value == 0:
        raise HTTPBadRequest(f"Invalid {param}")
    return value


@view_config(route_name="api.metrics", renderer="json", request_method="GET")
def get_metrics(request):
    """ Return the hourly metrics of one resource over a time range

    Query parameters: resourceName, startTimestamp and endTimestamp (unix seconds, inclusive).
    """
    resource_name = request.params.get("resourceName", "")
    if not resource_name:
        raise HTTPBadRequest("Invalid resourceName")
    start = _get_timestamp_param(request, "startTimestamp")
    end = _get_timestamp_param(request, "endTimestamp")

    try:
        points = request.registry.query_service.query(resource_name, start, end)
    except PersistenceError as e:
        logger.error(f"Could not query metrics for {resource_name}: {e}")
        raise HTTPInternalServerError(str(e))

    return {"metrics": [point._asdict() for point in points]}
