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
from pyramid.config import Configurator

from kubescale.metrics.query import MetricsQueryService


def create_application(query_service: MetricsQueryService):
    """Create the WSGI application that answers metrics queries."""

    config = Configurator(settings={"service_name": "kubescale"})

    config.add_route("api.hello", "/hello")
    config.add_route("api.metrics", "/metrics")

    # Views reach the query service through request.registry
    config.registry.query_service = query_service

    # Scan the views package to attach any decorated views.
    config.scan("kubescale.views")

    return config.make_wsgi_app()
