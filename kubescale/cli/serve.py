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
import staticconf
import waitress

from kubescale.args import subparser
from kubescale.metrics.query import MetricsQueryService
from kubescale.metrics.store import get_sample_store
from kubescale.webapp import create_application

logger = colorlog.getLogger(__name__)
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3001
DEFAULT_THREADS = 4


def main(args):
    host = args.host or staticconf.read_string("webapp.host", default=DEFAULT_HOST)
    port = args.port or staticconf.read_int("webapp.port", default=DEFAULT_PORT)
    threads = staticconf.read_int("webapp.threads", default=DEFAULT_THREADS)

    app = create_application(MetricsQueryService(get_sample_store()))
    logger.info(f"Serving metrics queries on {host}:{port} with {threads} threads")
    waitress.serve(app, host=host, port=port, threads=threads)
    logger.info("Metrics server stopped")


@subparser("serve", "answer hourly metrics queries over HTTP", main)
def add_serve_parser(subparser, required_named_args, optional_named_args):  # pragma: no cover
    optional_named_args.add_argument(
        "--host",
        default=None,
        help="Interface to listen on (defaults to webapp.host from the configuration)",
    )
    optional_named_args.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (defaults to webapp.port from the configuration)",
    )
