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
import sys

import colorlog

from kubescale.args import parse_args
from kubescale.config import setup_config
from kubescale.exceptions import ConfigError
from kubescale.util import setup_logging

logger = colorlog.getLogger(__name__)


def main(argv=None):
    args = parse_args("Kubernetes cluster scale-out and metrics tools", argv)
    setup_logging(args.log_level)
    try:
        setup_config(args)
    except ConfigError as e:
        logger.critical(str(e))
        sys.exit(1)
    args.entrypoint(args)


if __name__ == "__main__":
    main()
