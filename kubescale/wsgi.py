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
"""WSGI entry point for running the metrics query server under a WSGI server of your choice

A callable named application is defined here for the WSGI server to run, e.g.

    waitress-serve --port=3001 kubescale.wsgi:application

The configuration is read from $KUBESCALE_CONFIG (or /etc/kubescale/kubescale.yaml).
"""
import argparse
import os
from functools import lru_cache

from kubescale.config import DEFAULT_ENV_CONFIG_PATH
from kubescale.config import setup_config
from kubescale.metrics.query import MetricsQueryService
from kubescale.metrics.store import get_sample_store
from kubescale.util import setup_logging
from kubescale.webapp import create_application

CONFIG_PATH_ENV_VAR = "KUBESCALE_CONFIG"


# Memoized so that the configuration and the store are only set up once per process
@lru_cache(maxsize=None)
def load_application():
    setup_logging()
    setup_config(argparse.Namespace(env_config_path=os.environ.get(CONFIG_PATH_ENV_VAR, DEFAULT_ENV_CONFIG_PATH)))
    return create_application(MetricsQueryService(get_sample_store()))


def application(environ, start_response):
    return load_application()(environ, start_response)
