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
import staticconf
import staticconf.errors
import yaml

from kubescale.exceptions import ConfigError

CREDENTIALS_NAMESPACE = "do_credentials"
DEFAULT_ENV_CONFIG_PATH = "/etc/kubescale/kubescale.yaml"
STORE_BACKENDS = ("dynamodb", "memory")


def setup_config(args) -> None:
    """ Load the main configuration file and the DigitalOcean credentials into staticconf

    :param args: parsed command-line arguments; must have an env_config_path attribute
    :raises ConfigError: if the configuration can't be loaded or is invalid
    """
    try:
        staticconf.YamlConfiguration(args.env_config_path)

        # The token lives in its own file (like the AWS credentials file) so the main config can be shared freely
        credentials_file = staticconf.read_string("digital_ocean.access_token_file", default=None)
        if credentials_file:
            staticconf.YamlConfiguration(credentials_file, namespace=CREDENTIALS_NAMESPACE)

        validate_config()
    except (staticconf.errors.ConfigurationError, staticconf.errors.ValidationError, OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Invalid configuration in {args.env_config_path}: {e}") from e


def validate_config() -> None:
    """ Check the values that every subcommand depends on, so that mistakes are caught at startup

    :raises ConfigError: if a value is missing or out of range
    """
    staticconf.read_string("metrics_source.url")

    backend = staticconf.read_string("store.backend", default="dynamodb")
    if backend not in STORE_BACKENDS:
        raise ConfigError(f"store.backend must be one of {STORE_BACKENDS}, not {backend}")
    if backend == "dynamodb":
        staticconf.read_string("store.region")

    for threshold in ("autoscaling.cpu_threshold", "autoscaling.mem_threshold"):
        value = staticconf.read_float(threshold, default=0.5)
        if not 0 < value <= 1:
            raise ConfigError(f"{threshold} must be in (0, 1], got {value}")

    for positive_value in (
        "autoscaling.poll_interval_seconds",
        "autoscaling.max_poll_attempts",
        "batches.control_loop.run_interval_seconds",
        "batches.control_loop.autoscale_interval_seconds",
        "cluster.playbook_timeout_seconds",
    ):
        value = staticconf.read_float(positive_value, default=1)
        if value <= 0:
            raise ConfigError(f"{positive_value} must be positive, got {value}")
