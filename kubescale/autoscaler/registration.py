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
import os
import subprocess
from typing import Sequence

import colorlog
import staticconf

from kubescale.exceptions import BootstrapError
from kubescale.exceptions import RegistrationError

logger = colorlog.getLogger(__name__)
DEFAULT_PLAYBOOK_DIRECTORY = "kube-cluster"
DEFAULT_HOSTS_FILE = os.path.join(DEFAULT_PLAYBOOK_DIRECTORY, "hosts")
DEFAULT_PLAYBOOKS = ("initial.yml", "kube-dependencies.yml", "workers.yml")
DEFAULT_PLAYBOOK_TIMEOUT_SECONDS = 1800
HOST_LINE_FORMAT = "{name} ansible_host={ip} ansible_user=root\n"


class HostRegistry:
    """ The Ansible inventory that the bootstrap playbooks run against; it is only ever appended to """

    def __init__(self, hosts_file: str = DEFAULT_HOSTS_FILE) -> None:
        self.hosts_file = hosts_file

    def append(self, name: str, ip: str) -> None:
        logger.info(f"Appending {name} ({ip}) to {self.hosts_file}")
        try:
            with open(self.hosts_file, "a") as f:
                f.write(HOST_LINE_FORMAT.format(name=name, ip=ip))
        except OSError as e:
            raise RegistrationError(f"Could not add {name} to {self.hosts_file}: {e}") from e


class Bootstrapper:
    def __init__(
        self,
        hosts_file: str = DEFAULT_HOSTS_FILE,
        playbook_directory: str = DEFAULT_PLAYBOOK_DIRECTORY,
        playbooks: Sequence[str] = DEFAULT_PLAYBOOKS,
        timeout_seconds: float = DEFAULT_PLAYBOOK_TIMEOUT_SECONDS,
    ) -> None:
        """ Runs the playbooks that prepare every host in the inventory and join new workers to the cluster

        :param hosts_file: the Ansible inventory file
        :param playbook_directory: where the playbooks live
        :param playbooks: the playbooks to run, in order
        :param timeout_seconds: how long each playbook may run before it is killed
        """
        self.hosts_file = hosts_file
        self.playbook_directory = playbook_directory
        self.playbooks = list(playbooks)
        self.timeout_seconds = timeout_seconds

    def run(self) -> None:
        """ Run every playbook in order, stopping at the first failure

        :raises BootstrapError: if a playbook could not be run, timed out, or exited unsuccessfully
        """
        for playbook in self.playbooks:
            playbook_path = os.path.join(self.playbook_directory, playbook)
            logger.info(f"Running {playbook_path}")
            try:
                result = subprocess.run(
                    ["ansible-playbook", "-i", self.hosts_file, playbook_path],
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    timeout=self.timeout_seconds,
                )
            except subprocess.TimeoutExpired as e:
                raise BootstrapError(f"{playbook_path} did not finish within {self.timeout_seconds} seconds") from e
            except OSError as e:
                raise BootstrapError(f"Could not run ansible-playbook for {playbook_path}: {e}") from e

            if result.returncode != 0:
                raise BootstrapError(
                    f"{playbook_path} failed with exit code {result.returncode}:\n{result.stderr.decode()}"
                )
            logger.info(f"{playbook_path} complete")


def get_host_registry() -> HostRegistry:
    return HostRegistry(staticconf.read_string("cluster.hosts_file", default=DEFAULT_HOSTS_FILE))


def get_bootstrapper() -> Bootstrapper:
    return Bootstrapper(
        hosts_file=staticconf.read_string("cluster.hosts_file", default=DEFAULT_HOSTS_FILE),
        playbook_directory=staticconf.read_string("cluster.playbook_directory", default=DEFAULT_PLAYBOOK_DIRECTORY),
        playbooks=staticconf.read_list("cluster.playbooks", default=list(DEFAULT_PLAYBOOKS)),
        timeout_seconds=staticconf.read_float(
            "cluster.playbook_timeout_seconds",
            default=DEFAULT_PLAYBOOK_TIMEOUT_SECONDS,
        ),
    )
