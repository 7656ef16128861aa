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
from abc import ABCMeta
from abc import abstractmethod
from typing import List

from kubescale.interfaces.types import Instance

ACTIVE_STATUS = "active"


class Provider(metaclass=ABCMeta):
    """ The cloud provider that hosts the cluster's machines """

    @abstractmethod
    def list_instances(self) -> List[Instance]:
        """ List every instance owned by the account

        :raises ProviderError: if the provider could not be reached
        """
        pass

    @abstractmethod
    def create_instance(self, name: str) -> Instance:
        """ Request a new worker instance; size, region and image are fixed by configuration

        :param name: the name to give to the new instance
        :returns: the newly-requested instance (it will generally not be active yet)
        :raises NameConflictError: if an instance with this name already exists
        :raises ProviderError: if the request failed
        """
        pass

    @abstractmethod
    def get_instance(self, instance_id: int) -> Instance:
        """ Look up the current status and address of an instance

        :raises ProviderError: if the provider could not be reached
        """
        pass
