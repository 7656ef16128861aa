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


class KubescaleException(Exception):
    pass


class ConfigError(KubescaleException):
    pass


class MetricsError(KubescaleException):
    pass


class FetchError(MetricsError):
    pass


class ParseError(MetricsError):
    pass


class StoreError(KubescaleException):
    pass


class DuplicateKeyError(StoreError):
    pass


class PersistenceError(StoreError):
    pass


class ProviderError(KubescaleException):
    pass


class ProvisioningError(KubescaleException):
    pass


class NameConflictError(ProvisioningError):
    pass


class CreateFailedError(ProvisioningError):
    pass


class PollFailedError(ProvisioningError):
    pass


class ProvisioningTimedOutError(ProvisioningError):
    pass


class RegistrationError(ProvisioningError):
    pass


class BootstrapError(ProvisioningError):
    pass
