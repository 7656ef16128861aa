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
from typing import Any
from typing import List
from typing import Mapping
from typing import Optional
from typing import Sequence
from typing import Union

import colorlog
import requests
import staticconf
from mypy_extensions import TypedDict

from kubescale.config import CREDENTIALS_NAMESPACE
from kubescale.exceptions import NameConflictError
from kubescale.exceptions import ProviderError
from kubescale.interfaces.provider import Provider
from kubescale.interfaces.types import Instance

logger = colorlog.getLogger(__name__)
DIGITAL_OCEAN_API_URL = "https://api.digitalocean.com/v2"
MAX_PAGE_SIZE = 200
DEFAULT_TIMEOUT_SECONDS = 30

NetworkDict = TypedDict("NetworkDict", {"ip_address": str, "type": str})
DropletDict = TypedDict(
    "DropletDict",
    {
        "id": int,
        "name": str,
        "status": str,
        "networks": Mapping[str, Sequence[NetworkDict]],
    },
)


def _droplet_ip(droplet: DropletDict) -> Optional[str]:
    v4_networks = (droplet.get("networks") or {}).get("v4") or []
    public_networks = [n for n in v4_networks if n.get("type") == "public"]
    for network in public_networks + list(v4_networks):
        if network.get("ip_address"):
            return network["ip_address"]
    return None


def _to_instance(droplet: DropletDict) -> Instance:
    try:
        return Instance(id=droplet["id"], name=droplet["name"], status=droplet["status"], ip=_droplet_ip(droplet))
    except (KeyError, TypeError, AttributeError) as e:
        raise ProviderError(f"Unexpected droplet format: {droplet}") from e


class DigitalOceanProvider(Provider):
    def __init__(
        self,
        token: str,
        region: str,
        size: str,
        image: Union[int, str],
        ssh_keys: Sequence[Union[int, str]] = (),
        tags: Sequence[str] = (),
        api_url: str = DIGITAL_OCEAN_API_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """ Creates and inspects droplets through the DigitalOcean v2 API

        :param token: the API token to authenticate with
        :param region: the region slug new droplets are created in
        :param size: the size slug of new droplets
        :param image: the image id or slug new droplets are created from
        :param ssh_keys: ids or fingerprints of the SSH keys to install on new droplets
        :param tags: tags to apply to new droplets
        """
        self.region = region
        self.size = size
        self.image = image
        self.ssh_keys = list(ssh_keys)
        self.tags = list(tags)
        self.api_url = api_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "User-Agent": "kubescale",
        })

    def list_instances(self) -> List[Instance]:
        instances: List[Instance] = []
        next_url: Optional[str] = f"{self.api_url}/droplets?per_page={MAX_PAGE_SIZE}"
        while next_url:
            page = self._request("GET", next_url)
            instances.extend(_to_instance(droplet) for droplet in page.get("droplets", []))
            next_url = page.get("links", {}).get("pages", {}).get("next")
        return instances

    def create_instance(self, name: str) -> Instance:
        if any(instance.name == name for instance in self.list_instances()):
            raise NameConflictError(f"A droplet with name {name} already exists")

        request_body = {
            "name": name,
            "region": self.region,
            "size": self.size,
            "image": self.image,
            "ssh_keys": self.ssh_keys,
            "tags": self.tags,
            "private_networking": True,
        }
        response = self._request("POST", f"{self.api_url}/droplets", json=request_body)
        instance = _to_instance(response.get("droplet"))
        logger.info(f"Requested droplet {instance.name} (id {instance.id})")
        return instance

    def get_instance(self, instance_id: int) -> Instance:
        return _to_instance(self._request("GET", f"{self.api_url}/droplets/{instance_id}").get("droplet"))

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        response = None
        try:
            response = self.session.request(method, url, timeout=self.timeout_seconds, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            log_message = f"DigitalOcean request failed: {method} {url}\n{str(e)}\n"
            if response is not None:
                log_message += f"Response Code: {response.status_code}\nResponse Text: {response.text}\n"
            logger.error(log_message)
            raise ProviderError(f"DigitalOcean request {method} {url} failed: {e}") from e
        except ValueError as e:
            raise ProviderError(f"DigitalOcean returned invalid JSON for {method} {url}") from e


def get_provider() -> DigitalOceanProvider:
    return DigitalOceanProvider(
        token=staticconf.read_string("token", namespace=CREDENTIALS_NAMESPACE),
        region=staticconf.read_string("droplet.region"),
        size=staticconf.read_string("droplet.size"),
        image=staticconf.read("droplet.image"),
        ssh_keys=staticconf.read_list("droplet.ssh_keys", default=[]),
        tags=staticconf.read_list("droplet.tags", default=[]),
        api_url=staticconf.read_string("droplet.api_url", default=DIGITAL_OCEAN_API_URL),
    )
