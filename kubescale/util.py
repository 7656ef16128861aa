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
import logging
import threading
from typing import Callable
from typing import Optional
from typing import TypeVar

import arrow
import colorlog
from colorama import Fore
from colorama import Style

SECONDS_PER_HOUR = 3600
logger = colorlog.getLogger(__name__)


def setup_logging(log_level_str: str = "info") -> None:
    handler = colorlog.StreamHandler()
    handler.setFormatter(colorlog.ColoredFormatter("%(log_color)s%(levelname)s:%(name)s:%(message)s"))
    logger = colorlog.getLogger()
    logger.addHandler(handler)

    log_level = getattr(logging, log_level_str.upper())
    logging.getLogger().setLevel(log_level)
    logging.getLogger("botocore").setLevel(max(logging.INFO, log_level))
    logging.getLogger("boto3").setLevel(max(logging.INFO, log_level))
    logging.getLogger("urllib3").setLevel(max(logging.WARNING, log_level))


def floor_hour(timestamp: int) -> int:
    """ Return the start of the hour bucket that contains timestamp """
    return (int(timestamp) // SECONDS_PER_HOUR) * SECONDS_PER_HOUR


def format_timestamp(timestamp: int) -> str:
    return arrow.get(timestamp).format("YYYY-MM-DD HH:mm:ss ZZ")


class Clock:
    """ Source of "now" and of interruptible waits for the control loop.

    Every blocking wait in kubescale goes through a Clock so that a shutdown request (which sets the
    shutdown event) wakes up the waiter immediately; tests substitute a clock that never sleeps.
    """

    def __init__(self, shutdown_event: Optional[threading.Event] = None) -> None:
        self.shutdown_event = shutdown_event or threading.Event()

    def now(self) -> int:
        return arrow.utcnow().int_timestamp

    def wait(self, seconds: float) -> bool:
        """ Block for up to the given number of seconds

        :param seconds: how long to wait for
        :returns: True if the wait was interrupted by a shutdown request, False otherwise
        """
        return self.shutdown_event.wait(max(0, seconds))

    def shutdown(self) -> None:
        self.shutdown_event.set()

    @property
    def cancelled(self) -> bool:
        return self.shutdown_event.is_set()


_T = TypeVar("_T")


def any_of(*choices) -> Callable[[_T], bool]:
    return lambda x: x in choices


def color_conditions(
    input_obj: _T,
    prefix: Optional[str] = None,
    postfix: Optional[str] = None,
    **kwargs: Callable[[_T], bool],
) -> str:
    prefix = prefix or ""
    postfix = postfix or ""
    color_str = ""
    for color, condition in kwargs.items():
        if condition(input_obj):
            color_str = getattr(Fore, color.upper())
            break
    return color_str + prefix + str(input_obj) + postfix + Style.RESET_ALL


def splay_event_time(frequency: int, key: str, timestamp: Optional[float] = None) -> float:
    """ Return the length of time until the next event should trigger based on the given frequency;
    randomly splay out the 'initial' start time based on some key, to prevent events with the same
    frequency from all triggering at once

    :param frequency: how often the event should occur (in seconds)
    :param key: a string to hash to get the splay time
    :param timestamp: what time it is "now" (uses the current time if None)
    :returns: the number of seconds until the next event should happen
    """
    timestamp = timestamp or arrow.utcnow().float_timestamp
    random_wait_time = hash(key) % frequency
    return frequency - (timestamp % frequency) + random_wait_time
