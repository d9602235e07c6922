"""
Domain identifier generation: ``<PREFIX>-YYYYMMDD-NNNNNN``.
"""

import logging
import re
import threading
from datetime import datetime
from typing import Callable, Optional

from ..common.utils import get_current_time


logger = logging.getLogger(__name__)

COLLECTION_PREFIX = "COL"
DELIVERY_PREFIX = "DEL"


class IdentifierGenerator:
    """
    Generates date-stamped identifiers with a per-day sequence.

    The sequence lives in process memory and restarts at 1 on each new date.
    """

    def __init__(self, prefix: str, clock: Callable[[], datetime] = get_current_time):
        self.prefix = prefix
        self.clock = clock
        self._pattern = re.compile(rf"^{re.escape(prefix)}-\d{{8}}-\d{{6}}$")
        self._current_date: Optional[str] = None
        self._sequence = 0
        self._lock = threading.Lock()

    def generate(self) -> str:
        date_str = self.clock().strftime("%Y%m%d")
        with self._lock:
            if self._current_date != date_str:
                if self._current_date is not None:
                    logger.info(f"Date changed, resetting {self.prefix} sequence "
                                f"({self._current_date} -> {date_str})")
                self._current_date = date_str
                self._sequence = 0
            self._sequence += 1
            sequence = self._sequence

        identifier = f"{self.prefix}-{date_str}-{sequence:06d}"
        logger.debug(f"Generated identifier {identifier}")
        return identifier

    def validate(self, identifier: Optional[str]) -> bool:
        return bool(identifier) and bool(self._pattern.match(identifier))


def collection_id_generator(clock: Callable[[], datetime] = get_current_time) -> IdentifierGenerator:
    return IdentifierGenerator(COLLECTION_PREFIX, clock)


def delivery_id_generator(clock: Callable[[], datetime] = get_current_time) -> IdentifierGenerator:
    return IdentifierGenerator(DELIVERY_PREFIX, clock)
