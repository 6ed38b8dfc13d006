import time
import logging
import threading
from datetime import datetime
from typing import Callable, NamedTuple, Optional

import config

logger = logging.getLogger(__name__)


class SnowflakeError(Exception):
    """Base class for ID generator errors."""


class InvalidIdentity(SnowflakeError, ValueError):
    """A worker or datacenter ID outside the range its bit width allows."""

    def __init__(self, field, value, maximum):
        self.field = field
        self.value = value
        self.maximum = maximum
        super().__init__(f"{field} must be an integer between 0 and {maximum}, got {value!r}")


class ClockMovedBackward(SnowflakeError, RuntimeError):
    """The clock reported a time earlier than the last issued ID."""

    def __init__(self, last_timestamp, now):
        self.last_timestamp = last_timestamp
        self.now = now
        self.offset = last_timestamp - now
        super().__init__(
            f"Clock moved backwards. Refusing to generate ID for {self.offset} milliseconds"
        )


class TimestampOutOfRange(SnowflakeError, RuntimeError):
    """The clock is before the epoch or past what the timestamp field can hold."""

    def __init__(self, now, epoch, timestamp_bits):
        self.now = now
        self.epoch = epoch
        self.timestamp_bits = timestamp_bits
        super().__init__(
            f"Timestamp {now} is outside the {timestamp_bits}-bit range starting at epoch {epoch}"
        )


class InvalidSnowflake(SnowflakeError, ValueError):
    """A value that cannot be decoded as an ID of this layout."""


class SnowflakeID(NamedTuple):
    id: int
    timestamp: int
    datacenter_id: int
    worker_id: int
    sequence: int
    generated_at: datetime


def current_millis() -> int:
    """Wall-clock time in milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


class SnowflakeIDGenerator:
    """Twitter Snowflake ID Generator

    63-bit ID (the sign bit of a signed 64-bit integer is always 0), default layout:
    - 41 bits: timestamp (milliseconds since EPOCH)
    - 4 bits: datacenter ID
    - 4 bits: worker ID
    - 14 bits: sequence number

    The timestamp gets whatever is left of the 63 bits after the other three fields,
    so the layout is set by the three widths alone. Every generator in a deployment
    must share the same epoch and widths.

    One instance is safe to share between threads. Distinct instances must be given
    distinct (worker_id, datacenter_id) pairs for their IDs not to collide.
    """

    # Custom epoch (Jan 1, 2015 00:00 UTC+8)
    EPOCH = 1420041600000

    ID_BITS = 63

    WORKER_ID_BITS = 4
    DATACENTER_ID_BITS = 4
    SEQUENCE_BITS = 14

    def __init__(
        self,
        worker_id: int,
        datacenter_id: int,
        *,
        epoch: Optional[int] = None,
        worker_id_bits: Optional[int] = None,
        datacenter_id_bits: Optional[int] = None,
        sequence_bits: Optional[int] = None,
        clock: Callable[[], int] = current_millis,
    ):
        """Initialize the ID generator with worker and datacenter IDs

        Args:
            worker_id (int): ID of the worker (0 to max_worker_id)
            datacenter_id (int): ID of the datacenter (0 to max_datacenter_id)
            epoch (int, optional): Reference instant in ms since the Unix epoch
            worker_id_bits (int, optional): Width of the worker field
            datacenter_id_bits (int, optional): Width of the datacenter field
            sequence_bits (int, optional): Width of the sequence field
            clock (callable): Returns the current time in ms since the Unix epoch

        Raises:
            InvalidIdentity: If either ID is out of range
            ValueError: If the bit widths leave no room for the timestamp
        """
        self.epoch = self.EPOCH if epoch is None else epoch
        self.worker_id_bits = self.WORKER_ID_BITS if worker_id_bits is None else worker_id_bits
        self.datacenter_id_bits = (
            self.DATACENTER_ID_BITS if datacenter_id_bits is None else datacenter_id_bits
        )
        self.sequence_bits = self.SEQUENCE_BITS if sequence_bits is None else sequence_bits

        if min(self.worker_id_bits, self.datacenter_id_bits, self.sequence_bits) < 0:
            raise ValueError("Bit widths must not be negative")

        self.timestamp_bits = (
            self.ID_BITS - self.sequence_bits - self.worker_id_bits - self.datacenter_id_bits
        )
        if self.timestamp_bits < 1:
            raise ValueError(
                f"Layout {self.datacenter_id_bits}/{self.worker_id_bits}/{self.sequence_bits} "
                f"leaves no bits for the timestamp"
            )

        # Maximum values for each section
        self.max_worker_id = -1 ^ (-1 << self.worker_id_bits)
        self.max_datacenter_id = -1 ^ (-1 << self.datacenter_id_bits)
        self.sequence_mask = -1 ^ (-1 << self.sequence_bits)

        # Bit shifts for each section
        self.worker_id_shift = self.sequence_bits
        self.datacenter_id_shift = self.sequence_bits + self.worker_id_bits
        self.timestamp_shift = self.sequence_bits + self.worker_id_bits + self.datacenter_id_bits

        self.worker_id = self._validate("worker_id", worker_id, self.max_worker_id)
        self.datacenter_id = self._validate("datacenter_id", datacenter_id, self.max_datacenter_id)

        self._clock = clock
        self._lock = threading.Lock()
        self.sequence = 0
        self.last_timestamp = -1

        logger.info(
            f"Initialized ID generator with worker ID {self.worker_id}, "
            f"datacenter ID {self.datacenter_id}"
        )

    @classmethod
    def from_config(cls, **overrides):
        """Build a generator from the values in config.py

        Keyword arguments override the configured values, e.g. ``clock=...``.

        Returns:
            SnowflakeIDGenerator: A new generator
        """
        settings = {
            "worker_id": config.WORKER_ID,
            "datacenter_id": config.DATACENTER_ID,
            "epoch": config.EPOCH,
            "worker_id_bits": config.WORKER_ID_BITS,
            "datacenter_id_bits": config.DATACENTER_ID_BITS,
            "sequence_bits": config.SEQUENCE_BITS,
        }
        settings.update(overrides)
        return cls(**settings)

    @staticmethod
    def _validate(field, value, maximum):
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= maximum:
            raise InvalidIdentity(field, value, maximum)
        return value

    def _wait_next_millis(self, last_timestamp):
        """Spin until the clock passes last_timestamp

        No sleep: the wait is at most about a millisecond, and a sleep would hand the
        thread to the scheduler for far longer. The cost is one core busy for that
        interval, with the generator lock held.

        Args:
            last_timestamp (int): The last timestamp used

        Returns:
            int: The next timestamp in milliseconds
        """
        timestamp = self._clock()
        while timestamp <= last_timestamp:
            timestamp = self._clock()
        return timestamp

    def _check_range(self, timestamp):
        delta = timestamp - self.epoch
        if delta < 0 or delta >> self.timestamp_bits:
            error = TimestampOutOfRange(timestamp, self.epoch, self.timestamp_bits)
            logger.error(str(error))
            raise error

    def next_id(self) -> int:
        """Generate the next unique ID

        Returns:
            int: A 63-bit unique ID

        Raises:
            ClockMovedBackward: If the clock is behind the last issued ID
            TimestampOutOfRange: If the clock is before the epoch or beyond the timestamp field
        """
        with self._lock:
            timestamp = self._clock()
            self._check_range(timestamp)

            if timestamp < self.last_timestamp:
                error = ClockMovedBackward(self.last_timestamp, timestamp)
                logger.error(str(error))
                raise error

            if timestamp == self.last_timestamp:
                sequence = (self.sequence + 1) & self.sequence_mask

                # Sequence exhausted for this millisecond
                if sequence == 0:
                    logger.debug(f"Sequence exhausted at {timestamp}, waiting for next millisecond")
                    timestamp = self._wait_next_millis(self.last_timestamp)
                    self._check_range(timestamp)
            else:
                sequence = 0

            # State only changes once the ID is certain to be issued
            self.sequence = sequence
            self.last_timestamp = timestamp

            return (
                ((timestamp - self.epoch) << self.timestamp_shift) |
                (self.datacenter_id << self.datacenter_id_shift) |
                (self.worker_id << self.worker_id_shift) |
                self.sequence
            )

    def parse_id(self, snowflake_id: int) -> SnowflakeID:
        """Parse a snowflake ID back into its components

        Args:
            snowflake_id (int): The snowflake ID to parse

        Returns:
            SnowflakeID: The components of the ID

        Raises:
            InvalidSnowflake: If the value is not a non-negative 63-bit integer
        """
        if isinstance(snowflake_id, bool) or not isinstance(snowflake_id, int) \
                or not 0 <= snowflake_id < 1 << self.ID_BITS:
            raise InvalidSnowflake(f"{snowflake_id!r} is not a {self.ID_BITS}-bit snowflake ID")

        timestamp = snowflake_id >> self.timestamp_shift
        datacenter_id = (snowflake_id >> self.datacenter_id_shift) & self.max_datacenter_id
        worker_id = (snowflake_id >> self.worker_id_shift) & self.max_worker_id
        sequence = snowflake_id & self.sequence_mask

        try:
            generated_at = datetime.fromtimestamp((timestamp + self.epoch) / 1000)
        except (OverflowError, OSError, ValueError) as e:
            raise InvalidSnowflake(f"{snowflake_id} decodes to an unrepresentable time: {e}") from e

        return SnowflakeID(
            id=snowflake_id,
            timestamp=timestamp,
            datacenter_id=datacenter_id,
            worker_id=worker_id,
            sequence=sequence,
            generated_at=generated_at,
        )

    def __repr__(self):
        return (
            f"{type(self).__name__}(worker_id={self.worker_id}, "
            f"datacenter_id={self.datacenter_id}, epoch={self.epoch})"
        )
