"""Exponential reconnect backoff."""

import random

from matterhook.config.schema import BackoffConfig


class ExponentialBackoff:
    """
    Exponential backoff with equal jitter and no attempt limit.

    Attempt ``n`` has a base delay of ``initial_delay * multiplier**n`` capped
    at ``max_delay``. With jitter the returned delay lies in
    ``[max(base / 2, previous), base]``, so successive delays keep growing
    until the cap whatever the multiplier.

    The reader calls ``reset()`` whenever a message arrives; the supervisor
    calls ``next_delay()`` after each failed session.
    """

    def __init__(
        self,
        initial_delay: float = 0.5,
        max_delay: float = 60.0,
        multiplier: float = 2.0,
        jitter: bool = True,
        rng: random.Random | None = None,
    ):
        if initial_delay <= 0 or max_delay <= 0:
            raise ValueError("delays must be positive")
        if multiplier <= 1:
            raise ValueError("multiplier must be greater than 1")
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.jitter = jitter
        self._rng = rng or random.Random()
        self._attempt = 0
        self._last_delay = 0.0

    @classmethod
    def from_config(cls, config: BackoffConfig) -> "ExponentialBackoff":
        return cls(
            initial_delay=config.initial_delay,
            max_delay=config.max_delay,
            multiplier=config.multiplier,
            jitter=config.jitter,
        )

    @property
    def attempt(self) -> int:
        """Number of delays handed out since the last reset."""
        return self._attempt

    def next_delay(self) -> float:
        """Return the delay before the next reconnect and advance the attempt."""
        # Cap the exponent so huge attempt counts cannot overflow the float
        exponent = min(self._attempt, 1024)
        try:
            base = min(self.initial_delay * self.multiplier**exponent, self.max_delay)
        except OverflowError:
            base = self.max_delay
        self._attempt += 1

        if not self.jitter:
            delay = base
        else:
            # Below a multiplier of 2 the jitter ranges overlap
            low = max(base / 2, self._last_delay)
            delay = low + self._rng.uniform(0, base - low)
        self._last_delay = delay
        return delay

    def reset(self) -> None:
        """Start over from the initial delay."""
        self._attempt = 0
        self._last_delay = 0.0
