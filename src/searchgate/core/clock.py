"""Time source shared by the store, authenticator, limiter and cache."""

import time
from collections.abc import Callable

Clock = Callable[[], float]
"""Returns the current time as epoch seconds."""

system_clock: Clock = time.time
