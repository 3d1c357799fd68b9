"""Progress notification channel."""

import logging
from typing import Callable, Optional

ProgressSink = Callable[[str], None]


class ProgressReporter:
    """
    Forwards human-readable status strings to an optional caller sink.

    Messages are always logged at INFO. The sink runs inline and is treated
    as fire-and-forget: an exception raised by it is logged and dropped so
    that progress reporting can never change the outcome of a conversion.
    """

    def __init__(self, sink: Optional[ProgressSink] = None,
                 logger: Optional[logging.Logger] = None):
        self.sink = sink
        self.logger = logger or logging.getLogger(__name__)

    def emit(self, message: str) -> None:
        """Publish one status message."""
        self.logger.info(message)
        if self.sink is None:
            return
        try:
            self.sink(message)
        except Exception as e:
            self.logger.warning(f"Progress sink raised {type(e).__name__}: {e}")

