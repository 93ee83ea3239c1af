import logging
from typing import List, Tuple

logger = logging.getLogger(__name__)


class Notifier:
    """Collects toast messages shown to the user; every toast is also logged."""

    def __init__(self):
        self.messages: List[Tuple[str, str]] = []

    def success(self, message: str) -> None:
        logger.info(message)
        self.messages.append(("success", message))

    def error(self, message: str) -> None:
        logger.error(message)
        self.messages.append(("error", message))

    @property
    def last(self) -> Tuple[str, str]:
        return self.messages[-1] if self.messages else ("", "")

    def errors(self) -> List[str]:
        return [text for level, text in self.messages if level == "error"]

    def clear(self) -> None:
        self.messages.clear()
