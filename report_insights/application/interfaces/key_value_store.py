"""Abstract key-value store — port for persisting telemetry blobs."""

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """Port — minimal string store used for optional telemetry persistence."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value or None."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove *key*; missing keys are ignored."""
        ...
