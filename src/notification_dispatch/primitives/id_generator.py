import uuid
from typing import Protocol


class IIDGenerator(Protocol):
    """
    Protocol for envelope ID generation strategies.
    Useful for plugging time-ordered IDs (UUIDv7, ULID) into the dispatcher.
    """

    def next_id(self) -> str:
        """Generates the next unique identifier."""
        ...


class UUID4Generator(IIDGenerator):
    """
    Default ID generator using UUIDv4.
    """

    def next_id(self) -> str:
        """Returns a string representation of a random UUIDv4."""
        return str(uuid.uuid4())
