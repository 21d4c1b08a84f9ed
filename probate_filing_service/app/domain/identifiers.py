# Identity and optimistic-concurrency version primitives
import uuid

INITIAL_VERSION = 1


def new_identifier() -> str:
    return str(uuid.uuid4())


def next_version(version: int) -> int:
    return version + 1


def expected_stored_version(version: int) -> int:
    """Version the store must currently hold for a save of `version` to succeed.

    A freshly created aggregate is at version 1, so its expected stored version
    is 0, meaning "nothing stored yet".
    """
    return version - 1
