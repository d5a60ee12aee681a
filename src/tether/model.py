from dataclasses import dataclass


@dataclass(frozen=True)
class Member:
    """A persisted record: an immutable key and its balance"""

    member_id: str
    money: int
