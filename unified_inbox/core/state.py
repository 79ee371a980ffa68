"""
Load state of a folder or the folder list.

Exactly one of Idle, Loading, Loaded or Failed holds at a time.
"""
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Loaded:
    data: Any


@dataclass(frozen=True)
class Failed:
    error: str
    reconnect_required: bool = False


LoadState = Union[Idle, Loading, Loaded, Failed]

IDLE = Idle()
LOADING = Loading()
