from __future__ import annotations
from enum import Enum
from typing import Dict, List, Mapping


class Command(str, Enum):
    SELECT_NEXT = "select_next"
    SELECT_PREVIOUS = "select_previous"
    CONFIRM_PLACEMENT = "confirm_placement"


class EdgeTrigger:
    """Turns per-tick button levels into commands fired on press only."""

    def __init__(self) -> None:
        self._held: Dict[Command, bool] = {c: False for c in Command}

    def update(self, levels: Mapping[Command, bool]) -> List[Command]:
        fired: List[Command] = []
        for command in Command:
            down = bool(levels.get(command, False))
            if down and not self._held[command]:
                fired.append(command)
            self._held[command] = down
        return fired
