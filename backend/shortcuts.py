"""
Keyboard shortcuts for tikr.

Maps key names to session actions so any front end (the console player,
or a GUI binding real key events) shares one set of bindings:

    space / k      Play/Pause
    left / right   Seek -5s / +5s
    j / l          Seek -10s / +10s
    up / down      Volume +5% / -5%
    m              Mute
    s / e          Mark loop start / end
    u              Toggle looping
    1-9            Select loop
"""

import logging
from typing import Callable, Dict

from config import VOLUME_STEP, SEEK_STEP_SHORT, SEEK_STEP_LONG
from .session import LoopSession

logger = logging.getLogger("Tikr.Shortcuts")


def build_bindings(session: LoopSession) -> Dict[str, Callable[[], object]]:
    """Return {key name: action} for a session."""
    bindings = {
        "space": session.toggle_play,
        "k": session.toggle_play,
        "left": lambda: session.nudge(-SEEK_STEP_SHORT),
        "right": lambda: session.nudge(SEEK_STEP_SHORT),
        "j": lambda: session.nudge(-SEEK_STEP_LONG),
        "l": lambda: session.nudge(SEEK_STEP_LONG),
        "up": lambda: session.adjust_volume(VOLUME_STEP),
        "down": lambda: session.adjust_volume(-VOLUME_STEP),
        "m": session.toggle_mute,
        "s": session.mark_start,
        "e": session.mark_end,
        "u": session.toggle_looping,
    }
    for digit in range(1, 10):
        bindings[str(digit)] = (lambda index: lambda: session.select_region_at(index))(digit - 1)
    return bindings


def normalize_key(key: str) -> str:
    """Map raw key text (' ', 'ArrowLeft', 'K') to a binding name."""
    if key == " ":
        return "space"
    key = key.strip().lower()
    if key.startswith("arrow"):
        key = key[len("arrow"):]
    return key


def handle_key(session: LoopSession, key: str) -> bool:
    """
    Run the action bound to `key`.

    Returns:
        True if the key was bound
    """
    action = build_bindings(session).get(normalize_key(key))
    if action is None:
        return False
    logger.debug(f"Shortcut '{key}'")
    action()
    return True
