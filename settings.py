"""
User preferences, colour themes and logging setup.
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

MIN_SPEED = 100
MAX_SPEED = 2500


# ═════════════════════════════════════════════════════════════════
#  THEME DEFINITIONS
#  Each key maps to a hex colour used by the canvas and exporters.
# ═════════════════════════════════════════════════════════════════
THEMES = {
    # ── Light theme (default) ────────────────────────────────────
    "light": {
        "BG": "#f4f5f7",            # Window background
        "FG": "#2d3436",            # Labels / status text
        "ACCENT": "#1e66f5",        # Title, buttons
        "BTN_BG": "#dfe4ea",        # Button face
        "CANVAS_BG": "#ffffff",     # Tree canvas (also fade-out colour)
        "NODE_FILL": "#4a90e2",     # Resting node fill
        "NODE_STROKE": "#333333",   # Node outline
        "NODE_TEXT": "#ffffff",     # Value label
        "EDGE": "#555555",          # Parent → child lines
        "VISITOR": "#ffa500",       # Traversal cursor ring
        "HIGHLIGHT": "#ffa500",     # Default HIGHLIGHT fill
        "RED_C": "#e74c3c",         # Errors
        "GREEN_C": "#27ae60",       # Valid-tree indicator
    },
    # ── Dark theme ───────────────────────────────────────────────
    "dark": {
        "BG": "#1e1e2e",
        "FG": "#cdd6f4",
        "ACCENT": "#89b4fa",
        "BTN_BG": "#45475a",
        "CANVAS_BG": "#1e1e2e",
        "NODE_FILL": "#585b70",
        "NODE_STROKE": "#bac2de",
        "NODE_TEXT": "#ffffff",
        "EDGE": "#7f849c",
        "VISITOR": "#f9e2af",
        "HIGHLIGHT": "#f9e2af",
        "RED_C": "#f38ba8",
        "GREEN_C": "#a6e3a1",
    },
}


def default_path():
    """Settings file location; ``BSTVIZ_SETTINGS`` overrides it."""
    return os.environ.get(
        "BSTVIZ_SETTINGS",
        os.path.join(os.path.expanduser("~"), ".bstviz_v1.json"))


# ═════════════════════════════════════════════════════════════════
#  SETTINGS: persisted user preferences
# ═════════════════════════════════════════════════════════════════
class Settings:
    """
    Persistent user preferences manager.

    Attributes:
        theme        (str) : Active theme name ("light" / "dark").
        anim_speed   (int) : Base delay per animation step in ms.
        pop_in_delay (int) : Delay before an inserted node pops in.
        custom_colors(dict): Key → hex overrides on top of the theme.
    """

    def __init__(self, path=None):
        self.path          = path or default_path()
        self.theme         = "light"
        self.anim_speed    = 500
        self.pop_in_delay  = 100
        self.custom_colors = {}
        self._load()
        self._stored     = self._as_dict()   # what is on disk (or defaults)
        self._overridden = set()

    def _load(self):
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path) as f:
                d = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("could not read settings %s: %s", self.path, e)
            return
        if not isinstance(d, dict):
            logger.warning("ignoring malformed settings file %s", self.path)
            return
        theme = d.get("theme", self.theme)
        self.theme = theme if theme in THEMES else "light"
        self.anim_speed    = d.get("anim_speed", self.anim_speed)
        self.pop_in_delay  = d.get("pop_in_delay", self.pop_in_delay)
        self.custom_colors = d.get("custom_colors", {})
        try:
            self.clamp()
        except (TypeError, ValueError):
            logger.warning("bad timing values in %s, using defaults", self.path)
            self.anim_speed, self.pop_in_delay = 500, 100

    def clamp(self):
        """Keep timings inside the range the sequencer accepts."""
        self.anim_speed   = max(MIN_SPEED, min(MAX_SPEED, int(self.anim_speed)))
        self.pop_in_delay = max(1, min(self.anim_speed - 1, int(self.pop_in_delay)))

    def override(self, theme=None, anim_speed=None):
        """
        Change theme and/or speed for this run only.

        Overridden keys keep their stored value when ``save()`` writes
        the file.  A new speed can re-clamp ``pop_in_delay``, so that is
        treated as overridden too.
        """
        if theme is not None:
            self.theme = theme
            self._overridden.add("theme")
        if anim_speed is not None:
            self.anim_speed = anim_speed
            self._overridden.update(("anim_speed", "pop_in_delay"))
        self.clamp()

    def _as_dict(self):
        return {"theme": self.theme,
                "anim_speed": self.anim_speed,
                "pop_in_delay": self.pop_in_delay,
                "custom_colors": self.custom_colors}

    def save(self) -> bool:
        data = self._as_dict()
        data.update((k, self._stored[k]) for k in self._overridden)
        try:
            with open(self.path, "w") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.warning("could not save settings %s: %s", self.path, e)
            return False
        return True

    def get(self, key):
        """
        Resolve a colour key to its hex value.

        Priority: custom_colors[key] → THEMES[theme][key] → "#ffffff"
        """
        if key in self.custom_colors:
            return self.custom_colors[key]
        return THEMES.get(self.theme, THEMES["light"]).get(key, "#ffffff")


def configure_logging(verbosity=0):
    """0 → WARNING, 1 → INFO, 2+ → DEBUG."""
    level = (logging.WARNING, logging.INFO, logging.DEBUG)[min(verbosity, 2)]
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
