"""
Headless playback and animated-GIF export.

  PlaybackRecorder ──frames──► GifExporter ──FrameRenderer──► .gif

The recorder plays operations on a ``VirtualScheduler`` so a whole
animation is produced instantly, with the exact virtual timestamps a
live window would have used.  Those timestamps become the GIF frame
durations.

Requires Pillow.
"""

import logging
from dataclasses import dataclass

try:
    from PIL import Image, ImageDraw, ImageFont
    HAS_PIL = True
except ImportError:
    HAS_PIL = False

from layout import SVG_HEIGHT, SVG_WIDTH
from sequencer import AnimationController, Sequencer, VirtualScheduler, VisualState
from settings import Settings

logger = logging.getLogger(__name__)

NODE_RADIUS    = 20
VISITOR_RADIUS = 22
MIN_FRAME_MS   = 20     # GIF viewers clamp anything shorter


# ═════════════════════════════════════════════════════════════════
#  OPACITY BLENDING
#
#  Neither the canvas nor the GIF palette has real alpha, so a node at
#  opacity t is drawn in its colour mixed t of the way from the
#  background.
# ═════════════════════════════════════════════════════════════════

def _channels(color: str) -> tuple:
    value = int(color.lstrip("#"), 16)
    return (value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF


def blend_color(background: str, color: str, t: float) -> str:
    """``color`` faded towards ``background``; t=0 is all background."""
    t = max(0.0, min(1.0, t))
    mixed = (int(b + (c - b) * t)
             for b, c in zip(_channels(background), _channels(color)))
    return "#{:02x}{:02x}{:02x}".format(*mixed)


def _opacity(value) -> float:
    return 1.0 if value is None else float(value)


# ═════════════════════════════════════════════════════════════════
#  FRAME RENDERER
# ═════════════════════════════════════════════════════════════════
class FrameRenderer:
    """
    Draws a ``VisualState`` into a Pillow image.

    Coordinates in the state are in layout space (800 × 500); they are
    scaled to the requested image size.
    """

    def __init__(self, settings, width=SVG_WIDTH, height=SVG_HEIGHT):
        self.settings = settings
        self.width    = width
        self.height   = height

    @staticmethod
    def _load_font(size):
        candidates = [
            "DejaVuSans-Bold.ttf",
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",  # Debian/Ubuntu
            "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",              # Arch
            "arialbd.ttf",                                           # Windows
            "/System/Library/Fonts/Helvetica.ttc",                   # macOS
        ]
        for p in candidates:
            try:
                return ImageFont.truetype(p, size)
            except OSError:
                continue
        return ImageFont.load_default()

    def render(self, state: VisualState, caption=""):
        """
        Render one frame.

        Returns:
            Image: RGB Pillow image.

        Raises:
            RuntimeError: If Pillow is not installed.
        """
        if not HAS_PIL:
            raise RuntimeError("Pillow is required for image export")

        s  = self.settings
        bg = s.get("CANVAS_BG")
        img  = Image.new("RGB", (self.width, self.height), bg)
        draw = ImageDraw.Draw(img)
        font = self._load_font(16)
        sx = self.width / SVG_WIDTH
        sy = self.height / SVG_HEIGHT

        by_id = {n.id: n for n in state.nodes}

        # ── edges first so nodes sit on top ──
        for link in state.links:
            src, dst = by_id.get(link.source_id), by_id.get(link.target_id)
            op = _opacity(link.opacity)
            if src is None or dst is None or op <= 0:
                continue
            draw.line([(src.x * sx, src.y * sy), (dst.x * sx, dst.y * sy)],
                      fill=blend_color(bg, s.get("EDGE"), op), width=2)

        # ── nodes ──
        r = NODE_RADIUS
        for n in state.nodes:
            op = _opacity(n.opacity)
            if op <= 0:
                continue
            x, y = n.x * sx, n.y * sy
            fill   = blend_color(bg, n.fill_color or s.get("NODE_FILL"), op)
            stroke = blend_color(bg, n.stroke_color or s.get("NODE_STROKE"), op)
            draw.ellipse([x - r, y - r, x + r, y + r],
                         fill=fill, outline=stroke, width=2)
            txt = str(n.value)
            bb  = draw.textbbox((0, 0), txt, font=font)
            tw, th = bb[2] - bb[0], bb[3] - bb[1]
            draw.text((x - tw / 2, y - th / 2 - bb[1]), txt,
                      fill=blend_color(bg, s.get("NODE_TEXT"), op), font=font)

        # ── traversal cursor ──
        if state.visitor_visible:
            vx, vy, vr = state.visitor_x * sx, state.visitor_y * sy, VISITOR_RADIUS
            draw.ellipse([vx - vr, vy - vr, vx + vr, vy + vr],
                         outline=s.get("VISITOR"), width=3)

        if caption:
            draw.text((10, 8), caption, fill=s.get("ACCENT"), font=font)
        return img


# ═════════════════════════════════════════════════════════════════
#  PLAYBACK RECORDER
# ═════════════════════════════════════════════════════════════════
@dataclass
class Frame:
    time: int               # virtual ms since recording started
    state: VisualState
    caption: str = ""


class PlaybackRecorder:
    """
    Runs operations on a virtual clock and keeps every visible state.

    Args:
        compiler (PlanCompiler): Tree + plan source.
        settings (Settings)    : Timing and colours.
    """

    def __init__(self, compiler, settings=None):
        self.settings  = settings or Settings()
        self.compiler  = compiler
        self.scheduler = VirtualScheduler()
        self.frames    = []
        self._caption  = ""
        self.sequencer = Sequencer(
            self.scheduler,
            base_delay=self.settings.anim_speed,
            pop_in_delay=self.settings.pop_in_delay,
            background=self.settings.get("CANVAS_BG"),
            highlight_color=self.settings.get("HIGHLIGHT"),
            on_change=self._capture,
            on_step=self._on_step,
        )
        self.controller = AnimationController(compiler, self.sequencer)

    def _on_step(self, step):
        self._caption = self.compiler.describe(step)

    def _capture(self, state):
        frame = Frame(self.scheduler.now, state.snapshot(), self._caption)
        # several changes at one instant → only the last is ever seen
        if self.frames and self.frames[-1].time == frame.time:
            self.frames[-1] = frame
        else:
            self.frames.append(frame)

    def run(self, op, value) -> bool:
        """Play one operation ("insert" / "delete" / "find") to completion."""
        ok = getattr(self.controller, op)(value)
        self.scheduler.run_until_idle()
        return ok

    def run_ops(self, ops):
        """
        Play ``(op, value)`` pairs back to back.

        Returns:
            list[Frame]: Every recorded frame so far.
        """
        for op, value in ops:
            self.run(op, value)
        return self.frames


# ═════════════════════════════════════════════════════════════════
#  GIF EXPORTER
# ═════════════════════════════════════════════════════════════════
class GifExporter:
    """Writes recorded frames as a looping animated GIF."""

    def __init__(self, settings, width=SVG_WIDTH, height=SVG_HEIGHT):
        self.renderer = FrameRenderer(settings, width, height)

    def export(self, frames, filename, hold_last=1500):
        """
        Args:
            frames   (list[Frame]): From ``PlaybackRecorder``.
            filename (str)        : Output .gif path.
            hold_last(int)        : How long the final frame stays (ms).

        Raises:
            ValueError:   If ``frames`` is empty.
            RuntimeError: If Pillow is not installed.
        """
        if not frames:
            raise ValueError("nothing to export")

        images = [self.renderer.render(f.state, f.caption) for f in frames]
        durations = [max(MIN_FRAME_MS, b.time - a.time)
                     for a, b in zip(frames, frames[1:])]
        durations.append(max(MIN_FRAME_MS, hold_last))

        images[0].save(filename, save_all=True, append_images=images[1:],
                       duration=durations, loop=0)
        logger.info("wrote %d frames to %s", len(images), filename)
        return filename
