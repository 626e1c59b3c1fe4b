"""
╔══════════════════════════════════════════════════════════════════╗
║                 BST Animation Visualizer: Window                 ║
║                                                                  ║
║  ┌──────────────┐  plan   ┌───────────┐  on_change  ┌─────────┐  ║
║  │ PlanCompiler │ ──────► │ Sequencer │ ──────────► │ Canvas  │  ║
║  └──────────────┘         └───────────┘             └─────────┘  ║
║         ▲                       ▲                                ║
║         └── AnimationController ┘  (rejects input while busy)    ║
║                                                                  ║
║  The window itself is the sequencer's scheduler: every step is   ║
║  timed with Toplevel.after().                                    ║
╚══════════════════════════════════════════════════════════════════╝
"""

import logging
from tkinter import (
    Tk, Toplevel, Frame, Canvas, Label, Entry, Button, StringVar,
    LEFT, RIGHT, TOP, BOTH, X, NORMAL, DISABLED,
    messagebox, filedialog,
)

from bst import validate_bst
from export import GifExporter, PlaybackRecorder, blend_color
from layout import SVG_HEIGHT, SVG_WIDTH
from main import parse_value
from plan import PlanCompiler
from sequencer import AnimationController, Sequencer

logger = logging.getLogger(__name__)

NODE_RADIUS    = 20
VISITOR_RADIUS = 22
RETRY_MS       = 100    # scripted ops poll this often while busy
BUSY_MESSAGE   = "Busy, try again when the animation finishes."


class VisualizerWindow(Toplevel):
    """
    Interactive BST animation window.

    Args:
        master   (Tk)          : Hidden root window.
        compiler (PlanCompiler): Tree to visualize.
        settings (Settings)    : Colours and timing.
        ops      (list)        : (op, value) pairs to play on open.
    """

    def __init__(self, master, compiler, settings, ops=()):
        super().__init__(master)
        self.settings = settings
        self.title("BST Animation Visualizer")
        self.configure(bg=settings.get("BG"))
        self.protocol("WM_DELETE_WINDOW", self._on_close)

        # ── replay source for GIF export ──
        # re-inserting a snapshot's values breadth-first rebuilds the same shape
        self._seed    = [n.value for n in compiler.get_initial_state().nodes]
        self._history = []
        self._script  = list(ops)

        self.sequencer  = None
        self.controller = None
        self._build_ui()

        self.sequencer = Sequencer(
            self,
            base_delay=settings.anim_speed,
            pop_in_delay=settings.pop_in_delay,
            background=settings.get("CANVAS_BG"),
            highlight_color=settings.get("HIGHLIGHT"),
            on_change=self._redraw,
            on_step=self._show_step,
        )
        self.controller = AnimationController(compiler, self.sequencer)
        self._update_stats()

        if self._script:
            self.after(RETRY_MS, self._run_script)

    # ═══════════════════════════════════════════════════════════
    #  UI
    # ═══════════════════════════════════════════════════════════

    def _build_ui(self):
        s = self.settings
        bar = Frame(self, bg=s.get("BG"))
        bar.pack(side=TOP, fill=X, padx=10, pady=8)

        Label(bar, text="Value:", bg=s.get("BG"), fg=s.get("FG"),
              font=("Consolas", 11)).pack(side=LEFT)
        self.value_var = StringVar()
        self.entry = Entry(bar, textvariable=self.value_var, width=10,
                           font=("Consolas", 11))
        self.entry.pack(side=LEFT, padx=6)
        self.entry.bind("<Return>", lambda e: self._on_op("insert"))

        self.buttons = []
        for text, op in (("Insert", "insert"), ("Delete", "delete"),
                         ("Find", "find")):
            b = Button(bar, text=text, width=8, bg=s.get("BTN_BG"),
                       fg=s.get("FG"), command=lambda o=op: self._on_op(o))
            b.pack(side=LEFT, padx=3)
            self.buttons.append(b)

        self.export_btn = Button(bar, text="Export GIF", bg=s.get("BTN_BG"),
                                 fg=s.get("FG"), command=self._export_gif)
        self.export_btn.pack(side=RIGHT)
        self.buttons.append(self.export_btn)

        self.canvas = Canvas(self, width=SVG_WIDTH, height=SVG_HEIGHT,
                             bg=s.get("CANVAS_BG"), highlightthickness=0)
        self.canvas.pack(side=TOP, fill=BOTH, expand=True, padx=10)

        foot = Frame(self, bg=s.get("BG"))
        foot.pack(side=TOP, fill=X, padx=10, pady=6)
        self.status = Label(foot, text="Ready.", anchor="w", bg=s.get("BG"),
                            fg=s.get("FG"), font=("Consolas", 10))
        self.status.pack(side=LEFT, fill=X, expand=True)
        self.stats = Label(foot, text="", anchor="e", bg=s.get("BG"),
                           fg=s.get("FG"), font=("Consolas", 10))
        self.stats.pack(side=RIGHT)

    # ═══════════════════════════════════════════════════════════
    #  INPUT
    # ═══════════════════════════════════════════════════════════

    def _on_op(self, op):
        value = parse_value(self.value_var.get())
        if value is None:
            self.status.config(text="Enter a whole number.",
                               fg=self.settings.get("RED_C"))
            return
        if self._start(op, value):
            self.value_var.set("")

    def _start(self, op, value) -> bool:
        if not getattr(self.controller, op)(value):
            self.status.config(text=BUSY_MESSAGE, fg=self.settings.get("RED_C"))
            return False
        self._history.append((op, value))
        self.status.config(fg=self.settings.get("FG"))
        return True

    def _run_script(self):
        """Play CLI-supplied ops one after another, waiting out busy."""
        if not self._script:
            return
        if not self.sequencer.busy:
            op, value = self._script.pop(0)
            self._start(op, value)
        self.after(RETRY_MS, self._run_script)

    # ═══════════════════════════════════════════════════════════
    #  DRAWING
    # ═══════════════════════════════════════════════════════════

    def _show_step(self, step):
        self.status.config(text=self.controller.compiler.describe(step))

    def _redraw(self, state):
        """Repaint the canvas from the sequencer's state."""
        c, s = self.canvas, self.settings
        bg = s.get("CANVAS_BG")
        c.delete("all")

        by_id = {n.id: n for n in state.nodes}
        for link in state.links:
            src, dst = by_id.get(link.source_id), by_id.get(link.target_id)
            op = 1.0 if link.opacity is None else link.opacity
            if src is None or dst is None or op <= 0:
                continue
            c.create_line(src.x, src.y, dst.x, dst.y, width=2,
                          fill=blend_color(bg, s.get("EDGE"), op))

        r = NODE_RADIUS
        for n in state.nodes:
            op = 1.0 if n.opacity is None else n.opacity
            if op <= 0:
                continue
            c.create_oval(n.x - r, n.y - r, n.x + r, n.y + r, width=2,
                          fill=blend_color(bg, n.fill_color or s.get("NODE_FILL"), op),
                          outline=blend_color(bg, n.stroke_color or s.get("NODE_STROKE"), op))
            c.create_text(n.x, n.y, text=str(n.value),
                          fill=blend_color(bg, s.get("NODE_TEXT"), op),
                          font=("Consolas", 12, "bold"))

        if state.visitor_visible:
            vr = VISITOR_RADIUS
            c.create_oval(state.visitor_x - vr, state.visitor_y - vr,
                          state.visitor_x + vr, state.visitor_y + vr,
                          outline=s.get("VISITOR"), width=3)

        busy = self.sequencer is not None and self.sequencer.busy
        for widget in self.buttons + [self.entry]:
            widget.config(state=DISABLED if busy else NORMAL)
        if not busy and self.controller is not None:
            self._update_stats()

    def _update_stats(self):
        tree = self.controller.compiler.tree
        ok, _ = validate_bst(tree.root)
        self.stats.config(
            text=f"Nodes: {len(tree)}   Height: {tree.height()}   "
                 f"BST: {'✓' if ok else '✗'}",
            fg=self.settings.get("GREEN_C" if ok else "RED_C"))

    # ═══════════════════════════════════════════════════════════
    #  EXPORT
    # ═══════════════════════════════════════════════════════════

    def _export_gif(self):
        if not self._history:
            messagebox.showinfo("Export", "Run an operation first.", parent=self)
            return
        filename = filedialog.asksaveasfilename(
            parent=self, defaultextension=".gif",
            filetypes=[("Animated GIF", "*.gif")])
        if not filename:
            return
        recorder = PlaybackRecorder(PlanCompiler(self._seed), self.settings)
        frames = recorder.run_ops(self._history)
        try:
            GifExporter(self.settings).export(frames, filename)
        except (RuntimeError, OSError) as e:
            logger.error("GIF export failed: %s", e)
            messagebox.showerror("Export Error", str(e), parent=self)
            return
        self.status.config(text=f"Exported {len(frames)} frames → {filename}")

    def _on_close(self):
        self.settings.save()
        self.master.destroy()


def open_visualizer(compiler, settings, ops=()):
    """
    Launch the window and block in the Tk main loop.

    Args:
        compiler (PlanCompiler): Tree to visualize.
        settings (Settings)    : Loaded preferences.
        ops      (list)        : Operations to play on open.
    """
    root = Tk()
    root.withdraw()           # hide the bare Tk root window
    VisualizerWindow(root, compiler, settings, ops)
    if root.winfo_exists():
        root.mainloop()
