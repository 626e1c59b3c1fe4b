"""
Animation sequencer.

Plays a plan (list of steps from plan.py) against a visualization
state, one step at a time, using a tkinter-style scheduler:

    scheduler.after(ms, callback) -> handle
    scheduler.after_cancel(handle)

Any Tk widget satisfies this.  ``VirtualScheduler`` satisfies it over
a virtual clock, for tests and headless export.

State machine
─────────────
          play(plan)                 last step done
  ┌──────┐ ─────────► ┌─────────┐ ──────────────► ┌──────┐
  │ IDLE │            │ RUNNING │                 │ IDLE │
  └──────┘            └─────────┘                 └──────┘
                        play() here → rejected (returns False)

FINALIZE_INSERT is self-timed, relative to its own entry:

  +0            SETTLE        cursor hidden, old nodes slide to final spots
  +base         HIDE          final layout, new node + edge at opacity 0
  +base+pop_in  NODE_VISIBLE  new node opacity 1
  +2*base       EDGE_VISIBLE  new edge opacity 1, plan ends
"""

import copy
import heapq
import itertools
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional

from layout import layout_tree
from plan import StepType, VisualizerLink, VisualizerNode

logger = logging.getLogger(__name__)

ANIMATION_SPEED  = 500          # Default base delay per step (ms)
POP_IN_DELAY     = 100          # New node appears this long after HIDE
BACKGROUND_COLOR = "#ffffff"    # Fade-out camouflage colour
HIGHLIGHT_COLOR  = "#ffa500"    # HIGHLIGHT default when the step has none


# ═════════════════════════════════════════════════════════════════
#  VIRTUAL SCHEDULER
# ═════════════════════════════════════════════════════════════════
class VirtualScheduler:
    """
    Deterministic stand-in for ``Tk.after``.

    Time only moves when ``advance()`` or ``run_until_idle()`` is
    called.  Callbacks due at the same instant fire in the order they
    were scheduled.

    Attributes:
        now (int): Current virtual time in milliseconds.
    """

    def __init__(self):
        self.now = 0
        self._queue = []                    # heap of (due, seq, handle)
        self._callbacks = {}                # handle → callback
        self._seq = itertools.count()

    def after(self, ms, callback):
        seq = next(self._seq)
        handle = f"after#{seq}"
        heapq.heappush(self._queue, (self.now + ms, seq, handle))
        self._callbacks[handle] = callback
        return handle

    def after_cancel(self, handle):
        self._callbacks.pop(handle, None)

    @property
    def pending(self) -> int:
        return len(self._callbacks)

    def _pop_due(self, until=None):
        while self._queue:
            due, _, handle = self._queue[0]
            if until is not None and due > until:
                return None
            heapq.heappop(self._queue)
            callback = self._callbacks.pop(handle, None)
            if callback is not None:
                return due, callback
        return None

    def advance(self, ms):
        """Move the clock forward ``ms``, firing everything that falls due."""
        target = self.now + ms
        while True:
            item = self._pop_due(until=target)
            if item is None:
                break
            self.now, callback = item
            callback()
        self.now = target

    def run_until_idle(self, limit=1_000_000):
        """
        Fire callbacks in time order until none remain.

        Raises:
            RuntimeError: If more than ``limit`` callbacks fire
                          (a callback keeps rescheduling itself).
        """
        fired = 0
        while True:
            item = self._pop_due()
            if item is None:
                return
            self.now, callback = item
            callback()
            fired += 1
            if fired > limit:
                raise RuntimeError("scheduler did not go idle")


# ═════════════════════════════════════════════════════════════════
#  VISUALIZATION STATE
# ═════════════════════════════════════════════════════════════════
@dataclass
class VisualState:
    """Everything the renderer draws."""

    nodes: List[VisualizerNode] = field(default_factory=list)
    links: List[VisualizerLink] = field(default_factory=list)
    visitor_x: float = 0
    visitor_y: float = 0
    visitor_visible: bool = False

    def node(self, node_id) -> Optional[VisualizerNode]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def snapshot(self) -> "VisualState":
        """Independent deep copy, safe to keep after playback moves on."""
        return copy.deepcopy(self)


class InsertStage(Enum):
    SETTLE = "settle"
    HIDE = "hide"
    NODE_VISIBLE = "node_visible"
    EDGE_VISIBLE = "edge_visible"


# ═════════════════════════════════════════════════════════════════
#  SEQUENCER
# ═════════════════════════════════════════════════════════════════
class Sequencer:
    """
    Plays plans against a ``VisualState``, one at a time.

    Args:
        scheduler       : Object with ``after`` / ``after_cancel``.
        layout          : ``layout(nodes, links) -> (nodes, links)``.
        base_delay (int): Milliseconds between ordinary steps.
        pop_in_delay(int): FINALIZE_INSERT node pop-in offset; must be
                          smaller than ``base_delay``.
        background (str): Colour faded-out nodes are painted with.
        highlight_color : Default colour for HIGHLIGHT steps.
        on_change       : ``callback(state)`` after every visible change.
        on_step         : ``callback(step)`` when a step starts.

    Raises:
        ValueError: On non-positive delays or pop_in_delay >= base_delay.
    """

    def __init__(self, scheduler, layout=layout_tree,
                 base_delay=ANIMATION_SPEED, pop_in_delay=POP_IN_DELAY,
                 background=BACKGROUND_COLOR, highlight_color=HIGHLIGHT_COLOR,
                 on_change=None, on_step=None):
        if base_delay <= 0 or pop_in_delay <= 0:
            raise ValueError("animation delays must be positive")
        if pop_in_delay >= base_delay:
            raise ValueError(
                f"pop_in_delay ({pop_in_delay}) must be smaller than "
                f"base_delay ({base_delay})")

        self.state = VisualState()
        self.base_delay   = base_delay
        self.pop_in_delay = pop_in_delay
        self.background   = background
        self.highlight_color = highlight_color
        self.insert_stage: Optional[InsertStage] = None

        self._scheduler = scheduler
        self._layout    = layout
        self._on_change = on_change
        self._on_step   = on_step
        self._plan      = []
        self._index     = 0
        self._busy      = False
        self._pending_insert = None     # FINALIZE_INSERT being staged
        self._insert_layout  = ([], [])
        self._handles        = []       # after() ids of the running plan

        self._handlers = {
            StepType.VISIT:           self._visit,
            StepType.HIGHLIGHT:       self._highlight,
            StepType.FADE_OUT:        self._fade_out,
            StepType.HIDE_VISITOR:    self._hide_visitor,
            StepType.MOVE_NODE:       self._move_node,
            StepType.UPDATE_VALUE:    self._update_value,
            StepType.FINALIZE:        self._finalize,
            StepType.FINALIZE_INSERT: self._finalize_insert,
        }

    @property
    def busy(self) -> bool:
        return self._busy

    def _notify(self):
        if self._on_change is not None:
            self._on_change(self.state)

    # ── Initial state ───────────────────────────────────────────
    def load(self, snapshot) -> bool:
        """
        Install a laid-out snapshot as the current picture.

        Returns:
            bool: False (and nothing changes) while a plan is playing.
        """
        if self._busy:
            logger.info("load rejected: animation in progress")
            return False
        nodes, links = self._layout(snapshot.nodes, snapshot.links)
        self.state = VisualState(nodes=nodes, links=links)
        self._notify()
        return True

    # ── Playback ────────────────────────────────────────────────
    def play(self, plan) -> bool:
        """
        Start playing ``plan``.

        Returns:
            bool: True if accepted, False if another plan is still
                  running (the new plan is dropped, not queued).
        """
        if self._busy:
            logger.info("plan of %d steps rejected: animation in progress",
                        len(plan))
            return False
        if not plan:
            return True
        self._plan  = list(plan)
        self._index = 0
        self._busy  = True
        logger.debug("playing plan of %d steps", len(self._plan))
        self._process_step()
        return True

    def _process_step(self):
        if self._index >= len(self._plan):
            self._finish()
            return

        step = self._plan[self._index]
        self._index += 1
        try:
            if self._on_step is not None:
                self._on_step(step)
            delay = self._handlers[step.type](step)
            self._notify()
        except Exception:
            self._abandon(step.type.name)
            raise
        if delay is not None:
            self._after(delay, self._process_step)

    def _after(self, delay, callback):
        self._handles.append(self._scheduler.after(delay, callback))

    def _abandon(self, what):
        """A step blew up: log it and go back to idle so input works again."""
        logger.exception("%s failed, abandoning plan at step %d of %d",
                         what, self._index, len(self._plan))
        for handle in self._handles:
            self._scheduler.after_cancel(handle)
        self._pending_insert = None
        self._finish()

    def _finish(self):
        self._handles = []
        self._busy   = False
        self._plan   = []
        self._index  = 0
        self.insert_stage = None
        self.state.visitor_visible = False
        self.state.nodes = [replace(n, fill_color=None, stroke_color=None)
                            for n in self.state.nodes]
        self._notify()

    # ─────────────────────────────────────────────────────────────
    #  STEP HANDLERS. Each returns the delay before the next step,
    #  or None when the step schedules itself.
    # ─────────────────────────────────────────────────────────────

    def _visit(self, step):
        target = self.state.node(step.node_id)
        if target is not None:
            self.state.visitor_x = target.x
            self.state.visitor_y = target.y
            self.state.visitor_visible = True
        return self.base_delay

    def _highlight(self, step):
        color = step.color or self.highlight_color
        ids = set(step.node_ids)
        self.state.nodes = [replace(n, fill_color=color if n.id in ids else None)
                            for n in self.state.nodes]
        return self.base_delay

    def _fade_out(self, step):
        ids = set(step.element_ids)
        self.state.nodes = [
            replace(n, fill_color=self.background, stroke_color=self.background,
                    opacity=0) if n.id in ids else n
            for n in self.state.nodes]
        self.state.links = [replace(l, opacity=0) if l.link_id in ids else l
                            for l in self.state.links]
        return self.base_delay + self.base_delay

    def _hide_visitor(self, step):
        self.state.visitor_visible = False
        return self.base_delay

    def _move_node(self, step):
        mover  = self.state.node(step.node_id)
        target = self.state.node(step.to_node_id)
        if mover is not None and target is not None:
            self.state.nodes = [replace(n, x=target.x, y=target.y)
                                if n.id == step.node_id else n
                                for n in self.state.nodes]
        return self.base_delay + self.base_delay

    def _update_value(self, step):
        self.state.nodes = [replace(n, value=step.new_value)
                            if n.id == step.node_id else n
                            for n in self.state.nodes]
        return self.base_delay

    def _finalize(self, step):
        nodes, links = self._layout(step.nodes, step.links)
        self.state.nodes = [n for n in nodes if n.opacity != 0]
        self.state.links = links
        return self.base_delay

    # ── FINALIZE_INSERT sub-state machine ───────────────────────
    def _finalize_insert(self, step):
        self._pending_insert = step
        self._enter_insert_stage(InsertStage.SETTLE)
        return None

    def _enter_insert_stage(self, stage):
        step = self._pending_insert
        self.insert_stage = stage

        if stage is InsertStage.SETTLE:
            self.state.visitor_visible = False
            final_nodes, final_links = self._layout(step.nodes, step.links)
            self._insert_layout = (final_nodes, final_links)
            final = {n.id: n for n in final_nodes}
            self.state.nodes = [
                replace(n, x=final[n.id].x, y=final[n.id].y,
                        value=final[n.id].value) if n.id in final else n
                for n in self.state.nodes]
            self._schedule_stage(self.base_delay, InsertStage.HIDE)

        elif stage is InsertStage.HIDE:
            final_nodes, final_links = self._insert_layout
            self.state.nodes = [replace(n, opacity=0) if n.id == step.new_node_id
                                else n for n in final_nodes]
            self.state.links = [replace(l, opacity=0) if l.target_id == step.new_node_id
                                else l for l in final_links]
            self._schedule_stage(self.pop_in_delay, InsertStage.NODE_VISIBLE)
            self._schedule_stage(self.base_delay, InsertStage.EDGE_VISIBLE)

        elif stage is InsertStage.NODE_VISIBLE:
            self.state.nodes = [replace(n, opacity=1) if n.id == step.new_node_id
                                else n for n in self.state.nodes]

        elif stage is InsertStage.EDGE_VISIBLE:
            self.state.links = [replace(l, opacity=1) if l.target_id == step.new_node_id
                                else l for l in self.state.links]
            self._pending_insert = None
            self._notify()
            self._process_step()       # ends the plan (clears busy)
            return

        self._notify()

    def _schedule_stage(self, delay, stage):
        self._after(delay, lambda: self._run_stage(stage))

    def _run_stage(self, stage):
        try:
            self._enter_insert_stage(stage)
        except Exception:
            if self._busy:      # not already abandoned further down
                self._abandon(f"FINALIZE_INSERT stage {stage.name}")
            raise


# ═════════════════════════════════════════════════════════════════
#  CONTROLLER
#
#  Single-flight gate in front of the compiler: a request that
#  arrives mid-playback is dropped BEFORE the tree is touched.
# ═════════════════════════════════════════════════════════════════
class AnimationController:
    """
    Pairs one ``PlanCompiler`` with one ``Sequencer``.

    Every request returns True if it was compiled and started, False if
    it was rejected because an animation is still running.
    """

    def __init__(self, compiler, sequencer):
        self.compiler  = compiler
        self.sequencer = sequencer
        self.last_plan = []
        sequencer.load(compiler.get_initial_state())

    def _run(self, op, value) -> bool:
        if self.sequencer.busy:
            logger.info("%s %r rejected: animation in progress", op, value)
            return False
        plan = getattr(self.compiler, op)(value)
        self.last_plan = plan
        logger.info("%s %r → %d steps", op, value, len(plan))
        return self.sequencer.play(plan)

    def insert(self, value) -> bool:
        return self._run("insert", value)

    def delete(self, value) -> bool:
        return self._run("delete", value)

    def find(self, value) -> bool:
        return self._run("find", value)
