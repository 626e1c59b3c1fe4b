import sys
from pathlib import Path
import unittest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from layout import layout_tree
from plan import (
    FinalizeStep,
    HighlightStep,
    PlanCompiler,
    UpdateValueStep,
    VisitStep,
    VisualizerNode,
)
from sequencer import (
    AnimationController,
    InsertStage,
    Sequencer,
    VirtualScheduler,
)


SAMPLE = [10, 5, 15, 3, 7, 12, 18]
BASE = 500
POP = 100


class Rig:
    """Compiler + sequencer on a virtual clock, recording every change."""

    def __init__(self, values=SAMPLE):
        self.scheduler = VirtualScheduler()
        self.changes = []
        self.sequencer = Sequencer(self.scheduler, base_delay=BASE,
                                   pop_in_delay=POP, on_change=self._record)
        self.controller = AnimationController(PlanCompiler(values), self.sequencer)

    def _record(self, state):
        self.changes.append((self.scheduler.now, state.snapshot()))

    @property
    def state(self):
        return self.sequencer.state

    def node(self, node_id):
        return self.state.node(node_id)

    def link(self, link_id):
        for l in self.state.links:
            if l.link_id == link_id:
                return l
        return None


class TestVirtualScheduler(unittest.TestCase):
    def test_fires_in_time_then_schedule_order(self):
        s = VirtualScheduler()
        fired = []
        s.after(200, lambda: fired.append("b"))
        s.after(100, lambda: fired.append("a"))
        s.after(200, lambda: fired.append("c"))
        s.advance(150)
        self.assertEqual(fired, ["a"])
        self.assertEqual(s.now, 150)
        s.advance(50)
        self.assertEqual(fired, ["a", "b", "c"])

    def test_cancel(self):
        s = VirtualScheduler()
        fired = []
        handle = s.after(10, lambda: fired.append(1))
        s.after_cancel(handle)
        s.run_until_idle()
        self.assertEqual(fired, [])
        self.assertEqual(s.pending, 0)

    def test_callbacks_may_reschedule(self):
        s = VirtualScheduler()
        seen = []

        def tick():
            seen.append(s.now)
            if len(seen) < 3:
                s.after(10, tick)
        s.after(10, tick)
        s.run_until_idle()
        self.assertEqual(seen, [10, 20, 30])

    def test_runaway_loop_is_reported(self):
        s = VirtualScheduler()

        def forever():
            s.after(1, forever)
        s.after(1, forever)
        with self.assertRaises(RuntimeError):
            s.run_until_idle(limit=50)


class TestConfiguration(unittest.TestCase):
    def test_pop_in_must_be_shorter_than_base(self):
        with self.assertRaises(ValueError):
            Sequencer(VirtualScheduler(), base_delay=100, pop_in_delay=100)

    def test_delays_must_be_positive(self):
        with self.assertRaises(ValueError):
            Sequencer(VirtualScheduler(), base_delay=0, pop_in_delay=0)


class TestLoad(unittest.TestCase):
    def test_initial_state_is_laid_out(self):
        rig = Rig()
        snapshot = rig.controller.compiler.get_initial_state()
        expected, _ = layout_tree(snapshot.nodes, snapshot.links)
        self.assertEqual({n.id: (n.x, n.y) for n in rig.state.nodes},
                         {n.id: (n.x, n.y) for n in expected})
        self.assertFalse(rig.state.visitor_visible)
        self.assertFalse(rig.sequencer.busy)


class TestFindPlayback(unittest.TestCase):
    def test_visits_move_cursor_each_base_delay(self):
        rig = Rig()
        self.assertTrue(rig.controller.find(7))
        self.assertTrue(rig.sequencer.busy)
        root = rig.node("node-0")
        self.assertTrue(rig.state.visitor_visible)
        self.assertEqual((rig.state.visitor_x, rig.state.visitor_y), (root.x, root.y))

        rig.scheduler.advance(BASE)
        five = rig.node("node-1")
        self.assertEqual((rig.state.visitor_x, rig.state.visitor_y), (five.x, five.y))

        rig.scheduler.advance(BASE)
        seven = rig.node("node-4")
        self.assertEqual((rig.state.visitor_x, rig.state.visitor_y), (seven.x, seven.y))

    def test_plan_end_clears_busy_and_cursor(self):
        rig = Rig()
        rig.controller.find(7)
        rig.scheduler.advance(3 * BASE - 1)
        self.assertTrue(rig.sequencer.busy)
        rig.scheduler.advance(1)
        self.assertFalse(rig.sequencer.busy)
        self.assertFalse(rig.state.visitor_visible)

    def test_empty_plan_is_accepted_and_idle(self):
        rig = Rig([])
        self.assertTrue(rig.controller.find(1))
        self.assertFalse(rig.sequencer.busy)


class TestDeletePlayback(unittest.TestCase):
    def test_two_child_delete_timeline(self):
        rig = Rig()
        rig.controller.delete(10)
        root_pos = (rig.node("node-0").x, rig.node("node-0").y)

        # VISIT 10, HIGHLIGHT, VISIT 15, VISIT 12, HIGHLIGHT(both)
        rig.scheduler.advance(4 * BASE)
        self.assertEqual(rig.node("node-0").fill_color, "#e74c3c")
        self.assertEqual(rig.node("node-5").fill_color, "#e74c3c")
        self.assertIsNone(rig.node("node-2").fill_color)

        # FADE_OUT edge 15->12 (double delay)
        rig.scheduler.advance(BASE)
        self.assertEqual(rig.link("node-2->node-5").opacity, 0)
        rig.scheduler.advance(2 * BASE - 1)
        self.assertTrue(rig.state.visitor_visible)

        # HIDE_VISITOR
        rig.scheduler.advance(1)
        self.assertFalse(rig.state.visitor_visible)

        # FADE_OUT deleted node
        rig.scheduler.advance(BASE)
        self.assertEqual(rig.node("node-0").opacity, 0)
        self.assertEqual(rig.node("node-0").fill_color, "#ffffff")

        # MOVE_NODE successor onto the deleted node's position
        rig.scheduler.advance(2 * BASE)
        mover = rig.node("node-5")
        self.assertEqual((mover.x, mover.y), root_pos)

        # FINALIZE
        rig.scheduler.advance(2 * BASE)
        self.assertIsNone(rig.node("node-0"))
        self.assertEqual(len(rig.state.nodes), 6)
        self.assertTrue(rig.sequencer.busy)

        rig.scheduler.advance(BASE)
        self.assertFalse(rig.sequencer.busy)
        self.assertEqual(rig.scheduler.now, 13 * BASE)
        self.assertTrue(all(n.fill_color is None for n in rig.state.nodes))

    def test_final_state_matches_layout_of_new_tree(self):
        rig = Rig()
        rig.controller.delete(10)
        rig.scheduler.run_until_idle()
        snap = rig.controller.compiler.get_initial_state()
        expected, links = layout_tree(snap.nodes, snap.links)
        self.assertEqual({n.id: (n.x, n.y) for n in rig.state.nodes},
                         {n.id: (n.x, n.y) for n in expected})
        self.assertEqual(len(rig.state.links), len(links))

    def test_missing_value_delete_only_walks(self):
        rig = Rig()
        before = [(n.id, n.x, n.y) for n in rig.state.nodes]
        rig.controller.delete(8)
        rig.scheduler.run_until_idle()
        self.assertEqual([(n.id, n.x, n.y) for n in rig.state.nodes], before)
        self.assertEqual(rig.scheduler.now, 3 * BASE)


class TestFinalizeInsert(unittest.TestCase):
    def test_staged_reveal(self):
        rig = Rig()
        rig.controller.insert(4)            # visits 10, 5, 3
        rig.scheduler.advance(3 * BASE)     # FINALIZE_INSERT entry

        self.assertIs(rig.sequencer.insert_stage, InsertStage.SETTLE)
        self.assertFalse(rig.state.visitor_visible)
        self.assertIsNone(rig.node("node-7"))

        rig.scheduler.advance(BASE)
        self.assertIs(rig.sequencer.insert_stage, InsertStage.HIDE)
        self.assertEqual(rig.node("node-7").opacity, 0)
        self.assertEqual(rig.link("node-3->node-7").opacity, 0)

        rig.scheduler.advance(POP)
        self.assertIs(rig.sequencer.insert_stage, InsertStage.NODE_VISIBLE)
        self.assertEqual(rig.node("node-7").opacity, 1)
        self.assertEqual(rig.link("node-3->node-7").opacity, 0)
        self.assertTrue(rig.sequencer.busy)

        rig.scheduler.advance(BASE - POP - 1)
        self.assertTrue(rig.sequencer.busy)
        rig.scheduler.advance(1)
        self.assertEqual(rig.link("node-3->node-7").opacity, 1)
        self.assertFalse(rig.sequencer.busy)
        self.assertIsNone(rig.sequencer.insert_stage)

    def test_existing_nodes_settle_immediately(self):
        rig = Rig()
        plan_final = rig.controller.compiler.insert(4)[-1]
        expected, _ = layout_tree(plan_final.nodes, plan_final.links)
        expected = {n.id: (n.x, n.y) for n in expected}

        rig.sequencer.play([plan_final])
        for n in rig.state.nodes:
            self.assertEqual((n.x, n.y), expected[n.id])

    def test_opacity_order_is_hidden_node_edge(self):
        rig = Rig()
        rig.controller.insert(4)
        rig.scheduler.run_until_idle()

        seen = []
        for _, state in rig.changes:
            node = state.node("node-7")
            link = next((l for l in state.links if l.target_id == "node-7"), None)
            if node is None or link is None:
                continue
            pair = (node.opacity, link.opacity)
            if not seen or seen[-1] != pair:
                seen.append(pair)
        self.assertEqual(seen, [(0, 0), (1, 0), (1, 1)])

    def test_insert_into_empty_tree(self):
        rig = Rig([])
        rig.controller.insert(1)
        rig.scheduler.run_until_idle()
        self.assertEqual([n.value for n in rig.state.nodes], [1])
        self.assertEqual(rig.node("node-0").opacity, 1)
        self.assertEqual(rig.scheduler.now, 2 * BASE)


class TestSingleFlight(unittest.TestCase):
    def test_second_insert_rejected_while_busy(self):
        rig = Rig([])
        self.assertTrue(rig.controller.insert(4))
        rig.scheduler.advance(100)
        self.assertFalse(rig.controller.insert(6))
        rig.scheduler.run_until_idle()
        self.assertEqual(rig.controller.compiler.tree.in_order(), [4])

    def test_rejected_request_does_not_touch_tree(self):
        rig = Rig()
        rig.controller.delete(10)
        self.assertFalse(rig.controller.delete(5))
        self.assertFalse(rig.controller.find(5))
        rig.scheduler.run_until_idle()
        self.assertIn(5, rig.controller.compiler.tree.in_order())

    def test_accepts_again_after_settling(self):
        rig = Rig()
        rig.controller.insert(4)
        rig.scheduler.run_until_idle()
        self.assertTrue(rig.controller.insert(6))

    def test_play_and_load_rejected_while_busy(self):
        rig = Rig()
        rig.controller.find(3)
        self.assertFalse(rig.sequencer.play([VisitStep(node_id="node-0")]))
        self.assertFalse(rig.sequencer.load(rig.controller.compiler.get_initial_state()))


class TestOtherSteps(unittest.TestCase):
    def test_highlight_clears_other_fills(self):
        rig = Rig()
        seq = rig.sequencer
        seq.play([HighlightStep(node_ids=["node-1"]),
                  HighlightStep(node_ids=["node-2"], color="#123456")])
        self.assertEqual(rig.node("node-1").fill_color, "#ffa500")
        rig.scheduler.advance(BASE)
        self.assertIsNone(rig.node("node-1").fill_color)
        self.assertEqual(rig.node("node-2").fill_color, "#123456")
        rig.scheduler.run_until_idle()
        self.assertIsNone(rig.node("node-2").fill_color)

    def test_update_value_relabels(self):
        rig = Rig()
        rig.sequencer.play([UpdateValueStep(node_id="node-0", new_value=99)])
        self.assertEqual(rig.node("node-0").value, 99)

    def test_finalize_drops_zero_opacity_nodes(self):
        rig = Rig()
        rig.sequencer.play([FinalizeStep(
            nodes=[VisualizerNode("a", 1, opacity=0), VisualizerNode("b", 2)],
            links=[])])
        self.assertEqual([n.id for n in rig.state.nodes], ["b"])

    def test_on_step_sees_every_step_in_order(self):
        seen = []
        scheduler = VirtualScheduler()
        seq = Sequencer(scheduler, on_step=seen.append)
        controller = AnimationController(PlanCompiler(SAMPLE), seq)
        controller.delete(3)
        scheduler.run_until_idle()
        self.assertEqual(seen, controller.last_plan)

class FlakyLayout:
    """layout_tree that raises on a chosen call."""

    def __init__(self, fail_on):
        self.calls = 0
        self.fail_on = fail_on

    def __call__(self, nodes, links):
        self.calls += 1
        if self.calls == self.fail_on:
            raise RuntimeError("layout exploded")
        return layout_tree(nodes, links)


class TestFailedStep(unittest.TestCase):
    def make(self, fail_on):
        scheduler = VirtualScheduler()
        sequencer = Sequencer(scheduler, layout=FlakyLayout(fail_on))
        controller = AnimationController(PlanCompiler(SAMPLE), sequencer)
        return scheduler, sequencer, controller

    def test_failing_finalize_returns_to_idle(self):
        scheduler, sequencer, controller = self.make(fail_on=2)
        self.assertTrue(controller.delete(5))
        with self.assertLogs("sequencer", level="ERROR"):
            with self.assertRaises(RuntimeError):
                scheduler.run_until_idle()
        self.assertFalse(sequencer.busy)
        self.assertFalse(sequencer.state.visitor_visible)
        self.assertTrue(all(n.fill_color is None for n in sequencer.state.nodes))

        self.assertTrue(controller.find(3))
        scheduler.run_until_idle()
        self.assertFalse(sequencer.busy)

    def test_failing_settle_returns_to_idle(self):
        scheduler, sequencer, controller = self.make(fail_on=2)
        controller.insert(4)
        with self.assertLogs("sequencer", level="ERROR"):
            with self.assertRaises(RuntimeError):
                scheduler.run_until_idle()
        self.assertFalse(sequencer.busy)
        self.assertIsNone(sequencer.insert_stage)
        self.assertEqual(scheduler.pending, 0)

    def test_failure_in_later_insert_stage_cancels_the_rest(self):
        scheduler = VirtualScheduler()
        raised = []

        def on_change(state):
            if sequencer.insert_stage is InsertStage.NODE_VISIBLE and not raised:
                raised.append(True)
                raise RuntimeError("renderer exploded")

        sequencer = Sequencer(scheduler, on_change=on_change)
        controller = AnimationController(PlanCompiler(SAMPLE), sequencer)
        controller.insert(4)
        with self.assertLogs("sequencer", level="ERROR"):
            with self.assertRaises(RuntimeError):
                scheduler.run_until_idle()
        self.assertFalse(sequencer.busy)
        self.assertIsNone(sequencer.insert_stage)
        self.assertEqual(scheduler.pending, 0)     # EDGE_VISIBLE cancelled
        self.assertTrue(controller.find(4))

    def test_failure_on_first_step_raises_from_play(self):
        scheduler = VirtualScheduler()
        sequencer = Sequencer(scheduler)
        with self.assertLogs("sequencer", level="ERROR"):
            with self.assertRaises(TypeError):
                sequencer.play([HighlightStep(node_ids=None)])
        self.assertFalse(sequencer.busy)
        self.assertEqual(scheduler.pending, 0)


class TestDegenerateTree(unittest.TestCase):
    def test_sorted_values_load_and_animate(self):
        scheduler = VirtualScheduler()
        sequencer = Sequencer(scheduler)
        controller = AnimationController(PlanCompiler(range(1500)), sequencer)
        self.assertEqual(len(sequencer.state.nodes), 1500)

        controller.delete(0)        # root with a single right child
        scheduler.run_until_idle()
        self.assertFalse(sequencer.busy)
        self.assertEqual(len(sequencer.state.nodes), 1499)
        self.assertEqual(min(n.y for n in sequencer.state.nodes), 50)



if __name__ == "__main__":
    unittest.main()
