#!/usr/bin/env python3
"""
Tests for the editing session: node/connection operations, selection,
custom types, persistence and export.
"""

import os
import tempfile
import unittest

from bteditor.app.session import EditorSession
from bteditor.core.events import EventType
from bteditor.errors import FormatError, SemanticError
from bteditor.io.config_loader import EditorConfig
from bteditor.registry.manager import CatalogManager


class SessionTestCase(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.catalog = CatalogManager(load_entry_points=False)
        cls.catalog.discover_and_register()

    def setUp(self):
        self.session = EditorSession(config=EditorConfig(grid={"snap": False}), catalog=self.catalog)
        self.events = []
        self.session.events.on_any(self.events.append)

    def _tree(self):
        """Sequence A with action children B (left) and C (right)."""
        s = self.session
        a = s.create_node("Sequence", "composite", 100, 0, name="A")
        b = s.create_node("AlwaysSuccess", "action", 0, 100, name="B")
        c = s.create_node("AlwaysFailure", "action", 200, 100, name="C")
        self.assertTrue(s.create_connection(a, c))
        self.assertTrue(s.create_connection(a, b))
        return a, b, c


class TestNodes(SessionTestCase):

    def test_create_node_uses_type_defaults(self):
        node_id = self.session.create_node("Repeat", "decorator", 15, 25)
        node = self.session.store.get_node(node_id)
        self.assertEqual(node_id, "node_0")
        self.assertEqual(node.name, "Repeat")
        self.assertEqual(node.properties, {"num_cycles": 1})
        self.assertEqual((node.x, node.y), (15.0, 25.0))

    def test_create_node_unknown_type(self):
        with self.assertRaises(ValueError):
            self.session.create_node("Nope", "action", 0, 0)

    def test_grid_snap(self):
        self.session.update_grid_settings(snap=True, size=20)
        node_id = self.session.create_node("AlwaysSuccess", "action", 31, 9)
        node = self.session.store.get_node(node_id)
        self.assertEqual((node.x, node.y), (40.0, 0.0))
        self.assertEqual(self.events[0].topic, EventType.GRID_CHANGED)

    def test_invalid_grid_size(self):
        with self.assertRaises(ValueError):
            self.session.update_grid_settings(size=0)

    def test_delete_selected_nodes(self):
        a, b, c = self._tree()
        self.session.select_nodes([a, b])
        self.assertEqual(self.session.delete_selected_nodes(), 2)
        self.assertEqual([n.id for n in self.session.store.get_nodes()], [c])
        self.assertEqual(self.session.store.get_connections(), [])
        self.assertEqual(self.session.selection.nodes, [])

    def test_clone_nodes_recreates_internal_connections(self):
        a, b, c = self._tree()
        clones = self.session.clone_nodes([a, b])
        self.assertEqual(len(clones), 2)
        copy_a = self.session.store.get_node(clones[0])
        self.assertEqual(copy_a.name, "A (copy)")
        self.assertEqual((copy_a.x, copy_a.y), (150.0, 50.0))
        internal = [conn for conn in self.session.store.get_connections() if conn.source == clones[0]]
        self.assertEqual([conn.target for conn in internal], [clones[1]])

    def test_clone_unknown_node(self):
        self.assertIsNone(self.session.clone_node("node_99"))

    def test_update_properties_and_rename(self):
        node_id = self.session.create_node("Sleep", "action", 0, 0)
        self.session.update_node_properties(node_id, {"msec": 250})
        self.session.rename_node(node_id, "Nap")
        node = self.session.store.get_node(node_id)
        self.assertEqual(node.properties, {"msec": 250})
        self.assertEqual(node.name, "Nap")

    def test_align_left(self):
        a, b, c = self._tree()
        self.session.select_nodes([a, b, c])
        self.session.align_selected_nodes("left")
        self.assertEqual({n.x for n in self.session.store.get_nodes()}, {0.0})
        with self.assertRaises(ValueError):
            self.session.align_selected_nodes("diagonal")


class TestConnections(SessionTestCase):

    def test_rejected_connection_is_a_value(self):
        a, b, c = self._tree()
        d = self.session.create_node("AlwaysSuccess", "action", 0, 200)
        result = self.session.create_connection(b, d)
        self.assertFalse(result)
        self.assertEqual(result.reason, "AlwaysSuccess nodes cannot have children")
        self.assertIsNone(result.connection_id)

    def test_pending_connection_child_port_is_parent(self):
        s = self.session
        a = s.create_node("Sequence", "composite", 0, 0)
        b = s.create_node("AlwaysSuccess", "action", 0, 100)
        s.start_pending_connection(a, "child")
        result = s.complete_pending_connection(b, "parent")
        self.assertTrue(result.ok)
        conn = s.store.get_connection(result.connection_id)
        self.assertEqual((conn.source, conn.target), (a, b))
        self.assertIsNone(s.pending_connection)

    def test_pending_connection_from_parent_port(self):
        s = self.session
        a = s.create_node("Sequence", "composite", 0, 0)
        b = s.create_node("AlwaysSuccess", "action", 0, 100)
        s.start_pending_connection(b, "parent")
        conn = s.store.get_connection(s.complete_pending_connection(a, "child").connection_id)
        self.assertEqual((conn.source, conn.target), (a, b))

    def test_pending_connection_same_port(self):
        s = self.session
        a = s.create_node("Sequence", "composite", 0, 0)
        b = s.create_node("Sequence", "composite", 0, 100)
        s.start_pending_connection(a, "child")
        result = s.complete_pending_connection(b, "child")
        self.assertEqual(result.reason, "Cannot connect same port types")
        self.assertIsNone(s.pending_connection)

    def test_cancel_pending_connection(self):
        a = self.session.create_node("Sequence", "composite", 0, 0)
        self.session.start_pending_connection(a, "child")
        self.session.cancel_pending_connection()
        self.assertIsNone(self.session.pending_connection)
        self.assertEqual(self.events[-1].type, "canceled")

    def test_select_and_delete_connection(self):
        a, b, c = self._tree()
        conn_id = self.session.store.get_connections()[0].id
        self.session.select_connection(conn_id)
        self.assertEqual(self.events[-1].type, "selected")
        self.assertTrue(self.session.delete_connection(conn_id))
        self.assertIsNone(self.session.selection.connection)


class TestSelection(SessionTestCase):

    def test_selection_box_selects_intersecting_nodes(self):
        a, b, c = self._tree()
        s = self.session
        s.start_selection_box(-10, 90)
        s.update_selection_box(160, 200)
        selected = s.end_selection_box()
        self.assertEqual(selected, [b])
        self.assertFalse(s.selection_box.active)
        self.assertEqual(self.events[-1].topic, EventType.SELECTION_CHANGED)

    def test_select_add_and_deselect(self):
        a, b, c = self._tree()
        s = self.session
        s.select_node(a)
        s.select_node(b, add=True)
        self.assertEqual(s.selection.nodes, [a, b])
        s.deselect_node(a)
        self.assertEqual(s.selection.nodes, [b])
        s.select_node(c)
        self.assertEqual(s.selection.nodes, [c])


class TestCustomTypes(SessionTestCase):

    def test_add_custom_type_and_create_node(self):
        self.session.add_custom_node_type({"type": "MoveTo", "category": "action",
                                           "properties": [{"name": "goal", "default": None}]})
        node_id = self.session.create_node("MoveTo", "action", 0, 0)
        self.assertEqual(self.session.store.get_node(node_id).properties, {"goal": ""})
        self.assertEqual(self.events[0].type, "type-added")

    def test_duplicate_type_names_rejected(self):
        with self.assertRaises(ValueError):
            self.session.add_custom_node_type({"type": "Sequence", "category": "composite"})

    def test_custom_type_limits_in_connection_checks(self):
        """Connection checks see custom types added after the session was created."""
        self.session.add_custom_node_type({"type": "Pick", "category": "decorator"})
        p = self.session.create_node("Pick", "decorator", 0, 0)
        b = self.session.create_node("AlwaysSuccess", "action", 0, 100)
        c = self.session.create_node("AlwaysFailure", "action", 100, 100)
        self.assertTrue(self.session.create_connection(p, b))
        result = self.session.validator.validate(p, c)
        self.assertEqual(result.reason, "Pick nodes can have at most 1 child")
        self.assertEqual(self.session.validate_connection(p, c), result)

    def test_remove_custom_type_deletes_its_nodes(self):
        self.session.add_custom_node_type({"type": "MoveTo", "category": "action"})
        self.session.create_node("MoveTo", "action", 0, 0)
        self.assertTrue(self.session.remove_custom_node_type("MoveTo"))
        self.assertEqual(len(self.session.store), 0)
        self.assertFalse(self.session.remove_custom_node_type("MoveTo"))

    def test_toggle_category_collapse(self):
        self.assertTrue(self.session.toggle_category_collapse("action"))
        self.assertFalse(self.session.toggle_category_collapse("action"))


class TestTreeOperations(SessionTestCase):

    def test_export_xml(self):
        self._tree()
        xml = self.session.export_xml()
        self.assertIn('<AlwaysSuccess name="B"/>\n      <AlwaysFailure name="C"/>', xml)

    def test_export_blocked_by_semantics(self):
        self.session.create_node("Sequence", "composite", 0, 0, name="Lonely")
        with self.assertRaises(SemanticError) as ctx:
            self.session.export_xml()
        self.assertIn('"Lonely"', ctx.exception.message)

    def test_auto_layout_centres_parent(self):
        a, b, c = self._tree()
        self.session.auto_layout()
        nodes = {n.id: n for n in self.session.store.get_nodes()}
        self.assertLess(nodes[b].x, nodes[c].x)
        self.assertEqual(nodes[b].y, nodes[c].y)
        self.assertGreater(nodes[b].y, nodes[a].y)
        self.assertAlmostEqual(nodes[a].x, (nodes[b].x + nodes[c].x) / 2)

    def test_save_and_load(self):
        a, b, c = self._tree()
        self.session.add_custom_node_type({"type": "MoveTo", "category": "action"})
        self.session.toggle_category_collapse("decorator")
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "tree.json")
            self.session.save(path)

            other = EditorSession(config=EditorConfig(grid={"snap": False}), catalog=self.catalog)
            other.update_viewport(scale=2.5)
            other.load(path)
        self.assertEqual(other.store.get_nodes(), self.session.store.get_nodes())
        self.assertEqual([t.type for t in other.custom_node_types], ["MoveTo"])
        self.assertEqual(other.collapsed_categories, {"decorator": True})
        self.assertEqual(other.viewport.scale, 2.5)
        self.assertEqual(other.create_node("AlwaysSuccess", "action", 0, 0), "node_3")

    def test_save_blocked_by_semantics(self):
        """A childless composite cannot be saved; no file is written."""
        self.session.create_node("Sequence", "composite", 0, 0, name="Lonely")
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "tree.json")
            with self.assertRaises(SemanticError) as ctx:
                self.session.save(path)
            self.assertFalse(os.path.exists(path))
        self.assertIn('"Lonely"', ctx.exception.message)

    def test_load_is_atomic(self):
        a, b, c = self._tree()
        with self.assertRaises(FormatError):
            self.session.load_text('{"nodes": [{"id": "x"}], "connections": []}')
        with self.assertRaises(SemanticError):
            self.session.load_text({"nodes": [{"id": "node_0", "type": "Sequence", "category": "composite",
                                               "x": 0, "y": 0, "properties": {}}], "connections": []})
        self.assertEqual(len(self.session.store), 3)

    def test_load_clears_transient_state(self):
        a, b, c = self._tree()
        text = self.session.encode_state()
        self.session.select_node(a)
        self.session.start_pending_connection(a, "child")
        self.session.load_text(text)
        self.assertEqual(self.session.selection.nodes, [])
        self.assertIsNone(self.session.pending_connection)
        self.assertEqual(self.events[-1].topic, EventType.STATE_LOADED)

    def test_reset_keeps_settings(self):
        self._tree()
        self.session.add_custom_node_type({"type": "MoveTo", "category": "action"})
        self.session.update_viewport(scale=50)
        self.session.reset()
        self.assertEqual(len(self.session.store), 0)
        self.assertEqual(len(self.session.custom_node_types), 1)
        self.assertEqual(self.session.viewport.scale, 5.0)
        self.assertEqual(self.session.create_node("AlwaysSuccess", "action", 0, 0), "node_0")
        self.assertEqual(self.events[-2].topic, EventType.STATE_RESET)

    def test_strict_single_root(self):
        session = EditorSession(config=EditorConfig(grid={"snap": False}, export={"require_single_root": True}),
                                catalog=self.catalog)
        session.create_node("AlwaysSuccess", "action", 0, 0)
        session.create_node("AlwaysSuccess", "action", 200, 0)
        self.assertFalse(session.validate_tree().is_valid)


if __name__ == "__main__":
    unittest.main()
