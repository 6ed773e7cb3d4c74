#!/usr/bin/env python3
"""
Tests for the JSON persistence codec.
"""

import json
import os
import tempfile
import unittest

from bteditor.core.models import Connection, GridSettings, Node, NodeTypeDef
from bteditor.errors import EditorIOError, FormatError
from bteditor.io import codec


def _doc(**overrides):
    doc = {
        "nodes": [
            {"id": "node_3", "type": "Sequence", "category": "composite", "name": "Root",
             "x": 100, "y": 40.5, "properties": {}},
            {"id": "node_10", "type": "AlwaysSuccess", "category": "action", "name": "Ok",
             "x": 80, "y": 120, "properties": {}},
        ],
        "connections": [{"id": "conn_7", "source": "node_3", "target": "node_10"}],
    }
    doc.update(overrides)
    return doc


class TestDecode(unittest.TestCase):

    def test_counters_resume_after_max_suffix(self):
        delta = codec.decode(json.dumps(_doc()))
        self.assertEqual(delta.next_node_id, 11)
        self.assertEqual(delta.next_connection_id, 8)
        self.assertEqual(len(delta.nodes), 2)
        self.assertIsInstance(delta.nodes[0].x, float)

    def test_optional_sections_default(self):
        delta = codec.decode(_doc())
        self.assertEqual(delta.custom_node_types, [])
        self.assertEqual(delta.collapsed_categories, {})
        self.assertFalse(delta.grid_present)

    def test_unknown_keys_ignored_and_name_defaults_to_type(self):
        doc = _doc()
        doc["viewport"] = {"scale": 2}
        del doc["nodes"][1]["name"]
        doc["nodes"][1]["color"] = "red"
        delta = codec.decode(doc)
        self.assertEqual(delta.nodes[1].name, "AlwaysSuccess")

    def test_non_numeric_ids_do_not_move_counters(self):
        doc = _doc()
        doc["nodes"][1]["id"] = "leaf"
        doc["connections"][0]["target"] = "leaf"
        doc["connections"][0]["id"] = "conn_1700000000000"
        delta = codec.decode(doc)
        self.assertEqual(delta.next_node_id, 4)
        self.assertEqual(delta.next_connection_id, 1700000000001)

    def test_invalid_json(self):
        with self.assertRaises(FormatError):
            codec.decode("{not json")
        with self.assertRaises(FormatError):
            codec.decode("[]")

    def test_missing_arrays(self):
        with self.assertRaises(FormatError):
            codec.decode({"nodes": []})
        with self.assertRaises(FormatError):
            codec.decode({"connections": []})

    def test_field_types_are_strict(self):
        for field, value in (("x", "10"), ("id", 5), ("properties", []), ("y", True)):
            doc = _doc()
            doc["nodes"][0][field] = value
            with self.assertRaises(FormatError, msg=field):
                codec.decode(doc)

    def test_referential_errors(self):
        doc = _doc()
        doc["connections"][0]["target"] = "node_99"
        with self.assertRaises(FormatError):
            codec.decode(doc)
        doc = _doc()
        doc["nodes"][1]["id"] = "node_3"
        with self.assertRaises(FormatError):
            codec.decode(doc)

    def test_format_error_is_value_error(self):
        with self.assertRaises(ValueError):
            codec.decode("")


class TestEncode(unittest.TestCase):

    def _state(self):
        return codec.StateSnapshot(
            nodes=[
                Node(id="node_0", type="Sequence", category="composite", name="Main", x=0, y=0),
                Node(id="node_5", type="Script", category="action", name="Say \"hi\"", x=20, y=80,
                     properties={"code": "print('<hi>')"}),
            ],
            connections=[Connection(id="conn_2", source="node_0", target="node_5")],
            custom_node_types=[NodeTypeDef(type="MoveTo", category="action")],
            collapsed_categories={"decorator": True},
            grid=GridSettings(enabled=True, size=10, snap=False),
        )

    def test_round_trip(self):
        """Decoding an encoded snapshot gives the same state and safe counters."""
        state = self._state()
        delta = codec.decode(codec.encode(state))
        self.assertEqual(delta.nodes, state.nodes)
        self.assertEqual(delta.connections, state.connections)
        self.assertEqual(delta.custom_node_types, state.custom_node_types)
        self.assertEqual(delta.collapsed_categories, {"decorator": True})
        self.assertEqual(delta.grid, state.grid)
        self.assertTrue(delta.grid_present)
        self.assertEqual(delta.next_node_id, 6)
        self.assertEqual(delta.next_connection_id, 3)

    def test_envelope_keys(self):
        data = json.loads(codec.encode(self._state()))
        self.assertEqual(set(data), {"nodes", "connections", "customNodeTypes", "collapsedCategories", "grid"})
        self.assertIn("maxChildren", data["customNodeTypes"][0])

    def test_files(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "sub", "tree.json")
            codec.write_file(path, codec.encode(self._state()))
            self.assertEqual(len(codec.read_file(path).nodes), 2)
            with self.assertRaises(EditorIOError):
                codec.read_file(os.path.join(tmp, "missing.json"))


if __name__ == "__main__":
    unittest.main()
