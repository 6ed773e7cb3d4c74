#!/usr/bin/env python3
"""
Tests for the execution status monitor and the SSE reader.
"""

import threading
import unittest
from unittest import mock

import requests

from bteditor.app.monitor import StatusMonitor, StatusStream, iter_sse_data, normalize_status
from bteditor.core.events import EventBus, EventType
from bteditor.core.graph_store import GraphStore
from bteditor.core.models import Node


class TestStatusMonitor(unittest.TestCase):

    def setUp(self):
        self.events = EventBus()
        self.store = GraphStore(self.events)
        for i, name in enumerate(("Root", "Walk", "Look")):
            self.store.add_node(Node(id=f"node_{i}", type="AlwaysSuccess", category="action", name=name))
        self.monitor = StatusMonitor(self.store, self.events)

    def test_status_mapping(self):
        self.assertEqual(normalize_status("RUNNING"), "running")
        self.assertEqual(normalize_status("active"), "running")
        self.assertEqual(normalize_status("Success"), "success")
        self.assertEqual(normalize_status("failure"), "failure")
        self.assertEqual(normalize_status("skipped"), "idle")
        self.assertEqual(normalize_status(None), "idle")

    def test_nodes_message_shape(self):
        """Names are matched exactly; unknown names are ignored."""
        states = self.monitor.apply({"nodes": [
            {"name": "Walk", "status": "active"},
            {"name": "walk", "status": "failure"},
            {"name": "Ghost", "status": "success"},
        ]})
        self.assertEqual(states, {"node_1": "running"})
        self.assertEqual(self.events.history[-1].topic, EventType.MONITOR_CHANGED)

    def test_each_message_replaces_previous_states(self):
        self.monitor.apply([{"node_name": "Root", "status": "running"},
                            {"node_name": "Look", "status": "success"}])
        self.monitor.apply({"node_name": "Walk", "status": "failure"})
        self.assertEqual(self.monitor.node_states, {"node_1": "failure"})
        self.assertEqual(self.monitor.status_of("node_0"), "idle")

    def test_clear(self):
        self.monitor.apply({"node_name": "Root", "status": "running"})
        self.monitor.clear()
        self.assertEqual(self.monitor.node_states, {})
        self.assertEqual(self.events.history[-1].type, "stopped")


class TestStatusStream(unittest.TestCase):

    def setUp(self):
        events = EventBus()
        store = GraphStore(events)
        store.add_node(Node(id="node_0", type="AlwaysSuccess", category="action", name="Root"))
        self.monitor = StatusMonitor(store, events)
        self.updates = []
        events.on(EventType.MONITOR_CHANGED, self.updates.append)

    def test_iter_sse_data(self):
        lines = [": keepalive", "data: {\"a\":", "data: 1}", "", "event: x", "data:2", ""]
        self.assertEqual(list(iter_sse_data(lines)), ['{"a":\n1}', "2"])

    def test_consume_skips_bad_payloads(self):
        stream = StatusStream(self.monitor, "http://localhost/events")
        applied = stream.consume([
            'data: {"nodes": [{"name": "Root", "status": "success"}]}', "",
            "data: not json", "",
        ])
        self.assertEqual(applied, 1)
        self.assertEqual(self.monitor.node_states, {})
        self.assertEqual(stream.drain(), 1)
        self.assertEqual(self.monitor.node_states, {"node_0": "success"})

    def test_run_reads_stream_and_clears_on_end(self):
        http = mock.MagicMock()
        resp = http.get.return_value.__enter__.return_value
        resp.iter_lines.return_value = ['data: {"node_name": "Root", "status": "running"}', ""]
        stream = StatusStream(self.monitor, "http://localhost/events", session=http)
        stream.run()
        self.assertEqual(self.updates, [])
        stream.drain()
        self.assertEqual(self.updates[0].payload["node_states"], {"node_0": "running"})
        self.assertEqual(self.monitor.node_states, {})
        self.assertFalse(self.monitor.active)
        self.assertTrue(http.get.call_args.kwargs["stream"])

    def test_run_connection_error(self):
        http = mock.MagicMock()
        http.get.side_effect = requests.exceptions.ConnectionError("refused")
        stream = StatusStream(self.monitor, "http://localhost/events", session=http)
        stream.run()
        self.assertIn("refused", stream.last_error)

    def test_reader_thread_only_queues(self):
        """Monitor updates and their events happen on the thread calling drain()."""
        seen = []
        self.monitor.events.on(EventType.MONITOR_CHANGED, lambda e: seen.append(threading.current_thread()))
        http = mock.MagicMock()
        resp = http.get.return_value.__enter__.return_value
        resp.iter_lines.return_value = ['data: {"node_name": "Root", "status": "success"}', ""]
        stream = StatusStream(self.monitor, "http://localhost/events", session=http)
        stream.start().join(5)
        self.assertEqual(seen, [])
        self.assertEqual(self.monitor.node_states, {})
        self.assertEqual(stream.drain(), 1)
        self.assertEqual(seen[0], threading.current_thread())
        self.assertFalse(self.monitor.active)

    def test_stop_closes_quiet_stream(self):
        """stop() unblocks a reader waiting for data and joins it."""
        reading = threading.Event()
        closed = threading.Event()

        def quiet_lines(decode_unicode=True):
            yield 'data: {"node_name": "Root", "status": "running"}'
            yield ""
            reading.set()
            closed.wait(5)

        http = mock.MagicMock()
        resp = http.get.return_value.__enter__.return_value
        resp.iter_lines.side_effect = quiet_lines
        resp.close.side_effect = closed.set
        stream = StatusStream(self.monitor, "http://localhost/events", session=http)
        thread = stream.start()
        self.assertTrue(reading.wait(5))
        stream.stop()
        resp.close.assert_called_once()
        self.assertFalse(thread.is_alive())
        self.assertEqual(stream.drain(), 0)
        self.assertEqual(self.monitor.node_states, {})
        self.assertFalse(self.monitor.active)


if __name__ == "__main__":
    unittest.main()
