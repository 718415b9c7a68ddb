"""
Tests for the snapshot-based undo history.
"""

import unittest

import numpy as np

from CS_Libs.LayerLib.history import EditorSnapshot, HistoryManager
from CS_Libs.LayerLib.layer_models import ColorLayer, RasterBuffer, create_full_mask


def make_snapshot(marker: int) -> EditorSnapshot:
    """2x2 snapshot whose single layer mask starts with ``marker`` (0/1)."""
    mask = create_full_mask(2, 2)
    mask[0] = marker
    image = RasterBuffer.filled(2, 2, (marker, 0, 0, 255))
    return EditorSnapshot(image=image, layers=[ColorLayer(id="l", color=(0, 0, 0), mask=mask)])


class TestHistoryManager(unittest.TestCase):
    """Test HistoryManager push/undo/redo."""

    def setUp(self):
        self.history = HistoryManager()

    def test_empty_history(self):
        self.assertFalse(self.history.can_undo)
        self.assertFalse(self.history.can_redo)
        self.assertIsNone(self.history.undo(make_snapshot(1)))
        self.assertIsNone(self.history.redo(make_snapshot(1)))

    def test_push_undo_redo(self):
        s = make_snapshot(0)
        s2 = make_snapshot(1)
        self.history.push(s)

        restored = self.history.undo(s2)
        self.assertTrue(np.array_equal(restored.layers[0].mask, s.layers[0].mask))
        self.assertEqual(restored.image, s.image)
        self.assertTrue(self.history.can_redo)

        again = self.history.redo(restored)
        self.assertTrue(np.array_equal(again.layers[0].mask, s2.layers[0].mask))
        self.assertTrue(self.history.can_undo)
        self.assertFalse(self.history.can_redo)

    def test_push_stores_a_copy(self):
        s = make_snapshot(1)
        self.history.push(s)
        s.layers[0].mask[:] = 0
        s.image.data[:] = 0

        restored = self.history.undo(None)
        self.assertEqual(restored.layers[0].mask.tolist(), [1, 1, 1, 1])
        self.assertEqual(restored.image.pixel_at(0, 0), (1, 0, 0, 255))

    def test_redo_keeps_the_state_it_replaced(self):
        self.history.push(make_snapshot(1))
        restored = self.history.undo(make_snapshot(0))
        restored.layers[0].mask[:] = 0
        redone = self.history.redo(restored)
        back = self.history.undo(redone)
        self.assertEqual(back.layers[0].mask.tolist(), [0, 0, 0, 0])

    def test_push_clears_future(self):
        self.history.push(make_snapshot(0))
        self.history.undo(make_snapshot(1))
        self.assertTrue(self.history.can_redo)
        self.history.push(make_snapshot(1))
        self.assertFalse(self.history.can_redo)

    def test_capacity(self):
        for i in range(31):
            self.history.push(make_snapshot(i % 2))
        self.assertEqual(self.history.undo_depth, 30)

    def test_custom_capacity(self):
        history = HistoryManager(capacity=2)
        for i in range(5):
            history.push(make_snapshot(1))
        self.assertEqual(history.undo_depth, 2)
        with self.assertRaises(ValueError):
            HistoryManager(capacity=0)

    def test_clear(self):
        self.history.push(make_snapshot(0))
        self.history.undo(make_snapshot(1))
        self.history.clear()
        self.assertFalse(self.history.can_undo)
        self.assertFalse(self.history.can_redo)
