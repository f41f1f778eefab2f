import unittest

import numpy as np

import graphgrad as gg
from graphgrad.domain import GraphError, ShapeMismatchError


class TestTensorConstruction(unittest.TestCase):
    def test_list_uses_default_dtype(self):
        t = gg.tensor([1, 2, 3])
        self.assertEqual(t.dtype, np.float32)
        self.assertEqual(t.shape, (3,))
        self.assertTrue(t.is_leaf)
        self.assertFalse(t.requires_grad)

    def test_float_ndarray_keeps_dtype(self):
        t = gg.tensor(np.zeros((2, 2), dtype=np.float64))
        self.assertEqual(t.dtype, np.float64)

    def test_explicit_dtype(self):
        t = gg.tensor([1, 2], dtype=np.float64)
        self.assertEqual(t.dtype, np.float64)

    def test_data_is_copied(self):
        src = np.array([1.0, 2.0])
        t = gg.tensor(src)
        src[0] = 99.0
        self.assertEqual(float(t.data[0]), 1.0)

    def test_data_view_is_read_only(self):
        t = gg.tensor([1.0, 2.0])
        with self.assertRaises(ValueError):
            t.data[0] = 5.0

    def test_non_numeric_rejected(self):
        with self.assertRaises(TypeError):
            gg.tensor(["a", "b"], dtype=None)

    def test_integer_tensor_cannot_require_grad(self):
        with self.assertRaises(TypeError):
            gg.tensor([1, 2], requires_grad=True, dtype=np.int64)

    def test_from_numpy(self):
        arr = np.arange(6, dtype=np.float64).reshape(2, 3)
        t = gg.from_numpy(arr, requires_grad=True)
        self.assertEqual(t.dtype, np.float64)
        self.assertTrue(t.requires_grad)
        np.testing.assert_array_equal(t.data, arr)
        with self.assertRaises(TypeError):
            gg.from_numpy([1.0, 2.0])

    def test_factories(self):
        self.assertEqual(gg.zeros(3).shape, (3,))
        np.testing.assert_array_equal(gg.ones((2, 2)).data, np.ones((2, 2)))
        np.testing.assert_array_equal(gg.full((2,), 7.0).data, [7.0, 7.0])
        like = gg.tensor(np.zeros((2, 3), dtype=np.float64))
        self.assertEqual(gg.zeros_like(like).dtype, np.float64)
        self.assertEqual(gg.ones_like(like).shape, (2, 3))
        self.assertTrue(gg.zeros((1,), requires_grad=True).requires_grad)

    def test_factories_keep_integer_dtype(self):
        self.assertEqual(gg.zeros(3, dtype=np.int64).dtype, np.int64)
        self.assertEqual(gg.ones((2,), dtype=np.int32).dtype, np.int32)
        full = gg.full((2,), 7, dtype=np.int64)
        self.assertEqual(full.dtype, np.int64)
        np.testing.assert_array_equal(full.data, [7, 7])
        ints = gg.from_numpy(np.arange(3))
        self.assertEqual(gg.ones_like(ints).dtype, ints.dtype)
        self.assertEqual(gg.zeros_like(ints).dtype, ints.dtype)


class TestTensorProperties(unittest.TestCase):
    def test_metadata(self):
        t = gg.zeros((2, 3, 4))
        self.assertEqual(t.ndim, 3)
        self.assertEqual(t.size, 24)
        self.assertEqual(len(t), 2)
        with self.assertRaises(TypeError):
            len(gg.tensor(1.0))

    def test_item(self):
        self.assertEqual(gg.tensor([[4.0]]).item(), 4.0)
        with self.assertRaises(ValueError):
            gg.tensor([1.0, 2.0]).item()

    def test_to_numpy_is_writable_copy(self):
        t = gg.tensor([1.0, 2.0])
        arr = t.to_numpy()
        arr[0] = 10.0
        self.assertEqual(float(t.data[0]), 1.0)

    def test_computed_handle_is_not_a_leaf(self):
        x = gg.tensor([1.0])
        y = x + 1.0
        self.assertFalse(y.is_leaf)
        self.assertIn("pending", repr(y))
        y.forward()
        self.assertIn("computed", repr(y))

    def test_grad_requires_tracking(self):
        self.assertIsNone(gg.tensor([1.0]).grad)
        p = gg.Parameter([1.0, 2.0])
        np.testing.assert_array_equal(p.grad, [0.0, 0.0])

    def test_result_tracking_follows_operands(self):
        c = gg.tensor([1.0])
        p = gg.Parameter([1.0])
        self.assertFalse((c * 2.0).requires_grad)
        self.assertTrue((c * p).requires_grad)

    def test_iteration_yields_rows(self):
        t = gg.tensor(np.arange(6.0).reshape(3, 2))
        rows = [r.forward().to_numpy() for r in t]
        self.assertEqual(len(rows), 3)
        np.testing.assert_array_equal(rows[2], [4.0, 5.0])


class TestCopyFromNumpy(unittest.TestCase):
    def test_overwrites_leaf(self):
        t = gg.zeros((2,))
        t.copy_from_numpy(np.array([1.0, 2.0]))
        np.testing.assert_array_equal(t.data, [1.0, 2.0])

    def test_shape_mismatch(self):
        t = gg.zeros((2,))
        with self.assertRaises(ShapeMismatchError):
            t.copy_from_numpy(np.zeros(3))

    def test_computed_handle_rejected(self):
        y = gg.zeros((2,)) + 1.0
        with self.assertRaises(GraphError):
            y.copy_from_numpy(np.zeros(2))


class TestParameter(unittest.TestCase):
    def test_defaults_to_tracked(self):
        p = gg.Parameter(np.ones((2, 2)))
        self.assertTrue(p.requires_grad)
        self.assertTrue(p.is_leaf)
        self.assertIsInstance(p, gg.Tensor)

    def test_assign_invalidates_graph(self):
        p = gg.Parameter(np.array([1.0, 2.0]))
        y = (p * p).sum()
        self.assertAlmostEqual(y.forward().item(), 5.0)
        p.assign([3.0, 0.0])
        self.assertAlmostEqual(y.forward().item(), 9.0)

    def test_result_is_unreadable_after_input_changes(self):
        a = gg.Parameter(np.array([1.0]))
        h = a * 2.0
        np.testing.assert_allclose(h.forward().data, [2.0])
        a.assign([5.0])
        with self.assertRaises(GraphError):
            _ = h.data
        np.testing.assert_allclose(h.forward().data, [10.0])

    def test_downstream_result_is_unreadable_after_leaf_changes(self):
        a = gg.Parameter(np.array([1.0]))
        z = (a * 2.0) + 1.0
        z.forward()
        a.assign([5.0])
        with self.assertRaises(GraphError):
            z.item()
        self.assertAlmostEqual(z.forward().item(), 11.0)

    def test_assign_checks_shape(self):
        p = gg.Parameter(np.array([1.0, 2.0]))
        with self.assertRaises(ShapeMismatchError):
            p.assign([1.0])


if __name__ == "__main__":
    unittest.main()
