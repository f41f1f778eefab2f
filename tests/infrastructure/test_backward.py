import unittest

import numpy as np

import graphgrad as gg
from graphgrad.domain import GraphError, ShapeMismatchError, UntrackedBackwardError


def param(values) -> gg.Parameter:
    return gg.Parameter(np.asarray(values, dtype=np.float64))


class TestBackwardBasics(unittest.TestCase):
    def test_product_rule(self):
        a = param([2.0, 3.0])
        b = param([5.0, 7.0])
        y = a * b
        y.backward()
        np.testing.assert_allclose(y.data, [10.0, 21.0])
        np.testing.assert_allclose(a.grad, [5.0, 7.0])
        np.testing.assert_allclose(b.grad, [2.0, 3.0])

    def test_broadcast_add_reduces_gradient(self):
        a = param(np.zeros((3, 2)))
        b = param([1.0, 2.0])
        (a + b).backward()
        np.testing.assert_allclose(a.grad, np.ones((3, 2)))
        np.testing.assert_allclose(b.grad, [3.0, 3.0])

    def test_scalar_operands(self):
        x = param([1.0, 2.0])
        y = 3.0 * x - 1.0
        self.assertEqual(y.dtype, np.float64)
        y.backward()
        np.testing.assert_allclose(y.data, [2.0, 5.0])
        np.testing.assert_allclose(x.grad, [3.0, 3.0])

    def test_numpy_scalar_on_the_left(self):
        x = param([1.0, 2.0])
        y = np.float64(2.0) * x
        self.assertIsInstance(y, gg.Tensor)
        y.backward()
        np.testing.assert_allclose(x.grad, [2.0, 2.0])

    def test_reused_operand_sums_contributions(self):
        x = param([3.0])
        y = x * x + x
        y.backward()
        np.testing.assert_allclose(x.grad, [7.0])

    def test_leaf_gradients_accumulate_across_passes(self):
        x = param([1.0, -2.0])
        y = (x * x).sum()
        y.backward()
        y.backward()
        np.testing.assert_allclose(x.grad, [4.0, -8.0])

    def test_zero_grad_clears_leaf(self):
        x = param([1.0])
        y = x * 2.0
        y.backward()
        x.zero_grad()
        np.testing.assert_allclose(x.grad, [0.0])
        y.backward()
        np.testing.assert_allclose(x.grad, [2.0])

    def test_intermediate_gradients_describe_last_pass(self):
        x = param([1.0, 2.0])
        h = x * 3.0
        y = h.sum()
        y.backward()
        y.backward()
        np.testing.assert_allclose(h.grad, [1.0, 1.0])
        np.testing.assert_allclose(y.grad, 1.0)
        np.testing.assert_allclose(x.grad, [6.0, 6.0])

    def test_backward_from_leaf_accumulates_seed(self):
        x = param([1.0, 2.0])
        x.backward()
        x.backward([0.5, 0.5])
        np.testing.assert_allclose(x.grad, [1.5, 1.5])

    def test_untracked_operand_gets_no_gradient(self):
        x = param([2.0])
        c = gg.tensor(np.array([4.0]))
        y = x * c
        y.backward()
        np.testing.assert_allclose(x.grad, [4.0])
        self.assertIsNone(c.grad)

    def test_frozen_parameter_is_untracked(self):
        w = gg.Parameter(np.array([1.0]), requires_grad=False)
        self.assertFalse(w.requires_grad)
        self.assertIsNone(w.grad)


class TestSeeds(unittest.TestCase):
    def test_default_seed_is_ones(self):
        x = param([1.0, 2.0])
        y = x * 2.0
        y.backward()
        np.testing.assert_allclose(y.grad, [1.0, 1.0])

    def test_scalar_seed_fills(self):
        x = param([1.0, 2.0])
        (x * 2.0).backward(0.5)
        np.testing.assert_allclose(x.grad, [1.0, 1.0])

    def test_array_seed_is_used_as_given(self):
        x = param([1.0, 2.0])
        (x * 2.0).backward(np.array([1.0, -1.0]))
        np.testing.assert_allclose(x.grad, [2.0, -2.0])

    def test_seed_shape_mismatch_leaves_state_untouched(self):
        x = param([1.0, 2.0])
        y = x * 2.0
        with self.assertRaises(ShapeMismatchError):
            y.backward(np.ones(3))
        np.testing.assert_allclose(x.grad, [0.0, 0.0])

    def test_boolean_seed_rejected(self):
        x = param([1.0])
        with self.assertRaises(TypeError):
            (x * 1.0).backward(True)


class TestUntrackedBackward(unittest.TestCase):
    def test_backward_on_untracked_raises_without_mutation(self):
        w = param([1.0, 2.0])
        (w * 2.0).backward()
        before = np.array(w.grad, copy=True)

        c = gg.tensor([1.0, 2.0])
        y = c * 3.0
        with self.assertRaises(UntrackedBackwardError):
            y.backward()
        with self.assertRaises(UntrackedBackwardError):
            c.backward()
        np.testing.assert_array_equal(w.grad, before)

    def test_untracked_result_still_evaluates(self):
        c = gg.tensor(np.array([1.0, 2.0]))
        y = (c * 3.0).sum()
        self.assertFalse(y.requires_grad)
        self.assertIsNone(y.grad)
        self.assertAlmostEqual(y.forward().item(), 9.0)

    def test_detach_stops_gradient(self):
        x = param([2.0])
        y = x * x
        d = y.detach()
        self.assertFalse(d.requires_grad)
        z = d * x
        z.backward()
        # d is treated as a constant: dz/dx = d = x*x
        np.testing.assert_allclose(x.grad, [4.0])
        np.testing.assert_allclose(d.data, [4.0])


class TestReleasedGradients(unittest.TestCase):
    def test_no_grad_releases_intermediates_only(self):
        x = param([1.0, 2.0])
        h = x * 2.0
        y = h.sum()
        y.backward()
        y.no_grad()
        self.assertIsNone(h.grad)
        self.assertIsNone(y.grad)
        np.testing.assert_allclose(x.grad, [2.0, 2.0])

        with self.assertRaises(GraphError):
            y.backward()
        np.testing.assert_allclose(x.grad, [2.0, 2.0])

    def test_with_grad_restores_backward(self):
        x = param([1.0, 2.0])
        y = (x * 2.0).sum()
        y.no_grad()
        y.forward()
        self.assertAlmostEqual(y.item(), 6.0)
        y.with_grad()
        y.backward()
        np.testing.assert_allclose(x.grad, [2.0, 2.0])


if __name__ == "__main__":
    unittest.main()
