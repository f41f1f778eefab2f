import unittest

import numpy as np

import graphgrad as gg


def param_with_grad(values, grad) -> gg.Parameter:
    """Build a float32 parameter whose accumulated gradient equals `grad`."""
    p = gg.Parameter(np.asarray(values, dtype=np.float32))
    (p * np.asarray(grad, dtype=np.float32)).sum().backward()
    return p


class TestSGD(unittest.TestCase):
    def test_step_updates_parameter(self):
        p = param_with_grad([1.0, 2.0, 3.0], [0.1, -0.2, 0.3])
        opt = gg.SGD([p], lr=0.5)
        opt.step()

        expected = np.array([1.0, 2.0, 3.0], dtype=np.float32) - 0.5 * np.array(
            [0.1, -0.2, 0.3], dtype=np.float32
        )
        np.testing.assert_allclose(p.data, expected, rtol=1e-6, atol=1e-7)

    def test_step_does_not_clear_gradient(self):
        p = param_with_grad([1.0], [2.0])
        gg.SGD([p], lr=0.1).step()
        np.testing.assert_allclose(p.grad, [2.0], rtol=1e-6, atol=1e-7)

    def test_zero_grad(self):
        p = param_with_grad([1.0, 1.0], [1.0, -1.0])
        opt = gg.SGD([p], lr=0.1)
        opt.zero_grad()
        np.testing.assert_array_equal(p.grad, [0.0, 0.0])

    def test_frozen_parameter_is_skipped(self):
        frozen = gg.Parameter(np.array([1.0], dtype=np.float32), requires_grad=False)
        opt = gg.SGD([frozen], lr=1.0)
        opt.step()
        np.testing.assert_array_equal(frozen.data, [1.0])

    def test_weight_decay(self):
        p = param_with_grad([2.0], [0.5])
        gg.SGD([p], lr=0.1, weight_decay=0.1).step()
        # g = 0.5 + 0.1 * 2.0 = 0.7
        np.testing.assert_allclose(p.data, [2.0 - 0.1 * 0.7], rtol=1e-6, atol=1e-7)

    def test_momentum_accumulates_velocity(self):
        p = param_with_grad([0.0], [1.0])
        opt = gg.SGD([p], lr=0.1, momentum=0.9)
        opt.step()
        np.testing.assert_allclose(p.data, [-0.1], rtol=1e-6, atol=1e-7)
        opt.step()
        # v = 0.9 * 1 + 1 = 1.9
        np.testing.assert_allclose(p.data, [-0.1 - 0.19], rtol=1e-6, atol=1e-7)

    def test_invalid_hyperparameters(self):
        p = gg.Parameter([1.0])
        with self.assertRaises(ValueError):
            gg.SGD([p], lr=0.0)
        with self.assertRaises(ValueError):
            gg.SGD([p], lr=0.1, momentum=1.0)
        with self.assertRaises(ValueError):
            gg.SGD([p], lr=0.1, weight_decay=-1.0)


class TestAdam(unittest.TestCase):
    def test_first_step_moves_by_lr(self):
        # with bias correction the first update is lr * g / (|g| + eps)
        p = param_with_grad([1.0, -1.0], [0.5, -2.0])
        gg.Adam([p], lr=0.01).step()
        np.testing.assert_allclose(p.data, [0.99, -0.99], rtol=1e-5, atol=1e-6)

    def test_matches_reference_over_several_steps(self):
        g = np.array([0.3, -0.1], dtype=np.float32)
        p = param_with_grad([1.0, 2.0], g)
        opt = gg.Adam([p], lr=0.1, betas=(0.9, 0.99), eps=1e-8)

        x = np.array([1.0, 2.0], dtype=np.float64)
        m = np.zeros(2)
        v = np.zeros(2)
        for t in range(1, 4):
            opt.step()
            m = 0.9 * m + 0.1 * g
            v = 0.99 * v + 0.01 * g * g
            m_hat = m / (1 - 0.9**t)
            v_hat = v / (1 - 0.99**t)
            x = x - 0.1 * m_hat / (np.sqrt(v_hat) + 1e-8)

        np.testing.assert_allclose(p.data, x, rtol=1e-5, atol=1e-6)

    def test_invalid_hyperparameters(self):
        p = gg.Parameter([1.0])
        with self.assertRaises(ValueError):
            gg.Adam([p], lr=-1.0)
        with self.assertRaises(ValueError):
            gg.Adam([p], betas=(1.0, 0.9))
        with self.assertRaises(ValueError):
            gg.Adam([p], eps=0.0)

    def test_minimizes_quadratic(self):
        p = gg.Parameter(np.array([3.0, -4.0]))
        loss = ((p - 1.0) * (p - 1.0)).sum()
        opt = gg.Adam([p], lr=0.1)
        for _ in range(500):
            opt.zero_grad()
            loss.backward()
            opt.step()
        np.testing.assert_allclose(p.data, [1.0, 1.0], atol=5e-2)


if __name__ == "__main__":
    unittest.main()
