import unittest

import numpy as np

import graphgrad as gg
from graphgrad.domain import ShapeMismatchError


def _numeric_grad(objective, arrays, i, eps=1e-6):
    values = [a.copy() for a in arrays]
    x = values[i]
    g = np.zeros_like(x)
    for idx in np.ndindex(x.shape):
        orig = x[idx]
        x[idx] = orig + eps
        f_plus = objective(*values)
        x[idx] = orig - eps
        f_minus = objective(*values)
        x[idx] = orig
        g[idx] = (f_plus - f_minus) / (2.0 * eps)
    return g


class GradCheckCase(unittest.TestCase):
    """
    Compares analytic gradients of ``sum(build(*xs) * w)`` for a fixed random
    ``w`` against central finite differences in float64.
    """

    rtol = 1e-5
    atol = 1e-6

    def check_gradients(self, build, *arrays):
        arrays = [np.asarray(a, dtype=np.float64) for a in arrays]
        params = [gg.Parameter(a) for a in arrays]
        out = build(*params)
        weights = np.asarray(np.random.default_rng(0).standard_normal(out.shape))

        def objective(*values):
            leaves = [gg.tensor(v) for v in values]
            return float((build(*leaves) * weights).sum().forward().item())

        (out * weights).sum().backward()
        for i, p in enumerate(params):
            expected = _numeric_grad(objective, arrays, i)
            np.testing.assert_allclose(
                p.grad, expected, rtol=self.rtol, atol=self.atol,
                err_msg=f"operand {i}",
            )
        return out


def _rng(seed=1):
    return np.random.default_rng(seed)


def _away_from_zero(shape, seed=1):
    x = _rng(seed).uniform(0.2, 1.5, size=shape)
    sign = np.where(_rng(seed + 1).random(shape) < 0.5, -1.0, 1.0)
    return x * sign


class TestArithmeticGradients(GradCheckCase):
    def test_add_broadcast(self):
        self.check_gradients(
            lambda a, b: a + b, _rng().standard_normal((3, 4)), _rng(2).standard_normal((4,))
        )

    def test_sub_broadcast(self):
        self.check_gradients(
            lambda a, b: a - b, _rng().standard_normal((2, 1, 3)), _rng(2).standard_normal((4, 1))
        )

    def test_mul_broadcast(self):
        self.check_gradients(
            lambda a, b: a * b, _rng().standard_normal((2, 3)), _rng(2).standard_normal((2, 1))
        )

    def test_div(self):
        self.check_gradients(
            lambda a, b: a / b, _rng().standard_normal((3,)), _rng(2).uniform(0.5, 2.0, (3,))
        )

    def test_scalar_rdiv(self):
        self.check_gradients(lambda a: 2.0 / a, _rng().uniform(0.5, 2.0, (4,)))

    def test_pow(self):
        self.check_gradients(lambda a: a ** 3, _rng().standard_normal((3,)))
        self.check_gradients(lambda a: a ** 0.5, _rng().uniform(0.5, 2.0, (3,)))

    def test_pow_zero_gradient_is_zero_at_origin(self):
        x = gg.Parameter([0.0, 2.0])
        (x ** 0).sum().backward()
        np.testing.assert_array_equal(x.grad, [0.0, 0.0])

    def test_neg(self):
        self.check_gradients(lambda a: -a, _rng().standard_normal((2, 2)))

    def test_abs(self):
        self.check_gradients(lambda a: abs(a), _away_from_zero((5,)))
        self.check_gradients(lambda a: a.abs(), _away_from_zero((5,)))


class TestUnaryGradients(GradCheckCase):
    def test_exp(self):
        self.check_gradients(lambda a: a.exp(), _rng().standard_normal((3, 2)))

    def test_log(self):
        self.check_gradients(lambda a: a.log(), _rng().uniform(0.5, 3.0, (4,)))

    def test_sqrt(self):
        self.check_gradients(lambda a: a.sqrt(), _rng().uniform(0.5, 3.0, (4,)))

    def test_relu(self):
        self.check_gradients(lambda a: a.relu(), _away_from_zero((6,)))

    def test_leaky_relu(self):
        self.check_gradients(lambda a: a.leaky_relu(0.1), _away_from_zero((6,)))

    def test_sigmoid(self):
        self.check_gradients(lambda a: a.sigmoid(), _rng().standard_normal((5,)) * 3)

    def test_tanh(self):
        self.check_gradients(lambda a: a.tanh(), _rng().standard_normal((5,)))

    def test_softplus(self):
        self.check_gradients(lambda a: a.softplus(), _rng().standard_normal((5,)) * 3)


class TestReductionGradients(GradCheckCase):
    def test_sum(self):
        x = _rng().standard_normal((2, 3, 4))
        self.check_gradients(lambda a: a.sum(), x)
        self.check_gradients(lambda a: a.sum(axis=1), x)
        self.check_gradients(lambda a: a.sum(axis=(0, 2), keepdims=True), x)

    def test_mean(self):
        x = _rng().standard_normal((2, 3, 4))
        self.check_gradients(lambda a: a.mean(), x)
        self.check_gradients(lambda a: a.mean(axis=-1, keepdims=True), x)

    def test_max(self):
        x = _rng().standard_normal((3, 4))
        self.check_gradients(lambda a: a.max(), x)
        self.check_gradients(lambda a: a.max(axis=0), x)

    def test_max_splits_gradient_between_ties(self):
        x = gg.Parameter(np.array([1.0, 3.0, 3.0]))
        x.max().backward()
        np.testing.assert_allclose(x.grad, [0.0, 0.5, 0.5])

    def test_reduction_shapes(self):
        x = gg.zeros((2, 3, 4))
        self.assertEqual(x.sum().shape, ())
        self.assertEqual(x.sum(axis=-1).shape, (2, 3))
        self.assertEqual(x.mean(axis=(0, 1), keepdims=True).shape, (1, 1, 4))

    def test_invalid_axis(self):
        x = gg.zeros((2, 3))
        with self.assertRaises(ValueError):
            x.sum(axis=2)
        with self.assertRaises(ValueError):
            x.sum(axis=(0, 0))
        with self.assertRaises(ValueError):
            gg.zeros((0, 3)).max(axis=0)


class TestLinalgGradients(GradCheckCase):
    def test_matmul_2d(self):
        out = self.check_gradients(
            lambda a, b: a @ b, _rng().standard_normal((3, 4)), _rng(2).standard_normal((4, 2))
        )
        self.assertEqual(out.shape, (3, 2))

    def test_matmul_batched_broadcast(self):
        out = self.check_gradients(
            lambda a, b: a @ b,
            _rng().standard_normal((2, 3, 4)),
            _rng(2).standard_normal((4, 5)),
        )
        self.assertEqual(out.shape, (2, 3, 5))

    def test_matmul_vectors(self):
        self.check_gradients(
            lambda a, b: a @ b, _rng().standard_normal((4,)), _rng(2).standard_normal((4, 3))
        )
        self.check_gradients(
            lambda a, b: a @ b, _rng().standard_normal((3, 4)), _rng(2).standard_normal((4,))
        )
        out = self.check_gradients(
            lambda a, b: a.matmul(b), _rng().standard_normal((4,)), _rng(2).standard_normal((4,))
        )
        self.assertEqual(out.shape, ())

    def test_matmul_shape_errors(self):
        with self.assertRaises(ShapeMismatchError):
            gg.zeros((2, 3)) @ gg.zeros((2, 3))
        with self.assertRaises(ShapeMismatchError):
            gg.zeros(()) @ gg.zeros((2,))

    def test_transpose(self):
        x = _rng().standard_normal((2, 3, 4))
        out = self.check_gradients(lambda a: a.transpose((1, 2, 0)), x)
        self.assertEqual(out.shape, (3, 4, 2))
        self.check_gradients(lambda a: a.T, x)

    def test_transpose_rejects_non_permutation(self):
        with self.assertRaises(ValueError):
            gg.zeros((2, 3)).transpose((0, 0))

    def test_transpose_rejects_out_of_range_axis(self):
        x = gg.tensor(np.arange(6.0).reshape(2, 3))
        with self.assertRaises(ValueError):
            x.transpose((0, 3))
        with self.assertRaises(ValueError):
            x.transpose((0, -3))
        self.assertEqual(x.transpose((-1, 0)).shape, (3, 2))


class TestShapeGradients(GradCheckCase):
    def test_reshape(self):
        x = _rng().standard_normal((2, 6))
        out = self.check_gradients(lambda a: a.reshape(3, -1), x)
        self.assertEqual(out.shape, (3, 4))
        self.check_gradients(lambda a: a.reshape((12,)), x)

    def test_reshape_errors(self):
        with self.assertRaises(ShapeMismatchError):
            gg.zeros((2, 3)).reshape(4, 2)

    def test_unsqueeze_and_squeeze(self):
        x = _rng().standard_normal((3, 1, 2))
        out = self.check_gradients(lambda a: a.unsqueeze(0), x)
        self.assertEqual(out.shape, (1, 3, 1, 2))
        out = self.check_gradients(lambda a: a.squeeze(1), x)
        self.assertEqual(out.shape, (3, 2))
        self.assertEqual(gg.zeros((1, 3, 1)).squeeze().shape, (3,))
        with self.assertRaises(ShapeMismatchError):
            gg.zeros((3, 2)).squeeze(0)

    def test_broadcast_to(self):
        out = self.check_gradients(
            lambda a: a.broadcast_to((4, 2, 3)), _rng().standard_normal((2, 1))
        )
        self.assertEqual(out.shape, (4, 2, 3))
        with self.assertRaises(ShapeMismatchError):
            gg.zeros((2, 3)).broadcast_to((3, 3))

    def test_basic_indexing(self):
        x = _rng().standard_normal((4, 5))
        out = self.check_gradients(lambda a: a[1:, ::2], x)
        self.assertEqual(out.shape, (3, 3))
        out = self.check_gradients(lambda a: a[2], x)
        self.assertEqual(out.shape, (5,))

    def test_integer_array_indexing_with_repeats(self):
        x = gg.Parameter(np.arange(4.0))
        y = x[[0, 0, 3]]
        y.backward()
        np.testing.assert_allclose(y.data, [0.0, 0.0, 3.0])
        np.testing.assert_allclose(x.grad, [2.0, 0.0, 0.0, 1.0])

    def test_index_out_of_bounds(self):
        with self.assertRaises(IndexError):
            gg.zeros((3,))[5]

    def test_concatenate(self):
        out = self.check_gradients(
            lambda a, b: gg.concatenate([a, b], axis=1),
            _rng().standard_normal((2, 3)),
            _rng(2).standard_normal((2, 1)),
        )
        self.assertEqual(out.shape, (2, 4))
        with self.assertRaises(ShapeMismatchError):
            gg.concatenate([gg.zeros((2, 3)), gg.zeros((3, 3))], axis=1)
        with self.assertRaises(ValueError):
            gg.concatenate([])

    def test_stack(self):
        out = self.check_gradients(
            lambda a, b: gg.stack([a, b], axis=-1),
            _rng().standard_normal((2, 3)),
            _rng(2).standard_normal((2, 3)),
        )
        self.assertEqual(out.shape, (2, 3, 2))
        with self.assertRaises(ShapeMismatchError):
            gg.stack([gg.zeros((2,)), gg.zeros((3,))])


class TestNNGradients(GradCheckCase):
    def test_softmax(self):
        x = _rng().standard_normal((3, 4))
        out = self.check_gradients(lambda a: a.softmax(axis=1), x)
        np.testing.assert_allclose(out.data.sum(axis=1), np.ones(3))
        self.check_gradients(lambda a: a.softmax(axis=0), x)

    def test_log_softmax(self):
        x = _rng().standard_normal((3, 4))
        out = self.check_gradients(lambda a: a.log_softmax(), x)
        np.testing.assert_allclose(np.exp(out.data).sum(axis=-1), np.ones(3))

    def test_softmax_is_stable_for_large_inputs(self):
        x = gg.tensor(np.array([[1000.0, 1000.0]]))
        np.testing.assert_allclose(x.softmax().forward().data, [[0.5, 0.5]])


def _conv2d_reference(x, w, b, stride, padding):
    n, c, h, wd = x.shape
    o, _, kh, kw = w.shape
    xp = np.pad(x, ((0, 0), (0, 0), (padding, padding), (padding, padding)))
    h_out = (h + 2 * padding - kh) // stride + 1
    w_out = (wd + 2 * padding - kw) // stride + 1
    y = np.zeros((n, o, h_out, w_out))
    for i in range(h_out):
        for j in range(w_out):
            patch = xp[:, :, i * stride : i * stride + kh, j * stride : j * stride + kw]
            y[:, :, i, j] = np.einsum("nckl,ockl->no", patch, w)
    if b is not None:
        y += b[None, :, None, None]
    return y


class TestConv2d(GradCheckCase):
    def test_forward_matches_reference(self):
        x = _rng().standard_normal((2, 3, 6, 5))
        w = _rng(2).standard_normal((4, 3, 3, 3))
        b = _rng(3).standard_normal((4,))
        y = gg.conv2d(gg.tensor(x), gg.tensor(w), gg.tensor(b), stride=2, padding=1)
        np.testing.assert_allclose(
            y.forward().data, _conv2d_reference(x, w, b, 2, 1), rtol=1e-10, atol=1e-10
        )

    def test_gradients_with_bias(self):
        out = self.check_gradients(
            lambda x, w, b: gg.conv2d(x, w, b, stride=2, padding=1),
            _rng().standard_normal((2, 2, 5, 5)),
            _rng(2).standard_normal((3, 2, 3, 3)),
            _rng(3).standard_normal((3,)),
        )
        self.assertEqual(out.shape, (2, 3, 3, 3))

    def test_gradients_without_bias(self):
        self.check_gradients(
            lambda x, w: gg.conv2d(x, w),
            _rng().standard_normal((1, 2, 4, 4)),
            _rng(2).standard_normal((2, 2, 2, 2)),
        )

    def test_shape_errors(self):
        with self.assertRaises(ShapeMismatchError):
            gg.conv2d(gg.zeros((1, 3, 5, 5)), gg.zeros((2, 2, 3, 3)))
        with self.assertRaises(ShapeMismatchError):
            gg.conv2d(gg.zeros((1, 2, 2, 2)), gg.zeros((1, 2, 3, 3)))
        with self.assertRaises(ShapeMismatchError):
            gg.conv2d(gg.zeros((1, 2, 5, 5)), gg.zeros((3, 2, 3, 3)), gg.zeros((2,)))
        with self.assertRaises(ValueError):
            gg.conv2d(gg.zeros((1, 2, 5, 5)), gg.zeros((3, 2, 3, 3)), stride=0)


class TestIntegerOperands(unittest.TestCase):
    def test_float_only_kinds_promote_integers(self):
        x = gg.from_numpy(np.array([1, 3]))
        y = x.sqrt().forward()
        self.assertTrue(np.issubdtype(y.dtype, np.floating))
        np.testing.assert_allclose(y.data, np.sqrt([1.0, 3.0]), rtol=1e-6)

        q = (x / 2).forward()
        np.testing.assert_allclose(q.data, [0.5, 1.5])
        s = x.sigmoid().forward()
        np.testing.assert_allclose(s.data, 1.0 / (1.0 + np.exp(-np.array([1.0, 3.0]))), rtol=1e-6)

    def test_integer_kinds_stay_integer(self):
        x = gg.from_numpy(np.array([1, 3]))
        y = (x + x * 2).forward()
        self.assertEqual(y.dtype, x.dtype)
        np.testing.assert_array_equal(y.data, [3, 9])

    def test_fractional_scalar_promotes_integer_tensor(self):
        x = gg.from_numpy(np.array([1, 3]))
        y = (x * 0.5).forward()
        np.testing.assert_allclose(y.data, [0.5, 1.5])


class TestBuildErrors(unittest.TestCase):
    def test_incompatible_broadcast_fails_at_build_time(self):
        with self.assertRaises(ShapeMismatchError):
            gg.zeros((2, 3)) + gg.zeros((4,))

    def test_boolean_operand_rejected(self):
        with self.assertRaises(TypeError):
            gg.zeros((2,)) * True

    def test_negative_leaky_slope_rejected(self):
        with self.assertRaises(ValueError):
            gg.zeros((2,)).leaky_relu(-0.1)

    def test_non_scalar_exponent_rejected(self):
        with self.assertRaises(TypeError):
            gg.zeros((2,)) ** gg.zeros((2,))


if __name__ == "__main__":
    unittest.main()
