import functools

import numpy as np
import pytest

from ggdilrma.special.flooring import EPS, identity, max_flooring
from ggdilrma.utils.flooring import choose_flooring_fn

parameters_eps = [EPS, 1e-10, 1]


class DummyMethod:
    def __init__(self, flooring_fn=None) -> None:
        self.flooring_fn = flooring_fn


@pytest.mark.parametrize("eps", parameters_eps)
def test_max_flooring(eps: float):
    rng = np.random.default_rng(0)

    input = rng.random((3, 4))
    input[0, 0] = 0

    output = max_flooring(input, eps=eps)

    assert output.shape == input.shape
    assert np.all(output >= eps)
    assert np.all(output[input >= eps] == input[input >= eps])


def test_identity():
    input = np.arange(6).reshape(2, 3)

    assert identity(input) is input


def test_choose_flooring_fn():
    flooring_fn = functools.partial(max_flooring, eps=1)
    method = DummyMethod(flooring_fn=flooring_fn)

    assert choose_flooring_fn(None, method=method) is identity
    assert choose_flooring_fn("self", method=method) is flooring_fn
    assert choose_flooring_fn("self") is identity
    assert choose_flooring_fn(max_flooring, method=method) is max_flooring
