import itertools
from typing import Any, Dict

import numpy as np
import pytest
from dummy.callback import DummyCallback

import ggdilrma
from ggdilrma import (
    GGDILRMA,
    InvalidArgument,
    PartitionedGGDILRMA,
    ShapeMismatch,
    SingularSystem,
    Variant,
)

n_bins, n_frames = 16, 200
block_length = 10

parameters_variant = ["no_partition", "partition", Variant.NO_PARTITION, Variant.PARTITION]


def create_blockwise_sources(seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)

    n_blocks = n_frames // block_length
    is_active = np.arange(n_blocks) % 2 == 0
    envelope = np.stack([np.where(is_active, 1, 0.01), np.where(is_active, 0.01, 1)], axis=-1)
    envelope = np.repeat(envelope, block_length, axis=0)  # (n_frames, n_sources)

    real = rng.standard_normal((n_bins, n_frames, 2))
    imag = rng.standard_normal((n_bins, n_frames, 2))
    source = (real + 1j * imag) / np.sqrt(2)

    return envelope * source


def create_mixture(seed: int = 0):
    mixing = np.array([[1, 0.6], [0.5, 1]])
    source = create_blockwise_sources(seed=seed)
    mixture = source @ mixing.T  # (n_bins, n_frames, n_channels)

    return source, mixture


def compute_correlation(estimated: np.ndarray, reference: np.ndarray) -> float:
    n_sources = reference.shape[-1]
    scores = []

    for est, ref in zip(estimated, reference):
        inner = np.abs(est.conj().T @ ref)
        norm = np.linalg.norm(est, axis=0)[:, np.newaxis] * np.linalg.norm(ref, axis=0)
        corr = inner / norm
        score = max(
            np.mean(corr[perm, np.arange(n_sources)])
            for perm in itertools.permutations(range(n_sources))
        )
        scores.append(score)

    return float(np.mean(scores))


@pytest.mark.parametrize("variant", parameters_variant)
@pytest.mark.parametrize("compute_cost", [True, False])
@pytest.mark.parametrize("normalize", [True, False])
def test_run(variant: str, compute_cost: bool, normalize: bool):
    _, mixture = create_mixture()
    callback = DummyCallback()

    output, cost, demix_filter = ggdilrma.run(
        mixture,
        variant=variant,
        n_iter=3,
        compute_cost=compute_cost,
        normalize=normalize,
        rng=np.random.default_rng(0),
        callbacks=callback,
    )

    assert output.shape == (n_bins, n_frames, 2)
    assert cost.shape == (4,)
    assert demix_filter.shape == (2, 2, n_bins)
    assert callback.n_calls == 4

    if compute_cost:
        assert np.all(np.isfinite(cost))
    else:
        assert np.all(np.isnan(cost))

    estimated = np.einsum("nmi,ijm->ijn", demix_filter, mixture)

    assert np.allclose(output, estimated)


def test_separation():
    source, mixture = create_mixture()

    output, cost, _ = ggdilrma.run(
        mixture,
        variant="partition",
        n_iter=100,
        n_basis=4,
        compute_cost=True,
        beta=3,
        rng=np.random.default_rng(0),
    )

    assert np.all(np.isfinite(cost))
    assert compute_correlation(output, source) > 0.9


@pytest.mark.parametrize("seed", [0, 1])
def test_run_monotonic_decrease(seed: int):
    _, mixture = create_mixture(seed=seed)

    _, cost, _ = ggdilrma.run(
        mixture,
        variant="partition",
        n_iter=20,
        beta=2,
        compute_cost=True,
        normalize=False,
        rng=np.random.default_rng(0),
    )

    assert np.all(np.diff(cost) <= 1e-8 * np.abs(cost[:-1]) + 1e-6)


@pytest.mark.parametrize("variant", ["no_partition", "partition"])
def test_run_determinism(variant: str):
    _, mixture = create_mixture()

    outputs = [
        ggdilrma.run(mixture, variant=variant, n_iter=5, rng=np.random.default_rng(3))
        for _ in range(2)
    ]

    assert np.allclose(outputs[0][0], outputs[1][0])
    assert np.allclose(outputs[0][2], outputs[1][2])


@pytest.mark.parametrize("variant", ["no_partition", "partition"])
def test_run_single_source(variant: str):
    _, mixture = create_mixture()

    _, _, demix_filter = ggdilrma.run(
        mixture[..., :1], variant=variant, n_iter=10, rng=np.random.default_rng(0)
    )

    assert demix_filter.shape == (1, 1, n_bins)
    assert np.allclose(demix_filter.imag, 0)
    assert np.all(demix_filter.real > 0)


def test_run_default_n_basis():
    _, mixture = create_mixture()
    n_basis = int(np.ceil(n_frames / 10))

    # default n_basis is accepted by initial values of its shape
    basis = np.ones((n_bins, n_basis, 2))
    output, _, _ = ggdilrma.run(mixture, n_iter=1, basis=basis, rng=np.random.default_rng(0))

    assert output.shape == mixture.shape


def test_run_initial_values():
    _, mixture = create_mixture()
    n_basis = 3

    kwargs = {
        "demix_filter": np.tile(np.eye(2, dtype=np.complex128)[..., np.newaxis], (1, 1, n_bins)),
        "basis": np.ones((n_bins, n_basis, 2)),
        "activation": np.ones((n_basis, n_frames, 2)),
    }
    output, _, _ = ggdilrma.run(mixture, n_iter=1, n_basis=n_basis, **kwargs)

    assert output.shape == mixture.shape

    kwargs = {
        "basis": np.ones((n_bins, n_basis)),
        "activation": np.ones((n_basis, n_frames)),
        "latent": np.ones((2, n_basis)),
    }
    output, _, _ = ggdilrma.run(mixture, variant="partition", n_iter=1, n_basis=n_basis, **kwargs)

    assert output.shape == mixture.shape


@pytest.mark.parametrize(
    "kwargs",
    [
        {"variant": "unknown"},
        {"variant": 1},
        {"n_iter": 0},
        {"n_iter": -3},
        {"n_basis": 0},
        {"beta": 0},
        {"domain": -1},
        {"latent": np.ones((2, 2))},
    ],
)
def test_run_invalid_argument(kwargs: Dict[str, Any]):
    _, mixture = create_mixture()

    with pytest.raises(InvalidArgument):
        ggdilrma.run(mixture, **kwargs)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"demix_filter": np.ones((2, 2, n_bins + 1))},
        {"n_basis": 2, "basis": np.ones((n_bins, 3, 2))},
        {"n_basis": 2, "activation": np.ones((2, n_frames))},
        {"variant": "partition", "n_basis": 2, "latent": np.ones((3, 2))},
        {"variant": "partition", "n_basis": 2, "basis": np.ones((n_bins, 3))},
        {"variant": "partition", "n_basis": 2, "basis": np.ones((n_bins, 2, 2))},
        {"variant": "partition", "n_basis": 2, "activation": np.ones((2, n_frames, 2))},
    ],
)
def test_run_shape_mismatch(kwargs: Dict[str, Any], monkeypatch: pytest.MonkeyPatch):
    _, mixture = create_mixture()

    def fail(*args, **kwargs):
        raise AssertionError("Initial values should be checked before separation.")

    monkeypatch.setattr(GGDILRMA, "__call__", fail)
    monkeypatch.setattr(PartitionedGGDILRMA, "__call__", fail)

    with pytest.raises(ShapeMismatch):
        ggdilrma.run(mixture, n_iter=1, **kwargs)


def test_run_too_many_channels():
    mixture = np.ones((2, n_frames, 3), dtype=np.complex128)

    with pytest.raises(ShapeMismatch):
        ggdilrma.run(mixture, n_iter=1)

    with pytest.raises(ShapeMismatch):
        ggdilrma.run(np.ones((n_bins, n_frames), dtype=np.complex128), n_iter=1)


@pytest.mark.parametrize("variant", ["no_partition", "partition"])
def test_run_singular(variant: str):
    _, mixture = create_mixture()

    with pytest.raises(SingularSystem):
        ggdilrma.run(
            mixture,
            variant=variant,
            n_iter=1,
            demix_filter=np.zeros((2, 2, n_bins), dtype=np.complex128),
        )
