"""
Tests for guidance helpers and batch utilities in latentstack.diffusion.utils.
"""
import math

import numpy as np
import pytest

from latentstack.diffusion.utils import (
    classifier_free_guidance,
    guidance_scale_embedding,
    join_batch,
    randn_tensor,
    random_seed,
    seed_sequence,
    split_batch,
)


def test_guidance_embedding_shape_and_values():
    emb = guidance_scale_embedding(7.5, 256)
    assert emb.shape == (1, 256)
    assert emb.dtype == np.float32

    log_step = math.log(10000.0) / 127
    assert log_step == pytest.approx(0.0726, abs=1e-4)
    assert emb[0, 0] == pytest.approx(math.sin(1.0), abs=1e-6)
    assert emb[0, 128] == pytest.approx(math.cos(1.0), abs=1e-6)
    assert emb[0, 1] == pytest.approx(math.sin(math.exp(-log_step)), abs=1e-6)
    assert emb[0, 255] == pytest.approx(math.cos(math.exp(-127 * log_step)),
                                        abs=1e-6)


def test_guidance_embedding_ignores_scale_by_default():
    np.testing.assert_array_equal(guidance_scale_embedding(1.0),
                                  guidance_scale_embedding(8.0))


def test_guidance_embedding_apply_scale():
    emb = guidance_scale_embedding(1.0, 16, apply_scale=True)
    np.testing.assert_allclose(emb[0, :8], 0.0, atol=1e-7)
    np.testing.assert_allclose(emb[0, 8:], 1.0, atol=1e-7)

    scaled = guidance_scale_embedding(2.0, 16, apply_scale=True)
    assert scaled[0, 0] == pytest.approx(math.sin(1000.0), abs=1e-5)


@pytest.mark.parametrize('dim', [0, 2, 3, 255])
def test_guidance_embedding_rejects_bad_width(dim):
    with pytest.raises(ValueError):
        guidance_scale_embedding(7.5, dim)


def test_classifier_free_guidance():
    uncond = np.zeros((1, 4, 2, 2), dtype=np.float32)
    cond = np.ones((1, 4, 2, 2), dtype=np.float32)
    guided = classifier_free_guidance(np.concatenate([uncond, cond]), 7.5)
    assert guided.shape == (1, 4, 2, 2)
    np.testing.assert_allclose(guided, 7.5)

    guided = classifier_free_guidance(np.concatenate([uncond, cond]), 1.0)
    np.testing.assert_allclose(guided, 1.0)


def test_split_and_join_batch_preserve_order():
    batch = np.arange(3 * 2).reshape(3, 2).astype(np.float32)
    parts = split_batch(batch, 3)
    assert [p.shape for p in parts] == [(1, 2)] * 3
    assert parts[2][0, 0] == 4.0
    np.testing.assert_array_equal(join_batch(parts), batch)

    with pytest.raises(ValueError):
        split_batch(batch, 2)
    with pytest.raises(ValueError):
        join_batch([])


def test_randn_tensor():
    r = randn_tensor((2, 4, 16, 16), 42)
    assert r.shape == (2, 4, 16, 16)
    assert r.dtype == np.float32
    np.testing.assert_array_equal(r, randn_tensor((2, 4, 16, 16), 42))

    gen = np.random.default_rng(0)
    first = randn_tensor((4,), gen)
    second = randn_tensor((4,), gen)
    assert not np.array_equal(first, second)


def test_random_seeds_are_positive():
    seeds = [random_seed() for _ in range(50)]
    assert all(1 <= s < 2 ** 31 - 1 for s in seeds)

    a, b = seed_sequence(5), seed_sequence(5)
    assert [a() for _ in range(3)] == [b() for _ in range(3)]
