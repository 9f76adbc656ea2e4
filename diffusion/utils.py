# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Diffusion utilities: noise helpers, guidance, and schedule builders.

Shared helpers used across schedulers, diffusers, and the latent codec:

- ``random_seed``:               default seed source for unset seeds.
- ``randn_tensor``:              standard-normal noise from a seeded generator.
- ``guidance_scale_embedding``:  sinusoidal embedding of the guidance scale.
- ``classifier_free_guidance``:  combine a stacked [uncond; cond] prediction.
- ``get_beta_schedule``:         build β schedules.
- ``split_batch`` / ``join_batch``: order-preserving batch split and join.
"""
from __future__ import annotations

import math
import numpy as np
from typing import Callable, List, Optional, Sequence, Tuple, Union

SeedSource = Callable[[], int]

_MAX_SEED = 2 ** 31 - 1


# ═════════════════════════════════════════════════════════════════════
#  Noise generation
# ═════════════════════════════════════════════════════════════════════

def random_seed(rng: Optional[np.random.Generator] = None) -> int:
    """Draw a fresh positive seed in ``[1, 2**31 - 1)``."""
    rng = rng or np.random.default_rng()
    return int(rng.integers(1, _MAX_SEED))


def seed_sequence(seed: int) -> SeedSource:
    """Deterministic seed source, for tests and reproducible batches."""
    rng = np.random.default_rng(seed)
    return lambda: random_seed(rng)


def randn_tensor(
    shape: Union[Tuple[int, ...], Sequence[int]],
    generator: Optional[Union[np.random.Generator, int]] = None,
    dtype: np.dtype = np.float32,
) -> np.ndarray:
    """Generate an array filled with standard normal noise.

    Args:
        shape:     Shape of the output array.
        generator: A ``numpy.random.Generator`` (advanced in place) or an
                   integer seed.
        dtype:     NumPy dtype (default ``float32``).
    """
    if not isinstance(generator, np.random.Generator):
        generator = np.random.default_rng(generator)
    return generator.standard_normal(tuple(shape)).astype(dtype)


# ═════════════════════════════════════════════════════════════════════
#  Guidance
# ═════════════════════════════════════════════════════════════════════

def guidance_scale_embedding(
    guidance_scale: float,
    embedding_dim: int = 256,
    apply_scale: bool = False,
) -> np.ndarray:
    """Sinusoidal guidance-scale embedding for LCM unets.

    ``e[i] = exp(-i * ln(10000) / (half - 1))`` for ``i < half``; the result
    is ``[sin(e), cos(e)]`` with shape ``(1, embedding_dim)``.

    By default ``guidance_scale`` does not enter the formula, so the
    embedding only depends on ``embedding_dim``.  With
    ``apply_scale=True`` the frequencies are multiplied by
    ``(guidance_scale - 1) * 1000`` first, as in the LCM paper.
    """
    if embedding_dim < 4 or embedding_dim % 2:
        raise ValueError(
            f"embedding_dim must be an even number >= 4, got {embedding_dim}")

    half_dim = embedding_dim // 2
    log_step = math.log(10000.0) / (half_dim - 1)
    emb = np.exp(np.arange(half_dim, dtype=np.float64) * -log_step)
    if apply_scale:
        emb = (guidance_scale - 1.0) * 1000.0 * emb

    out = np.concatenate([np.sin(emb), np.cos(emb)])
    return out.astype(np.float32).reshape(1, embedding_dim)


def classifier_free_guidance(
    noise_pred: np.ndarray,
    guidance_scale: float,
) -> np.ndarray:
    """Combine a batched ``[uncond; cond]`` noise prediction.

    The runtime evaluates unconditional and conditional inputs in a single
    call; the two halves are combined as::

        guided = uncond + guidance_scale * (cond - uncond)
    """
    noise_uncond, noise_cond = np.split(noise_pred, 2, axis=0)
    guided = noise_uncond + guidance_scale * (noise_cond - noise_uncond)
    return guided.astype(np.float32)


# ═════════════════════════════════════════════════════════════════════
#  Beta-schedule builder
# ═════════════════════════════════════════════════════════════════════

def get_beta_schedule(
    schedule: str,
    num_timesteps: int = 1000,
    beta_start: float = 0.0001,
    beta_end: float = 0.02,
) -> np.ndarray:
    """Construct a beta noise schedule.

    Args:
        schedule:       One of ``'linear'``, ``'cosine'``,
                        ``'scaled_linear'``, ``'squaredcos_cap_v2'``.
        num_timesteps:  Number of diffusion timesteps.
        beta_start:     Starting beta value (for linear / scaled_linear).
        beta_end:       Ending beta value.

    Returns:
        1-D float32 numpy array of length ``num_timesteps``.
    """
    if schedule == 'linear':
        return np.linspace(beta_start, beta_end, num_timesteps,
                           dtype=np.float32)
    elif schedule == 'scaled_linear':
        # square-root spacing, as in Stable Diffusion
        return (np.linspace(beta_start ** 0.5, beta_end ** 0.5,
                            num_timesteps, dtype=np.float32) ** 2)
    elif schedule in ('cosine', 'squaredcos_cap_v2'):
        steps = np.arange(num_timesteps + 1, dtype=np.float64) / num_timesteps
        alpha_bar = np.cos((steps + 0.008) / 1.008 * math.pi / 2) ** 2
        alpha_bar = alpha_bar / alpha_bar[0]
        betas = 1 - alpha_bar[1:] / alpha_bar[:-1]
        low = 0.0001 if schedule == 'cosine' else 0.0
        high = 0.9999 if schedule == 'cosine' else 0.999
        return np.clip(betas, low, high).astype(np.float32)
    else:
        raise ValueError(f"Unknown beta schedule: {schedule!r}")


# ═════════════════════════════════════════════════════════════════════
#  Batch helpers
# ═════════════════════════════════════════════════════════════════════

def split_batch(tensor: np.ndarray, count: int) -> List[np.ndarray]:
    """Split ``tensor`` along axis 0 into ``count`` equal, ordered parts."""
    if count < 1 or tensor.shape[0] % count:
        raise ValueError(
            f"Cannot split batch of {tensor.shape[0]} into {count} parts")
    return np.split(tensor, count, axis=0)


def join_batch(tensors: Sequence[np.ndarray]) -> np.ndarray:
    """Inverse of :func:`split_batch`."""
    if not tensors:
        raise ValueError("join_batch() needs at least one tensor")
    return np.concatenate(list(tensors), axis=0)


# ═════════════════════════════════════════════════════════════════════
#  Exports
# ═════════════════════════════════════════════════════════════════════

__all__ = [
    'SeedSource',
    'random_seed',
    'seed_sequence',
    'randn_tensor',
    'guidance_scale_embedding',
    'classifier_free_guidance',
    'get_beta_schedule',
    'split_batch',
    'join_batch',
]
