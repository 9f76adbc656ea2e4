# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Noise schedulers for diffusion sampling.

Every scheduler is a per-run object built from :class:`SchedulerOptions`.
The timestep schedule, the cumulative-alpha tables, and a NumPy RNG seeded
from ``options.seed`` are created in the constructor and released by
:meth:`SchedulerBase.close`.  Use the scheduler as a context manager so the
release happens on every exit path::

    with create_scheduler(SchedulerType.LCM, options) as scheduler:
        for t in scheduler.timesteps:
            ...
            latents, denoised = scheduler.step(noise_pred, t, latents)

- **LCMScheduler** — Latent Consistency Models (Luo et al. 2023)
- **DDPMScheduler** — Denoising Diffusion Probabilistic Models (Ho et al. 2020)
- **DDIMScheduler** — Denoising Diffusion Implicit Models (Song et al. 2020)
- **EulerDiscreteScheduler** — Euler method on the ODE probability flow

``step`` always returns ``(prev_sample, denoised)``: the latent carried to
the next iteration and the current estimate of the clean sample.
"""
from __future__ import annotations

import math
import numpy as np
from typing import NamedTuple, Optional, Sequence, Union

from latentstack.config import SchedulerOptions
from latentstack.enums import SchedulerType
from latentstack.errors import SchedulerClosedError
from latentstack.diffusion.utils import get_beta_schedule, randn_tensor


# ═════════════════════════════════════════════════════════════════════
#  Helpers
# ═════════════════════════════════════════════════════════════════════

def _broadcast_to_ndim(arr: np.ndarray, ndim: int) -> np.ndarray:
    """Reshape a 1-D array to broadcast against an ndim tensor: (B,) → (B,1,…,1)."""
    shape = [-1] + [1] * (ndim - 1)
    return arr.reshape(shape)


class SchedulerResult(NamedTuple):
    prev_sample: np.ndarray
    denoised: np.ndarray


# ═════════════════════════════════════════════════════════════════════
#  SchedulerBase
# ═════════════════════════════════════════════════════════════════════

class SchedulerBase:
    """Shared state and forward process for all schedulers.

    Subclasses implement ``_build_timesteps`` and ``step``; they may
    override ``scale_input`` and ``init_noise_sigma``.
    """

    def __init__(self, options: SchedulerOptions):
        self.options = options
        self.num_train_timesteps = options.train_timesteps
        self.num_inference_steps = options.inference_steps
        self.prediction_type = options.prediction_type

        self.betas = get_beta_schedule(
            options.beta_schedule, options.train_timesteps,
            options.beta_start, options.beta_end)
        self.alphas = 1.0 - self.betas
        self.alphas_cumprod = np.cumprod(self.alphas).astype(np.float32)
        self.final_alpha_cumprod = np.float32(1.0)

        self.rng: Optional[np.random.Generator] = np.random.default_rng(
            options.seed)
        self.timesteps = self._build_timesteps(options.inference_steps)
        self._closed = False

    # ---- lifecycle ----

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        """Release the precomputed tables and the RNG.  Idempotent."""
        self.betas = None
        self.alphas = None
        self.alphas_cumprod = None
        self.rng = None
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def _ensure_open(self):
        if self._closed:
            raise SchedulerClosedError(
                f"{type(self).__name__} was used after close()")

    # ---- schedule ----

    def _build_timesteps(self, num_inference_steps: int) -> np.ndarray:
        raise NotImplementedError

    def _leading_timesteps(self, num_inference_steps: int) -> np.ndarray:
        if num_inference_steps > self.num_train_timesteps:
            raise ValueError(
                f"inference_steps ({num_inference_steps}) cannot exceed "
                f"train_timesteps ({self.num_train_timesteps})")
        self.step_ratio = self.num_train_timesteps // num_inference_steps
        return (
            np.arange(0, num_inference_steps)[::-1] * self.step_ratio
        ).astype(np.int64)

    def _step_index(self, timestep: int) -> int:
        matches = np.nonzero(self.timesteps == int(timestep))[0]
        if len(matches) == 0:
            raise ValueError(
                f"Timestep {timestep} is not part of this schedule")
        return int(matches[0])

    # ---- public API ----

    @property
    def init_noise_sigma(self) -> float:
        return 1.0

    def scale_input(self, sample: np.ndarray, timestep: int) -> np.ndarray:
        self._ensure_open()
        return sample

    def step(self, model_output: np.ndarray, timestep: int,
             sample: np.ndarray) -> SchedulerResult:
        raise NotImplementedError

    def create_random_sample(self, shape: Sequence[int],
                             init_noise_sigma: Optional[float] = None
                             ) -> np.ndarray:
        """Draw starting noise from the scheduler's RNG."""
        self._ensure_open()
        sigma = self.init_noise_sigma if init_noise_sigma is None \
            else init_noise_sigma
        return randn_tensor(shape, self.rng) * np.float32(sigma)

    def add_noise(self, original: np.ndarray, noise: np.ndarray,
                  timesteps: Union[int, Sequence[int], np.ndarray]
                  ) -> np.ndarray:
        """Forward diffusion q(x_t | x_0)."""
        self._ensure_open()
        t = np.asarray(timesteps, dtype=np.int64).ravel()
        ndim = original.ndim
        s_a = _broadcast_to_ndim(np.sqrt(self.alphas_cumprod[t]), ndim)
        s_1a = _broadcast_to_ndim(np.sqrt(1.0 - self.alphas_cumprod[t]), ndim)
        noisy = s_a * original + s_1a * noise
        return noisy.astype(np.float32)

    def _predict_x0(self, model_output: np.ndarray, sample: np.ndarray,
                    alpha_bar_t: float) -> np.ndarray:
        beta_bar_t = 1.0 - alpha_bar_t
        if self.prediction_type == 'epsilon':
            return (sample - math.sqrt(beta_bar_t) * model_output) \
                / math.sqrt(alpha_bar_t)
        elif self.prediction_type == 'v_prediction':
            return math.sqrt(alpha_bar_t) * sample \
                - math.sqrt(beta_bar_t) * model_output
        elif self.prediction_type == 'sample':
            return model_output
        raise ValueError(f"Unknown prediction type: {self.prediction_type!r}")


# ═════════════════════════════════════════════════════════════════════
#  LCMScheduler
# ═════════════════════════════════════════════════════════════════════

class LCMScheduler(SchedulerBase):
    """Latent Consistency Model multistep scheduler (Luo et al. 2023).

    The unet is distilled on a coarse "origin" schedule of
    ``original_inference_steps`` points; inference strides through that
    schedule, so 2–8 steps are enough.  Each step solves the consistency
    function in closed form and, except on the final step, re-noises the
    estimate to the next timestep with noise drawn from the scheduler RNG.

    The input is not pre-scaled and the initial noise sigma is 1.
    """

    sigma_data = 0.5
    timestep_scaling = 10.0

    def _build_timesteps(self, num_inference_steps: int) -> np.ndarray:
        origin_steps = self.options.original_inference_steps
        if origin_steps > self.num_train_timesteps:
            raise ValueError(
                f"original_inference_steps ({origin_steps}) cannot exceed "
                f"train_timesteps ({self.num_train_timesteps})")
        if num_inference_steps > origin_steps:
            raise ValueError(
                f"inference_steps ({num_inference_steps}) cannot exceed "
                f"original_inference_steps ({origin_steps})")

        c = self.num_train_timesteps // origin_steps
        origin_timesteps = np.arange(1, origin_steps + 1) * c - 1
        skipping_step = origin_steps // num_inference_steps
        timesteps = origin_timesteps[::-1][::skipping_step][:num_inference_steps]
        return timesteps.astype(np.int64)

    def get_scalings_for_boundary_condition(self, timestep: int):
        """Return ``(c_skip, c_out)`` for the consistency parameterisation."""
        scaled = float(timestep) * self.timestep_scaling
        denom = scaled ** 2 + self.sigma_data ** 2
        c_skip = self.sigma_data ** 2 / denom
        c_out = scaled / math.sqrt(denom)
        return c_skip, c_out

    def step(self, model_output: np.ndarray, timestep: int,
             sample: np.ndarray) -> SchedulerResult:
        self._ensure_open()
        idx = self._step_index(timestep)
        is_final = idx + 1 >= len(self.timesteps)

        alpha_prod_t = float(self.alphas_cumprod[int(timestep)])
        if is_final:
            alpha_prod_prev = float(self.final_alpha_cumprod)
        else:
            alpha_prod_prev = float(
                self.alphas_cumprod[int(self.timesteps[idx + 1])])

        c_skip, c_out = self.get_scalings_for_boundary_condition(timestep)
        pred_x0 = self._predict_x0(model_output, sample, alpha_prod_t)
        denoised = (c_out * pred_x0 + c_skip * sample).astype(np.float32)

        if is_final:
            prev = denoised
        else:
            noise = randn_tensor(model_output.shape, self.rng)
            prev = (math.sqrt(alpha_prod_prev) * denoised
                    + math.sqrt(1.0 - alpha_prod_prev) * noise)

        return SchedulerResult(prev.astype(np.float32), denoised)


# ═════════════════════════════════════════════════════════════════════
#  DDPMScheduler
# ═════════════════════════════════════════════════════════════════════

class DDPMScheduler(SchedulerBase):
    """Denoising Diffusion Probabilistic Models (Ho et al. 2020).

    Stochastic reverse process on a ``leading``-spaced schedule.  Posterior
    noise is drawn from the scheduler RNG, so runs are reproducible for a
    fixed seed.

    Args:
        options:     Sampling options.
        clip_sample: Whether to clip predicted x₀ to [-1, 1].
    """

    def __init__(self, options: SchedulerOptions, clip_sample: bool = False):
        self.clip_sample = clip_sample
        super().__init__(options)

    def _build_timesteps(self, num_inference_steps: int) -> np.ndarray:
        return self._leading_timesteps(num_inference_steps)

    def step(self, model_output: np.ndarray, timestep: int,
             sample: np.ndarray) -> SchedulerResult:
        """Reverse diffusion step p(x_{t-1}|x_t)."""
        self._ensure_open()
        t = int(timestep)
        prev_t = t - self.step_ratio

        alpha_prod_t = float(self.alphas_cumprod[t])
        alpha_prod_prev = float(self.alphas_cumprod[prev_t]) if prev_t >= 0 \
            else 1.0
        beta_prod_t = 1.0 - alpha_prod_t
        beta_prod_prev = 1.0 - alpha_prod_prev
        current_alpha_t = alpha_prod_t / alpha_prod_prev
        current_beta_t = 1.0 - current_alpha_t

        pred_x0 = self._predict_x0(model_output, sample, alpha_prod_t)
        if self.clip_sample:
            pred_x0 = np.clip(pred_x0, -1.0, 1.0)

        # Posterior q(x_{t-1}|x_t, x_0)
        coef1 = math.sqrt(alpha_prod_prev) * current_beta_t / beta_prod_t
        coef2 = math.sqrt(current_alpha_t) * beta_prod_prev / beta_prod_t
        prev = coef1 * pred_x0 + coef2 * sample

        if t > 0:
            variance = max(beta_prod_prev / beta_prod_t * current_beta_t, 1e-20)
            noise = randn_tensor(sample.shape, self.rng)
            prev = prev + math.sqrt(variance) * noise

        return SchedulerResult(prev.astype(np.float32),
                               pred_x0.astype(np.float32))


# ═════════════════════════════════════════════════════════════════════
#  DDIMScheduler
# ═════════════════════════════════════════════════════════════════════

class DDIMScheduler(SchedulerBase):
    """Denoising Diffusion Implicit Models (Song et al. 2020).

    Deterministic when ``eta == 0``; otherwise the extra noise is drawn
    from the scheduler RNG.

    Args:
        options:     Sampling options.
        eta:         Stochasticity weight (0 = DDIM, 1 = DDPM-like).
        clip_sample: Clip predicted x₀ to [-1, 1].
    """

    def __init__(self, options: SchedulerOptions, eta: float = 0.0,
                 clip_sample: bool = False):
        self.eta = eta
        self.clip_sample = clip_sample
        super().__init__(options)

    def _build_timesteps(self, num_inference_steps: int) -> np.ndarray:
        return self._leading_timesteps(num_inference_steps)

    def step(self, model_output: np.ndarray, timestep: int,
             sample: np.ndarray) -> SchedulerResult:
        """DDIM reverse step (deterministic when eta=0)."""
        self._ensure_open()
        t = int(timestep)
        prev_t = t - self.step_ratio
        alpha_bar_t = float(self.alphas_cumprod[t])
        alpha_bar_prev = float(self.alphas_cumprod[prev_t]) if prev_t >= 0 \
            else float(self.final_alpha_cumprod)

        pred_x0 = self._predict_x0(model_output, sample, alpha_bar_t)
        if self.prediction_type == 'v_prediction':
            pred_eps = math.sqrt(alpha_bar_t) * model_output \
                + math.sqrt(1 - alpha_bar_t) * sample
        elif self.prediction_type == 'sample':
            pred_eps = (sample - math.sqrt(alpha_bar_t) * pred_x0) \
                / math.sqrt(1 - alpha_bar_t)
        else:
            pred_eps = model_output

        if self.clip_sample:
            pred_x0 = np.clip(pred_x0, -1.0, 1.0)

        sigma = self.eta * math.sqrt(
            (1 - alpha_bar_prev) / (1 - alpha_bar_t)
            * (1 - alpha_bar_t / alpha_bar_prev)
        )
        pred_dir = math.sqrt(max(1 - alpha_bar_prev - sigma ** 2, 0.0)) * pred_eps
        prev = math.sqrt(alpha_bar_prev) * pred_x0 + pred_dir

        if self.eta > 0 and t > 0:
            prev = prev + sigma * randn_tensor(sample.shape, self.rng)

        return SchedulerResult(prev.astype(np.float32),
                               pred_x0.astype(np.float32))


# ═════════════════════════════════════════════════════════════════════
#  EulerDiscreteScheduler
# ═════════════════════════════════════════════════════════════════════

class EulerDiscreteScheduler(SchedulerBase):
    """Euler method on the ODE probability flow (Karras et al. 2022).

    Works in sigma space: the model input is pre-scaled by
    ``1 / sqrt(sigma² + 1)`` and the starting noise by the largest sigma.

    Args:
        options:           Sampling options.
        use_karras_sigmas: If True, remap sigmas using the Karras schedule.
    """

    def __init__(self, options: SchedulerOptions,
                 use_karras_sigmas: bool = False):
        self.use_karras_sigmas = use_karras_sigmas
        super().__init__(options)

    def _build_timesteps(self, num_inference_steps: int) -> np.ndarray:
        if num_inference_steps > self.num_train_timesteps:
            raise ValueError(
                f"inference_steps ({num_inference_steps}) cannot exceed "
                f"train_timesteps ({self.num_train_timesteps})")
        # sigma = sqrt((1 - alpha_bar) / alpha_bar)
        sigmas_full = np.sqrt(
            (1.0 - self.alphas_cumprod) / self.alphas_cumprod
        ).astype(np.float32)

        timesteps = np.linspace(
            self.num_train_timesteps - 1, 0, num_inference_steps)
        sigmas = np.interp(timesteps, np.arange(len(sigmas_full)), sigmas_full)
        if self.use_karras_sigmas:
            sigmas = self._karras_sigmas(sigmas, num_inference_steps)
        self.sigmas = np.append(sigmas, 0.0).astype(np.float32)
        return np.round(timesteps).astype(np.int64)

    @staticmethod
    def _karras_sigmas(sigmas: np.ndarray, n: int,
                       rho: float = 7.0) -> np.ndarray:
        """Karras et al. sigma ramp."""
        s_min = float(sigmas[-1])
        s_max = float(sigmas[0])
        ramp = np.linspace(0, 1, n, dtype=np.float64)
        min_inv = s_min ** (1.0 / rho)
        max_inv = s_max ** (1.0 / rho)
        return (max_inv + ramp * (min_inv - max_inv)) ** rho

    def close(self):
        super().close()
        self.sigmas = None

    @property
    def init_noise_sigma(self) -> float:
        return float(self.sigmas[0])

    def scale_input(self, sample: np.ndarray, timestep: int) -> np.ndarray:
        """Pre-scale the model input (required for Euler)."""
        self._ensure_open()
        sigma = float(self.sigmas[self._step_index(timestep)])
        return (sample / math.sqrt(sigma ** 2 + 1)).astype(np.float32)

    def add_noise(self, original: np.ndarray, noise: np.ndarray,
                  timesteps: Union[int, Sequence[int], np.ndarray]
                  ) -> np.ndarray:
        self._ensure_open()
        t = np.asarray(timesteps, dtype=np.int64).ravel()
        sigmas = np.array([self.sigmas[self._step_index(v)] for v in t],
                          dtype=np.float32)
        s = _broadcast_to_ndim(sigmas, original.ndim)
        return (original + s * noise).astype(np.float32)

    def step(self, model_output: np.ndarray, timestep: int,
             sample: np.ndarray) -> SchedulerResult:
        """Euler discrete step."""
        self._ensure_open()
        step_idx = self._step_index(timestep)
        sigma = float(self.sigmas[step_idx])
        sigma_next = float(self.sigmas[step_idx + 1])

        if self.prediction_type == 'epsilon':
            pred_x0 = sample - sigma * model_output
        elif self.prediction_type == 'v_prediction':
            pred_x0 = model_output * (-sigma / math.sqrt(sigma ** 2 + 1)) + \
                sample / (sigma ** 2 + 1)
        elif self.prediction_type == 'sample':
            pred_x0 = model_output
        else:
            raise ValueError(f"Unknown prediction type: {self.prediction_type!r}")

        # Derivative
        d = (sample - pred_x0) / max(sigma, 1e-8)
        dt = sigma_next - sigma
        prev = sample + d * dt

        return SchedulerResult(prev.astype(np.float32),
                               pred_x0.astype(np.float32))


# ═════════════════════════════════════════════════════════════════════
#  Factory
# ═════════════════════════════════════════════════════════════════════

SCHEDULERS = {
    SchedulerType.LCM: LCMScheduler,
    SchedulerType.DDPM: DDPMScheduler,
    SchedulerType.DDIM: DDIMScheduler,
    SchedulerType.EULER: EulerDiscreteScheduler,
}


def create_scheduler(scheduler_type: SchedulerType,
                     options: SchedulerOptions) -> SchedulerBase:
    """Build a fresh scheduler for one run."""
    try:
        cls = SCHEDULERS[SchedulerType(scheduler_type)]
    except (KeyError, ValueError):
        raise ValueError(f"Unknown scheduler type: {scheduler_type!r}") from None
    return cls(options)


# ═════════════════════════════════════════════════════════════════════
#  Exports
# ═════════════════════════════════════════════════════════════════════

__all__ = [
    'SchedulerResult',
    'SchedulerBase',
    'LCMScheduler',
    'DDPMScheduler',
    'DDIMScheduler',
    'EulerDiscreteScheduler',
    'SCHEDULERS',
    'create_scheduler',
]
