# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Diffuser: the shared denoising loop.

A :class:`Diffuser` is one algorithm family (LCM, Stable Diffusion)
paired with one :class:`~latentstack.diffusion.diffusers.variants.DiffuserVariant`
(text-to-image, image-to-image).  The family decides how the unet is
called; the variant decides which timesteps are visited and how the
starting latents are made.  Diffusers hold no per-run state, so a single
instance may serve concurrent runs.

A run proceeds as follows:

1. Resolve the seed and apply the family's option overrides.
2. Open a scheduler for the run (released on every exit path).
3. Encode the prompt, pick timesteps, prepare latents.
4. For each timestep: check cancellation, scale the input, call the unet
   once, advance the scheduler, report progress.
5. Decode the final denoised latent.

Cancellation is also checked before the latents are prepared and before
decoding, so a run with an empty schedule still honours it.
"""
from __future__ import annotations

import numpy as np
from typing import Callable, Iterator, Optional, Sequence, Tuple

from loguru import logger
from tqdm.auto import tqdm

from latentstack.config import (
    BatchOptions, PromptOptions, SchedulerOptions, Settings, get_settings,
)
from latentstack.enums import GraphType, SchedulerType
from latentstack.errors import Cancelled
from latentstack.runtime import (
    ModelOptions, ModelRuntime, PromptEncoder, bind_inputs, run_inference,
)
from latentstack.diffusion.batch import BatchCoordinator, BatchResult
from latentstack.diffusion.latents import LatentCodec
from latentstack.diffusion.schedulers import SchedulerBase, create_scheduler
from latentstack.diffusion.utils import SeedSource, random_seed
from latentstack.diffusion.diffusers.variants import DiffuserVariant

ProgressCallback = Callable[[int, int], None]


class Diffuser:
    """Base class for diffusion algorithm families.

    Subclasses set ``supports_guidance`` and implement
    :meth:`predict_noise`; they may override
    :meth:`create_guidance_embedding`.

    Args:
        runtime:        Model runtime used for unet and VAE calls.
        prompt_encoder: Turns the prompt into conditioning embeddings.
        variant:        Timestep / latent-initialisation policy.
        settings:       Process settings (defaults to :func:`get_settings`).
        seed_source:    Callable returning a fresh positive seed, used when
                        ``options.seed`` is unset.
    """

    supports_guidance: bool = True

    def __init__(
        self,
        runtime: ModelRuntime,
        prompt_encoder: PromptEncoder,
        variant: DiffuserVariant,
        settings: Optional[Settings] = None,
        seed_source: Optional[SeedSource] = None,
    ):
        self.runtime = runtime
        self.prompt_encoder = prompt_encoder
        self.variant = variant
        self.settings = settings or get_settings()
        self.seed_source = seed_source or random_seed
        self.codec = LatentCodec(runtime)

    @property
    def diffuser_type(self):
        return self.variant.diffuser_type

    def __repr__(self):
        return f"{type(self).__name__}(variant={self.variant.diffuser_type.value})"

    # ---- option handling ----

    def resolve_seed(self, options: SchedulerOptions) -> SchedulerOptions:
        if options.seed > 0:
            return options
        return options.model_copy(update={'seed': int(self.seed_source())})

    def prepare_options(
        self, prompt: PromptOptions, options: SchedulerOptions,
    ) -> Tuple[PromptOptions, SchedulerOptions]:
        """Return the per-run copies of ``prompt`` and ``options``."""
        options = self.resolve_seed(options)
        prompt = self.variant.resolve_prompt(prompt)
        if not self.supports_guidance:
            logger.debug(f"{type(self).__name__} does not support "
                         f"classifier-free guidance; disabling it")
            options = options.model_copy(update={'guidance_scale': 0.0})
            prompt = prompt.model_copy(update={'negative_prompt': ''})
        return prompt, options

    # ---- family hooks ----

    def create_guidance_embedding(self, guidance_scale: float,
                                  batch_size: int) -> Optional[np.ndarray]:
        return None

    def predict_noise(
        self,
        model: ModelOptions,
        options: SchedulerOptions,
        model_input: np.ndarray,
        timestep: int,
        prompt_embeds: np.ndarray,
        guidance_embeds: Optional[np.ndarray],
    ) -> np.ndarray:
        raise NotImplementedError("Subclasses must implement predict_noise")

    def _unet(self, model: ModelOptions,
              roles: Sequence[Tuple[str, np.ndarray]]) -> np.ndarray:
        inputs = bind_inputs(self.runtime, model, GraphType.UNET, roles)
        return run_inference(self.runtime, model, GraphType.UNET, inputs)

    @staticmethod
    def timestep_tensor(timestep: int) -> np.ndarray:
        return np.array([int(timestep)], dtype=np.int64)

    # ---- run ----

    @staticmethod
    def check_cancelled(cancel_event, where: str):
        if cancel_event is not None and cancel_event.is_set():
            logger.warning(f"Run cancelled {where}")
            raise Cancelled(f"Cancelled {where}")

    def progress_bar(self, iterable, desc: str = ''):
        return tqdm(iterable, desc=desc, disable=not self.settings.progress_bar)

    def run(
        self,
        model: ModelOptions,
        prompt: PromptOptions,
        options: SchedulerOptions,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event=None,
    ) -> np.ndarray:
        """Run the denoising loop and return the decoded tensor.

        Raises:
            Cancelled: ``cancel_event.is_set()`` was observed before latent
                preparation, before a step, or before decoding.
            RuntimeInferenceFailure: the runtime failed; no partial result.
        """
        guidance_scale = options.guidance_scale
        prompt, options = self.prepare_options(prompt, options)
        logger.debug(
            f"{type(self).__name__}[{self.diffuser_type.value}] "
            f"seed={options.seed} steps={options.inference_steps} "
            f"scheduler={prompt.scheduler_type.value}")

        with create_scheduler(prompt.scheduler_type, options) as scheduler:
            prompt_embeds = self.prompt_encoder.encode(model, prompt, options)
            timesteps = self.variant.get_timesteps(prompt, options, scheduler)
            self.check_cancelled(cancel_event, 'before preparing latents')
            latents = self.variant.prepare_latents(
                model, prompt, options, scheduler, timesteps, codec=self.codec)
            guidance_embeds = self.create_guidance_embedding(
                guidance_scale, latents.shape[0])

            denoised = self.denoise(
                model, options, scheduler, timesteps, latents,
                prompt_embeds, guidance_embeds,
                progress_callback=progress_callback,
                cancel_event=cancel_event)

            self.check_cancelled(cancel_event, 'before decoding')
            return self.codec.decode(model, prompt, options, denoised)

    def denoise(
        self,
        model: ModelOptions,
        options: SchedulerOptions,
        scheduler: SchedulerBase,
        timesteps: Sequence[int],
        latents: np.ndarray,
        prompt_embeds: np.ndarray,
        guidance_embeds: Optional[np.ndarray],
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event=None,
    ) -> np.ndarray:
        """The timestep loop; returns the last denoised estimate."""
        logger.debug(f"Denoising {tuple(latents.shape)} latents over "
                     f"{len(timesteps)} timesteps")
        denoised = latents
        total = len(timesteps)
        for step, timestep in enumerate(
                self.progress_bar(timesteps, desc=self.diffuser_type.value),
                start=1):
            self.check_cancelled(cancel_event, f'before step {step} of {total}')

            model_input = scheduler.scale_input(latents, timestep)
            noise_pred = self.predict_noise(
                model, options, model_input, timestep,
                prompt_embeds, guidance_embeds)
            latents, denoised = scheduler.step(noise_pred, timestep, latents)

            if progress_callback is not None:
                progress_callback(step, total)
        return denoised

    def run_batch(
        self,
        model: ModelOptions,
        prompt: PromptOptions,
        options: SchedulerOptions,
        batch_options: BatchOptions,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event=None,
        scheduler_types: Optional[Sequence[SchedulerType]] = None,
        on_error: str = 'raise',
    ) -> Iterator[BatchResult]:
        """Lazily run one independent generation per batch item."""
        return BatchCoordinator(self).run_batch(
            model, prompt, options, batch_options,
            progress_callback=progress_callback,
            cancel_event=cancel_event,
            scheduler_types=scheduler_types,
            on_error=on_error)


__all__ = ['Diffuser', 'ProgressCallback']
