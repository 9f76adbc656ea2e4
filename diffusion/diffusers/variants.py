# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Diffuser variants — timestep selection and latent initialisation.

Each variant answers two questions for the shared loop:

- ``get_timesteps`` — which scheduler timesteps are visited, in order.
- ``prepare_latents`` — what the starting latent tensor is.

**TextToImage** starts from pure noise and visits the whole schedule.
**ImageToImage** encodes an input image (or each frame of an input video),
skips the first ``(1 - strength)`` share of the schedule and noises the
encoded latents to the first remaining timestep.
"""
from __future__ import annotations

import numpy as np
from typing import List, Sequence

from latentstack.config import PromptOptions, SchedulerOptions
from latentstack.enums import DiffuserType
from latentstack.runtime import ModelOptions
from latentstack.diffusion.imaging import images_to_tensor
from latentstack.diffusion.latents import LatentCodec
from latentstack.diffusion.schedulers import SchedulerBase


class DiffuserVariant:

    diffuser_type: DiffuserType

    def resolve_prompt(self, prompt: PromptOptions) -> PromptOptions:
        return prompt

    def get_timesteps(self, prompt: PromptOptions, options: SchedulerOptions,
                      scheduler: SchedulerBase) -> List[int]:
        raise NotImplementedError

    def prepare_latents(
        self,
        model: ModelOptions,
        prompt: PromptOptions,
        options: SchedulerOptions,
        scheduler: SchedulerBase,
        timesteps: Sequence[int],
        codec: LatentCodec,
    ) -> np.ndarray:
        raise NotImplementedError


class TextToImage(DiffuserVariant):

    diffuser_type = DiffuserType.TEXT_TO_IMAGE

    def get_timesteps(self, prompt, options, scheduler):
        return [int(t) for t in scheduler.timesteps]

    def prepare_latents(self, model, prompt, options, scheduler, timesteps,
                        codec):
        shape = (prompt.batch_count, model.latent_channels,
                 options.height // 8, options.width // 8)
        return scheduler.create_random_sample(shape)


class ImageToImage(DiffuserVariant):
    """Image (or video frame) conditioned generation.

    With an input video, every frame becomes one batch item, so
    ``batch_count`` is set to the frame count for the run.
    """

    diffuser_type = DiffuserType.IMAGE_TO_IMAGE

    def resolve_prompt(self, prompt):
        if prompt.has_input_video:
            frames = len(prompt.input_video)
            if prompt.batch_count != frames:
                return prompt.model_copy(update={'batch_count': frames})
        elif not prompt.has_input_image:
            raise ValueError(
                "image_to_image requires an input image or input video")
        return prompt

    def get_timesteps(self, prompt, options, scheduler):
        steps = len(scheduler.timesteps)
        init_timestep = min(int(steps * options.strength), steps)
        start = max(steps - init_timestep, 0)
        return [int(t) for t in scheduler.timesteps[start:]]

    def prepare_latents(self, model, prompt, options, scheduler, timesteps,
                        codec):
        frames = prompt.input_video if prompt.has_input_video \
            else [prompt.input_image]
        images = images_to_tensor(frames, options.width, options.height)
        latents = codec.encode(model, prompt, options, images)
        if not timesteps:
            return latents

        noise = scheduler.create_random_sample(latents.shape, 1.0)
        return scheduler.add_noise(latents, noise, [timesteps[0]])


VARIANTS = {
    DiffuserType.TEXT_TO_IMAGE: TextToImage,
    DiffuserType.IMAGE_TO_IMAGE: ImageToImage,
}


__all__ = [
    'DiffuserVariant',
    'TextToImage',
    'ImageToImage',
    'VARIANTS',
]
