# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Latent encode / decode around the VAE graphs.

The VAE graphs are evaluated one item at a time: a batched latent is split
along the batch axis, each item is sent through the runtime in order, and
the results are joined back into a single batch-ordered tensor.
"""
from __future__ import annotations

import numpy as np
from loguru import logger

from latentstack.config import PromptOptions, SchedulerOptions
from latentstack.enums import GraphType
from latentstack.runtime import (
    ModelOptions, ModelRuntime, bind_inputs, run_inference,
)
from latentstack.diffusion.utils import join_batch, split_batch


class LatentCodec:
    """Moves tensors between pixel space and latent space.

    Args:
        runtime: The model runtime that evaluates the VAE graphs.
    """

    def __init__(self, runtime: ModelRuntime):
        self.runtime = runtime

    def decode(
        self,
        model: ModelOptions,
        prompt: PromptOptions,
        options: SchedulerOptions,
        latents: np.ndarray,
    ) -> np.ndarray:
        """Decode ``latents`` into pixel space, one batch item per call.

        Returns:
            ``(batch_count, 3, H, W)`` float32 pixels in the decoder's range
            (nominally [-1, 1]).
        """
        latents = (latents * (1.0 / model.scale_factor)).astype(np.float32)
        if prompt.batch_count == 1:
            return self._run(model, GraphType.VAE_DECODER, 'latent_sample',
                             latents)

        items = split_batch(latents, prompt.batch_count)
        logger.debug(f"Decoding {len(items)} latents individually")
        return join_batch([
            self._run(model, GraphType.VAE_DECODER, 'latent_sample', item)
            for item in items
        ])

    def encode(
        self,
        model: ModelOptions,
        prompt: PromptOptions,
        options: SchedulerOptions,
        images: np.ndarray,
    ) -> np.ndarray:
        """Encode ``(N, 3, H, W)`` pixels in [-1, 1] into scaled latents.

        A single image is repeated to ``prompt.batch_count`` latents; a
        multi-image input (e.g. video frames) keeps one latent per image.
        """
        encoded = join_batch([
            self._run(model, GraphType.VAE_ENCODER, 'sample', item)
            for item in split_batch(images, images.shape[0])
        ])
        latents = (encoded * model.scale_factor).astype(np.float32)
        if latents.shape[0] == 1 and prompt.batch_count > 1:
            latents = np.repeat(latents, prompt.batch_count, axis=0)
        return latents

    def _run(self, model: ModelOptions, graph: GraphType, role: str,
             tensor: np.ndarray) -> np.ndarray:
        inputs = bind_inputs(self.runtime, model, graph, [(role, tensor)])
        return run_inference(self.runtime, model, graph, inputs)


__all__ = ['LatentCodec']
