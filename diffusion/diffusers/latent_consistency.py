# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Latent Consistency Model diffuser.

LCM unets are distilled with the guidance scale baked in: classifier-free
guidance and negative prompts are disabled, and the requested guidance
scale is passed to the unet as a sinusoidal ``timestep_cond`` embedding
instead.  One unet call per step.
"""
from __future__ import annotations

import numpy as np
from typing import Optional

from latentstack.diffusion.diffusers.base import Diffuser
from latentstack.diffusion.utils import guidance_scale_embedding


class LatentConsistencyDiffuser(Diffuser):

    supports_guidance = False

    def create_guidance_embedding(self, guidance_scale: float,
                                  batch_size: int) -> Optional[np.ndarray]:
        embedding = guidance_scale_embedding(
            guidance_scale,
            self.settings.guidance_embedding_dim,
            apply_scale=self.settings.scale_guidance_embedding)
        return np.repeat(embedding, batch_size, axis=0)

    def predict_noise(self, model, options, model_input, timestep,
                      prompt_embeds, guidance_embeds):
        return self._unet(model, [
            ('sample', model_input),
            ('timestep', self.timestep_tensor(timestep)),
            ('encoder_hidden_states', prompt_embeds),
            ('timestep_cond', guidance_embeds),
        ])


__all__ = ['LatentConsistencyDiffuser']
