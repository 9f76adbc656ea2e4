# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Stable Diffusion diffuser with classifier-free guidance.

When ``guidance_scale > 1`` the prompt encoder is expected to return the
negative and positive embeddings stacked as ``[uncond; cond]``.  The
latents are duplicated to match, the unet is evaluated once per step on
the doubled batch, and the two halves of its prediction are combined with
:func:`~latentstack.diffusion.utils.classifier_free_guidance`.
"""
from __future__ import annotations

import numpy as np

from latentstack.diffusion.diffusers.base import Diffuser
from latentstack.diffusion.utils import classifier_free_guidance


class StableDiffusionDiffuser(Diffuser):

    supports_guidance = True

    def predict_noise(self, model, options, model_input, timestep,
                      prompt_embeds, guidance_embeds):
        do_guidance = options.guidance_scale > 1.0
        if do_guidance:
            model_input = np.concatenate([model_input, model_input], axis=0)

        noise_pred = self._unet(model, [
            ('sample', model_input),
            ('timestep', self.timestep_tensor(timestep)),
            ('encoder_hidden_states', prompt_embeds),
        ])
        if do_guidance:
            noise_pred = classifier_free_guidance(
                noise_pred, options.guidance_scale)
        return noise_pred


__all__ = ['StableDiffusionDiffuser']
