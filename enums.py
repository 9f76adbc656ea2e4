# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""Enumerations shared across schedulers, diffusers and pipelines."""
from __future__ import annotations

from enum import Enum


class SchedulerType(str, Enum):
    LCM = 'lcm'
    DDPM = 'ddpm'
    DDIM = 'ddim'
    EULER = 'euler'


class DiffuserType(str, Enum):
    TEXT_TO_IMAGE = 'text_to_image'
    IMAGE_TO_IMAGE = 'image_to_image'


class PipelineType(str, Enum):
    STABLE_DIFFUSION = 'stable_diffusion'
    LATENT_CONSISTENCY = 'latent_consistency'


class GraphType(str, Enum):
    """Named graphs a model family exposes to the runtime."""
    UNET = 'unet'
    VAE_ENCODER = 'vae_encoder'
    VAE_DECODER = 'vae_decoder'
    TEXT_ENCODER = 'text_encoder'


class BatchOptionType(str, Enum):
    """Which sampling parameter a batch sweeps over."""
    SEED = 'seed'
    STEP = 'step'
    GUIDANCE = 'guidance'
    SCHEDULER = 'scheduler'


__all__ = [
    'SchedulerType',
    'DiffuserType',
    'PipelineType',
    'GraphType',
    'BatchOptionType',
]
