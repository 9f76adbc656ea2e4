# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""latentstack.diffusion — schedulers, diffusers, and pipelines.

The sampling core: per-run noise schedulers (LCM, DDPM, DDIM, Euler), the
shared denoising loop and its algorithm families, latent encode / decode
batching, the pipeline capability registry, and lazy batch runs.

Usage::

    from latentstack.diffusion import (
        LCMScheduler,
        create_scheduler,
        LatentConsistencyDiffuser,
        TextToImage,
        PipelineRegistry,
        build_default_registry,
        guidance_scale_embedding,
    )
"""
from __future__ import annotations

# ── Utilities ──
from .utils import (
    random_seed,
    seed_sequence,
    randn_tensor,
    guidance_scale_embedding,
    classifier_free_guidance,
    get_beta_schedule,
    split_batch,
    join_batch,
)

# ── Schedulers ──
from .schedulers import (
    SchedulerResult,
    SchedulerBase,
    LCMScheduler,
    DDPMScheduler,
    DDIMScheduler,
    EulerDiscreteScheduler,
    create_scheduler,
)

# ── Latents ──
from .latents import LatentCodec

# ── Batches ──
from .batch import BatchResult, BatchCoordinator, generate_batch_options

# ── Diffusers ──
from .diffusers import (
    Diffuser,
    DiffuserVariant,
    TextToImage,
    ImageToImage,
    LatentConsistencyDiffuser,
    StableDiffusionDiffuser,
)

# ── Pipelines ──
from .pipelines import (
    Pipeline,
    PipelineRegistry,
    build_default_registry,
)

__all__ = [
    # Utilities
    'random_seed',
    'seed_sequence',
    'randn_tensor',
    'guidance_scale_embedding',
    'classifier_free_guidance',
    'get_beta_schedule',
    'split_batch',
    'join_batch',
    # Schedulers
    'SchedulerResult',
    'SchedulerBase',
    'LCMScheduler',
    'DDPMScheduler',
    'DDIMScheduler',
    'EulerDiscreteScheduler',
    'create_scheduler',
    # Latents
    'LatentCodec',
    # Batches
    'BatchResult',
    'BatchCoordinator',
    'generate_batch_options',
    # Diffusers
    'Diffuser',
    'DiffuserVariant',
    'TextToImage',
    'ImageToImage',
    'LatentConsistencyDiffuser',
    'StableDiffusionDiffuser',
    # Pipelines
    'Pipeline',
    'PipelineRegistry',
    'build_default_registry',
]
