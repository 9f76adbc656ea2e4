# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""
Latentstack — a diffusion sampling engine.

Drives iterative denoising image and video synthesis against an external
model runtime: per-run noise schedulers, a shared denoising loop with
pluggable algorithm families, latent encode / decode batching, a pipeline
capability registry, and lazy batch generation.

Usage::

    import latentstack as ls

    service = ls.StableDiffusionService.create(runtime, prompt_encoder)
    model = ls.ModelOptions(name='lcm-dreamshaper-v7')
    tensor = service.generate(
        model,
        ls.PromptOptions(prompt='a lighthouse at dusk'),
        ls.SchedulerOptions(inference_steps=4, seed=42),
    )
"""
from __future__ import annotations

__version__ = "0.1.0"
__author__ = "Pictofeed, LLC"

# ── Enumerations & errors ──
from .enums import (
    SchedulerType,
    DiffuserType,
    PipelineType,
    GraphType,
    BatchOptionType,
)
from .errors import (
    LatentStackError,
    PipelineNotFound,
    DiffuserNotFound,
    IncompatibleScheduler,
    Cancelled,
    RuntimeInferenceFailure,
    SchedulerClosedError,
)

# ── Configuration ──
from .config import (
    PromptOptions,
    SchedulerOptions,
    BatchOptions,
    Settings,
    get_settings,
)
from .log import configure_logging

# ── Collaborators ──
from .runtime import (
    ModelOptions,
    ModelRuntime,
    PromptEncoder,
    VideoAssembler,
)

# ── Sub-packages ──
from . import diffusion
from .diffusion.batch import BatchResult
from .service import StableDiffusionService

__all__ = [
    "__version__",
    "__author__",

    # Enums
    'SchedulerType', 'DiffuserType', 'PipelineType', 'GraphType',
    'BatchOptionType',
    # Errors
    'LatentStackError', 'PipelineNotFound', 'DiffuserNotFound',
    'IncompatibleScheduler', 'Cancelled', 'RuntimeInferenceFailure',
    'SchedulerClosedError',
    # Configuration
    'PromptOptions', 'SchedulerOptions', 'BatchOptions', 'Settings',
    'get_settings', 'configure_logging',
    # Collaborators
    'ModelOptions', 'ModelRuntime', 'PromptEncoder', 'VideoAssembler',
    # Service
    'BatchResult', 'StableDiffusionService',
    # Sub-packages
    'diffusion',
]
