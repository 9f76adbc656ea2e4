# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""Diffusion algorithm families and their timestep / latent variants."""
from __future__ import annotations

from .base import Diffuser, ProgressCallback
from .variants import DiffuserVariant, TextToImage, ImageToImage, VARIANTS
from .latent_consistency import LatentConsistencyDiffuser
from .stable_diffusion import StableDiffusionDiffuser

__all__ = [
    'Diffuser',
    'ProgressCallback',
    'DiffuserVariant',
    'TextToImage',
    'ImageToImage',
    'VARIANTS',
    'LatentConsistencyDiffuser',
    'StableDiffusionDiffuser',
]
