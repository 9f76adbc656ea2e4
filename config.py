# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""Option models and process settings.

``PromptOptions`` describes *what* to generate, ``SchedulerOptions`` the
numeric sampling parameters, and ``BatchOptions`` how a batch request sweeps
over them.  All three are pydantic models so ranges are validated when the
object is built; diffusers derive per-run copies with ``model_copy`` and
never mutate the caller's instances.

``Settings`` collects process-wide knobs read from the environment::

    LATENTSTACK_LOG_LEVEL                 loguru level (default INFO)
    LATENTSTACK_PROGRESS_BAR              show a tqdm bar per run (default off)
    LATENTSTACK_GUIDANCE_EMBEDDING_DIM    guidance embedding width (default 256)
    LATENTSTACK_SCALE_GUIDANCE_EMBEDDING  scale the embedding by w - 1 (default off)
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from latentstack.enums import (
    BatchOptionType,
    DiffuserType,
    SchedulerType,
)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    return raw.strip().lower() not in {'0', 'false', 'no', 'off'}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    return int(raw)


# ═════════════════════════════════════════════════════════════════════
#  Per-request options
# ═════════════════════════════════════════════════════════════════════

class PromptOptions(BaseModel):
    """User request content.

    ``input_image`` may be a PIL image or an ``(H, W, 3)`` uint8 array;
    ``input_video`` is a sequence of such frames.  Both are only read by
    the image-to-image diffuser.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    prompt: str
    negative_prompt: str = ''
    batch_count: int = Field(default=1, ge=1)
    scheduler_type: SchedulerType = SchedulerType.LCM
    diffuser_type: DiffuserType = DiffuserType.TEXT_TO_IMAGE
    input_image: Optional[Any] = None
    input_video: Optional[List[Any]] = None

    @property
    def has_input_image(self) -> bool:
        return self.input_image is not None

    @property
    def has_input_video(self) -> bool:
        return bool(self.input_video)


class SchedulerOptions(BaseModel):
    """Numeric run parameters.

    ``seed == 0`` means *unset*: a fresh positive seed is drawn when the
    run starts.  The beta / timestep fields describe the model's training
    noise schedule and default to Stable Diffusion 1.5 values.
    """

    seed: int = Field(default=0, ge=0)
    guidance_scale: float = Field(default=7.5, ge=0.0)
    inference_steps: int = Field(default=30, ge=1)
    video_fps: float = Field(default=15.0, gt=0.0)
    height: int = Field(default=512, ge=8)
    width: int = Field(default=512, ge=8)
    strength: float = Field(default=0.6, ge=0.0, le=1.0)

    original_inference_steps: int = Field(default=50, ge=1)
    train_timesteps: int = Field(default=1000, ge=1)
    beta_start: float = 0.00085
    beta_end: float = 0.012
    beta_schedule: str = 'scaled_linear'
    prediction_type: str = 'epsilon'

    @field_validator('height', 'width')
    @classmethod
    def _multiple_of_eight(cls, value: int) -> int:
        if value % 8 != 0:
            raise ValueError(f"must be a multiple of 8, got {value}")
        return value


class BatchOptions(BaseModel):
    """Batch sweep description.

    For ``seed`` batches ``value_to`` is the number of items; the other
    kinds sweep ``value_from`` .. ``value_to`` (inclusive) by ``increment``.
    ``scheduler`` batches ignore the range and visit every scheduler the
    pipeline supports.
    """

    batch_type: BatchOptionType = BatchOptionType.SEED
    value_from: float = 0.0
    value_to: float = 1.0
    increment: float = Field(default=1.0, gt=0.0)


# ═════════════════════════════════════════════════════════════════════
#  Process settings
# ═════════════════════════════════════════════════════════════════════

class Settings(BaseModel):
    log_level: str = Field(
        default_factory=lambda: os.getenv('LATENTSTACK_LOG_LEVEL', 'INFO'))
    progress_bar: bool = Field(
        default_factory=lambda: _env_bool('LATENTSTACK_PROGRESS_BAR', False))
    guidance_embedding_dim: int = Field(
        default_factory=lambda: _env_int(
            'LATENTSTACK_GUIDANCE_EMBEDDING_DIM', 256))
    scale_guidance_embedding: bool = Field(
        default_factory=lambda: _env_bool(
            'LATENTSTACK_SCALE_GUIDANCE_EMBEDDING', False))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


__all__ = [
    'PromptOptions',
    'SchedulerOptions',
    'BatchOptions',
    'Settings',
    'get_settings',
]
