# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Pipelines — capability registry and request dispatch.

A :class:`Pipeline` is a model family's capability set: the diffusers it
exposes and the schedulers it accepts.  :class:`PipelineRegistry` is built
once at start-up, never mutated afterwards, and validates every request
before any inference call:

- unknown pipeline      → :class:`~latentstack.errors.PipelineNotFound`
- unknown diffuser      → :class:`~latentstack.errors.DiffuserNotFound`
- unsupported scheduler → :class:`~latentstack.errors.IncompatibleScheduler`

- **latent_consistency** — LCM unets; ``lcm`` scheduler only.
- **stable_diffusion** — classic unets with classifier-free guidance;
  ``ddpm``, ``ddim`` and ``euler`` schedulers.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import FrozenSet, Iterable, Iterator, Mapping, Optional, Tuple

import numpy as np
from loguru import logger

from latentstack.config import (
    BatchOptions, PromptOptions, SchedulerOptions, Settings,
)
from latentstack.enums import DiffuserType, PipelineType, SchedulerType
from latentstack.errors import (
    DiffuserNotFound, IncompatibleScheduler, PipelineNotFound,
)
from latentstack.runtime import ModelOptions, ModelRuntime, PromptEncoder
from latentstack.diffusion.batch import BatchResult
from latentstack.diffusion.diffusers import (
    Diffuser, LatentConsistencyDiffuser, StableDiffusionDiffuser, VARIANTS,
)
from latentstack.diffusion.utils import SeedSource


@dataclass(frozen=True)
class Pipeline:
    """Capability set of one model family."""

    pipeline_type: PipelineType
    diffusers: Mapping[DiffuserType, Diffuser]
    scheduler_types: FrozenSet[SchedulerType] = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(self, 'diffusers',
                           MappingProxyType(dict(self.diffusers)))
        object.__setattr__(self, 'scheduler_types',
                           frozenset(self.scheduler_types))

    @property
    def diffuser_types(self) -> FrozenSet[DiffuserType]:
        return frozenset(self.diffusers)

    def get_diffuser(self, diffuser_type: DiffuserType) -> Diffuser:
        try:
            return self.diffusers[diffuser_type]
        except KeyError:
            raise DiffuserNotFound(
                _label(diffuser_type), _label(self.pipeline_type)) from None

    def supports_scheduler(self, scheduler_type: SchedulerType) -> bool:
        return scheduler_type in self.scheduler_types


def _label(value) -> str:
    return getattr(value, 'value', value)


class PipelineRegistry:
    """Read-only lookup table of pipelines, keyed by :class:`PipelineType`."""

    def __init__(self, pipelines: Iterable[Pipeline]):
        self._pipelines: Mapping[PipelineType, Pipeline] = MappingProxyType(
            {pipeline.pipeline_type: pipeline for pipeline in pipelines})

    @property
    def pipelines(self) -> Mapping[PipelineType, Pipeline]:
        return self._pipelines

    def __contains__(self, pipeline_type) -> bool:
        return pipeline_type in self._pipelines

    def __iter__(self) -> Iterator[Pipeline]:
        return iter(self._pipelines.values())

    def get_pipeline(self, pipeline_type: PipelineType) -> Pipeline:
        try:
            return self._pipelines[pipeline_type]
        except KeyError:
            raise PipelineNotFound(_label(pipeline_type)) from None

    def validate(
        self,
        pipeline_type: PipelineType,
        diffuser_type: DiffuserType,
        scheduler_type: SchedulerType,
    ) -> Tuple[Pipeline, Diffuser]:
        pipeline = self.get_pipeline(pipeline_type)
        diffuser = pipeline.get_diffuser(diffuser_type)
        if not pipeline.supports_scheduler(scheduler_type):
            raise IncompatibleScheduler(
                _label(scheduler_type), _label(pipeline_type))
        return pipeline, diffuser

    def dispatch(
        self,
        model: ModelOptions,
        prompt: PromptOptions,
        options: SchedulerOptions,
        progress_callback=None,
        cancel_event=None,
    ) -> np.ndarray:
        """Validate the request and run it through the selected diffuser."""
        _, diffuser = self.validate(
            model.pipeline_type, prompt.diffuser_type, prompt.scheduler_type)
        logger.info(f"Dispatching '{model.name}' to {diffuser!r} "
                    f"({_label(model.pipeline_type)}, "
                    f"{_label(prompt.scheduler_type)})")
        return diffuser.run(model, prompt, options,
                            progress_callback=progress_callback,
                            cancel_event=cancel_event)

    def dispatch_batch(
        self,
        model: ModelOptions,
        prompt: PromptOptions,
        options: SchedulerOptions,
        batch_options: BatchOptions,
        progress_callback=None,
        cancel_event=None,
        on_error: str = 'raise',
    ) -> Iterator[BatchResult]:
        """Validate eagerly, then return the diffuser's lazy batch stream."""
        pipeline, diffuser = self.validate(
            model.pipeline_type, prompt.diffuser_type, prompt.scheduler_type)
        logger.info(f"Dispatching '{model.name}' batch "
                    f"({_label(batch_options.batch_type)}) to {diffuser!r}")
        return diffuser.run_batch(
            model, prompt, options, batch_options,
            progress_callback=progress_callback,
            cancel_event=cancel_event,
            scheduler_types=sorted(pipeline.scheduler_types,
                                   key=lambda kind: kind.value),
            on_error=on_error)


# ═════════════════════════════════════════════════════════════════════
#  Default registry
# ═════════════════════════════════════════════════════════════════════

PIPELINE_SCHEDULERS = {
    PipelineType.LATENT_CONSISTENCY: frozenset({SchedulerType.LCM}),
    PipelineType.STABLE_DIFFUSION: frozenset({
        SchedulerType.DDPM, SchedulerType.DDIM, SchedulerType.EULER,
    }),
}

PIPELINE_DIFFUSERS = {
    PipelineType.LATENT_CONSISTENCY: LatentConsistencyDiffuser,
    PipelineType.STABLE_DIFFUSION: StableDiffusionDiffuser,
}


def build_default_registry(
    runtime: ModelRuntime,
    prompt_encoder: PromptEncoder,
    settings: Optional[Settings] = None,
    seed_source: Optional[SeedSource] = None,
) -> PipelineRegistry:
    """Register every built-in pipeline with every built-in variant."""
    pipelines = []
    for pipeline_type, diffuser_cls in PIPELINE_DIFFUSERS.items():
        diffusers = {
            diffuser_type: diffuser_cls(
                runtime, prompt_encoder, variant_cls(),
                settings=settings, seed_source=seed_source)
            for diffuser_type, variant_cls in VARIANTS.items()
        }
        pipelines.append(Pipeline(
            pipeline_type=pipeline_type,
            diffusers=diffusers,
            scheduler_types=PIPELINE_SCHEDULERS[pipeline_type],
        ))
    return PipelineRegistry(pipelines)


__all__ = [
    'Pipeline',
    'PipelineRegistry',
    'PIPELINE_SCHEDULERS',
    'PIPELINE_DIFFUSERS',
    'build_default_registry',
]
