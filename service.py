# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""StableDiffusionService: the public entry point.

Wraps a :class:`~latentstack.diffusion.pipelines.PipelineRegistry` and
converts raw tensors into images, PNG bytes or byte streams, or (for video
inputs) video bytes produced by the caller's :class:`~latentstack.runtime.VideoAssembler`.

Usage::

    service = StableDiffusionService.create(runtime, prompt_encoder)
    tensor = service.generate(model, PromptOptions(prompt='a lighthouse'),
                              SchedulerOptions(inference_steps=4, seed=42))
    for item in service.generate_batch(model, prompt, options,
                                       BatchOptions(value_to=4)):
        ...
"""
from __future__ import annotations

import io
from typing import Iterator, List, Optional

import numpy as np
from PIL import Image

from latentstack.config import (
    BatchOptions, PromptOptions, SchedulerOptions, Settings,
)
from latentstack.runtime import (
    ModelOptions, ModelRuntime, PromptEncoder, VideoAssembler,
)
from latentstack.diffusion.batch import BatchResult
from latentstack.diffusion.imaging import (
    image_to_bytes, tensor_to_image_bytes, tensor_to_images,
)
from latentstack.diffusion.pipelines import (
    PipelineRegistry, build_default_registry,
)
from latentstack.diffusion.utils import SeedSource


class StableDiffusionService:
    """Generate images and videos through registered pipelines.

    Args:
        registry:        Pipeline registry used for dispatch.
        video_assembler: Required only for requests with an input video.
    """

    def __init__(self, registry: PipelineRegistry,
                 video_assembler: Optional[VideoAssembler] = None):
        self.registry = registry
        self.video_assembler = video_assembler

    @classmethod
    def create(
        cls,
        runtime: ModelRuntime,
        prompt_encoder: PromptEncoder,
        video_assembler: Optional[VideoAssembler] = None,
        settings: Optional[Settings] = None,
        seed_source: Optional[SeedSource] = None,
    ) -> 'StableDiffusionService':
        registry = build_default_registry(
            runtime, prompt_encoder, settings=settings, seed_source=seed_source)
        return cls(registry, video_assembler)

    # ---- tensors ----

    def generate(
        self,
        model: ModelOptions,
        prompt: PromptOptions,
        options: SchedulerOptions,
        progress_callback=None,
        cancel_event=None,
    ) -> np.ndarray:
        return self.registry.dispatch(
            model, prompt, options,
            progress_callback=progress_callback, cancel_event=cancel_event)

    def generate_batch(
        self,
        model: ModelOptions,
        prompt: PromptOptions,
        options: SchedulerOptions,
        batch_options: BatchOptions,
        progress_callback=None,
        cancel_event=None,
        on_error: str = 'raise',
    ) -> Iterator[BatchResult]:
        return self.registry.dispatch_batch(
            model, prompt, options, batch_options,
            progress_callback=progress_callback, cancel_event=cancel_event,
            on_error=on_error)

    # ---- images / bytes ----

    def generate_as_images(self, model, prompt, options,
                           progress_callback=None,
                           cancel_event=None) -> List[Image.Image]:
        return tensor_to_images(self.generate(
            model, prompt, options, progress_callback, cancel_event))

    def generate_as_bytes(self, model, prompt, options,
                          progress_callback=None, cancel_event=None) -> bytes:
        """PNG bytes of the first image, or video bytes for video inputs."""
        result = self.generate(
            model, prompt, options, progress_callback, cancel_event)
        return self._to_bytes(prompt, options, result)

    def generate_as_stream(self, model, prompt, options,
                           progress_callback=None,
                           cancel_event=None) -> io.BytesIO:
        """Same payload as :meth:`generate_as_bytes`, as a readable stream."""
        return io.BytesIO(self.generate_as_bytes(
            model, prompt, options, progress_callback, cancel_event))

    # Batch conversions yield ``None`` for items that failed under
    # ``on_error='continue'``.

    def generate_batch_as_images(
        self, model, prompt, options, batch_options,
        progress_callback=None, cancel_event=None, on_error='raise',
    ) -> Iterator[Optional[List[Image.Image]]]:
        for item in self.generate_batch(model, prompt, options, batch_options,
                                        progress_callback, cancel_event,
                                        on_error):
            yield tensor_to_images(item.result) if item.ok else None

    def generate_batch_as_bytes(
        self, model, prompt, options, batch_options,
        progress_callback=None, cancel_event=None, on_error='raise',
    ) -> Iterator[Optional[bytes]]:
        for item in self.generate_batch(model, prompt, options, batch_options,
                                        progress_callback, cancel_event,
                                        on_error):
            yield self._to_bytes(prompt, item.options, item.result) \
                if item.ok else None

    def generate_batch_as_stream(
        self, model, prompt, options, batch_options,
        progress_callback=None, cancel_event=None, on_error='raise',
    ) -> Iterator[Optional[io.BytesIO]]:
        for data in self.generate_batch_as_bytes(
                model, prompt, options, batch_options,
                progress_callback, cancel_event, on_error):
            yield io.BytesIO(data) if data is not None else None

    def _to_bytes(self, prompt: PromptOptions, options: SchedulerOptions,
                  result: np.ndarray) -> bytes:
        if not prompt.has_input_video:
            return image_to_bytes(tensor_to_images(result)[0])
        if self.video_assembler is None:
            raise ValueError(
                "A video_assembler is required for input video requests")
        frames = tensor_to_image_bytes(result)
        return self.video_assembler.assemble(frames, options.video_fps)


__all__ = ['StableDiffusionService']
