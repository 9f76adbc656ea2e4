# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝

"""Batch coordination: N independent runs streamed lazily.

:func:`generate_batch_options` expands one request into per-item options
up front, so bad batch descriptions fail before any inference.  The runs
themselves happen inside a generator: item *k* is only computed when the
consumer asks for it, and a consumer that stops iterating stops issuing
runs.  Each item owns its scheduler and latents; nothing is shared between
items.

A runtime failure ends the item it happened in.  With the default
``on_error="raise"`` it also ends the stream; with ``on_error="continue"``
the failed item is yielded as a :class:`BatchResult` carrying the error and
later items still run.  Cancellation always ends the stream.
"""
from __future__ import annotations

import math
import numpy as np
from typing import Iterator, List, NamedTuple, Optional, Sequence, Tuple

from loguru import logger

from latentstack.config import BatchOptions, PromptOptions, SchedulerOptions
from latentstack.enums import BatchOptionType, SchedulerType
from latentstack.errors import Cancelled, RuntimeInferenceFailure
from latentstack.diffusion.utils import SeedSource, random_seed


class BatchResult(NamedTuple):
    options: SchedulerOptions
    result: Optional[np.ndarray]
    scheduler_type: SchedulerType
    error: Optional[RuntimeInferenceFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None


ON_ERROR_POLICIES = ('raise', 'continue')


def _inclusive_range(start: float, stop: float, increment: float) -> List[float]:
    count = int(math.floor((stop - start) / increment + 1e-9)) + 1
    return [start + i * increment for i in range(max(count, 0))]


def _with(options: SchedulerOptions, **changes) -> SchedulerOptions:
    # Re-validate: swept values must satisfy the same constraints.
    return SchedulerOptions(**{**options.model_dump(), **changes})


def generate_batch_options(
    prompt: PromptOptions,
    options: SchedulerOptions,
    batch_options: BatchOptions,
    scheduler_types: Optional[Sequence[SchedulerType]] = None,
    seed_source: Optional[SeedSource] = None,
) -> List[Tuple[SchedulerType, SchedulerOptions]]:
    """Expand a batch request into ``(scheduler_type, options)`` items.

    ``seed`` batches give every item its own seed (``seed + k`` when a seed
    is configured, otherwise a fresh one).  The other kinds pin a single
    seed so only the swept parameter varies.
    """
    seed_source = seed_source or random_seed
    batch_type = batch_options.batch_type
    scheduler_type = prompt.scheduler_type

    if batch_type == BatchOptionType.SEED:
        count = max(1, int(batch_options.value_to))
        if options.seed > 0:
            seeds = [options.seed + k for k in range(count)]
        else:
            seeds = [int(seed_source()) for _ in range(count)]
        return [(scheduler_type, _with(options, seed=s)) for s in seeds]

    pinned = options if options.seed > 0 \
        else _with(options, seed=int(seed_source()))

    if batch_type == BatchOptionType.SCHEDULER:
        kinds = sorted(scheduler_types or [scheduler_type],
                       key=lambda kind: kind.value)
        return [(kind, pinned) for kind in kinds]

    values = _inclusive_range(batch_options.value_from,
                              batch_options.value_to,
                              batch_options.increment)
    if not values:
        raise ValueError(
            f"Empty {batch_type.value} batch: value_from "
            f"({batch_options.value_from}) > value_to "
            f"({batch_options.value_to})")

    if batch_type == BatchOptionType.STEP:
        return [(scheduler_type, _with(pinned, inference_steps=int(round(v))))
                for v in values]
    if batch_type == BatchOptionType.GUIDANCE:
        return [(scheduler_type, _with(pinned, guidance_scale=round(v, 4)))
                for v in values]
    raise ValueError(f"Unknown batch type: {batch_type!r}")


class BatchCoordinator:
    """Drives independent runs of one diffuser.

    Args:
        diffuser: The diffuser that executes each item.
    """

    def __init__(self, diffuser):
        self.diffuser = diffuser

    def run_batch(
        self,
        model,
        prompt: PromptOptions,
        options: SchedulerOptions,
        batch_options: BatchOptions,
        progress_callback=None,
        cancel_event=None,
        scheduler_types: Optional[Sequence[SchedulerType]] = None,
        on_error: str = 'raise',
    ) -> Iterator[BatchResult]:
        """Expand the batch now and return a lazy stream of its results.

        Args:
            on_error: ``'raise'`` ends the stream at the first failed item;
                      ``'continue'`` yields the failure as a result with
                      ``error`` set and ``result=None``, then moves on.
        """
        if on_error not in ON_ERROR_POLICIES:
            raise ValueError(
                f"on_error must be one of {ON_ERROR_POLICIES}, got {on_error!r}")
        items = generate_batch_options(
            prompt, options, batch_options, scheduler_types,
            seed_source=self.diffuser.seed_source)
        logger.debug(f"Batch of {len(items)} "
                     f"({batch_options.batch_type.value}) prepared")
        return self._iterate(model, prompt, items, progress_callback,
                             cancel_event, on_error)

    def _iterate(self, model, prompt, items, progress_callback, cancel_event,
                 on_error):
        total = len(items)
        for index, (scheduler_type, item_options) in enumerate(items, start=1):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"Batch cancelled before item {index}/{total}")
                raise Cancelled(f"Batch cancelled before item {index} of {total}")

            logger.debug(f"Batch item {index}/{total}: seed={item_options.seed} "
                         f"steps={item_options.inference_steps} "
                         f"guidance={item_options.guidance_scale} "
                         f"scheduler={scheduler_type.value}")
            item_prompt = prompt if scheduler_type == prompt.scheduler_type \
                else prompt.model_copy(update={'scheduler_type': scheduler_type})
            try:
                result = self.diffuser.run(
                    model, item_prompt, item_options,
                    progress_callback=progress_callback,
                    cancel_event=cancel_event)
            except RuntimeInferenceFailure as exc:
                if on_error == 'raise':
                    raise
                logger.warning(f"Batch item {index}/{total} failed: {exc}")
                yield BatchResult(item_options, None, scheduler_type, exc)
                continue
            yield BatchResult(item_options, result, scheduler_type)


__all__ = [
    'BatchResult',
    'BatchCoordinator',
    'ON_ERROR_POLICIES',
    'generate_batch_options',
]
