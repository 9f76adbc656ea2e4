# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""Exception taxonomy for latentstack.

Every failure surfaces to the caller of ``generate`` / ``generate_batch``:

- **PipelineNotFound** / **DiffuserNotFound** / **IncompatibleScheduler**
  are raised while dispatching, before any inference call.
- **Cancelled** aborts a run cooperatively; no partial output is returned.
- **RuntimeInferenceFailure** wraps an error raised by the model runtime.
  The original exception is chained as ``__cause__``.
"""
from __future__ import annotations


class LatentStackError(Exception):
    """Base class for all latentstack errors."""


class PipelineNotFound(LatentStackError):

    def __init__(self, pipeline_type):
        self.pipeline_type = pipeline_type
        super().__init__(
            f"Pipeline '{pipeline_type}' not found or is unsupported")


class DiffuserNotFound(LatentStackError):

    def __init__(self, diffuser_type, pipeline_type):
        self.diffuser_type = diffuser_type
        self.pipeline_type = pipeline_type
        super().__init__(
            f"Diffuser '{diffuser_type}' not found or is unsupported "
            f"by the '{pipeline_type}' pipeline")


class IncompatibleScheduler(LatentStackError):

    def __init__(self, scheduler_type, pipeline_type):
        self.scheduler_type = scheduler_type
        self.pipeline_type = pipeline_type
        super().__init__(
            f"Scheduler '{scheduler_type}' is not compatible with the "
            f"'{pipeline_type}' pipeline")


class Cancelled(LatentStackError):
    """Raised when a run observes its cancel signal."""


class RuntimeInferenceFailure(LatentStackError):
    """The model runtime failed while evaluating ``graph``."""

    def __init__(self, graph, message: str = ''):
        self.graph = graph
        detail = f": {message}" if message else ''
        super().__init__(f"Inference failed for graph '{graph}'{detail}")


class SchedulerClosedError(LatentStackError):
    """A scheduler was used after its state had been released."""


__all__ = [
    'LatentStackError',
    'PipelineNotFound',
    'DiffuserNotFound',
    'IncompatibleScheduler',
    'Cancelled',
    'RuntimeInferenceFailure',
    'SchedulerClosedError',
]
