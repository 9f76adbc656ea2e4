# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentstack - Diffusion Sampling Engine                             ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
"""Collaborator contracts consumed by the sampling core.

The core never executes a tensor graph itself.  Callers provide:

- a :class:`ModelRuntime` that evaluates a model's named graphs,
- a :class:`PromptEncoder` that turns prompt text into embeddings,
- a :class:`VideoAssembler` that muxes encoded frames into a video.

:class:`ModelOptions` identifies a loaded model family and is passed by
reference into every runtime call.
"""
from __future__ import annotations

from typing import (
    Dict, Mapping, Optional, Protocol, Sequence, Tuple, runtime_checkable,
)

import numpy as np
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from latentstack.enums import GraphType, PipelineType
from latentstack.errors import LatentStackError, RuntimeInferenceFailure


class ModelOptions(BaseModel):
    """Identity of a loaded model family (unet, VAE encoder / decoder).

    Args:
        name:            Display name, used in logs only.
        pipeline_type:   Which registered pipeline serves this model.
        scale_factor:    VAE latent scaling factor (0.18215 for SD 1.x).
        latent_channels: Channels in latent space.
        input_bindings:  Optional ``graph -> {role: input_name}`` table.
                         When a graph is listed here, inputs are bound by
                         role; otherwise they are bound in the positional
                         order reported by the runtime.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    pipeline_type: PipelineType = PipelineType.LATENT_CONSISTENCY
    scale_factor: float = Field(default=0.18215, gt=0.0)
    latent_channels: int = Field(default=4, ge=1)
    input_bindings: Dict[GraphType, Dict[str, str]] = Field(
        default_factory=dict)


@runtime_checkable
class ModelRuntime(Protocol):

    def infer(self, model: ModelOptions, graph: GraphType,
              inputs: Mapping[str, np.ndarray]) -> Mapping[str, np.ndarray]:
        ...

    def get_input_names(self, model: ModelOptions,
                        graph: GraphType) -> Sequence[str]:
        ...


@runtime_checkable
class PromptEncoder(Protocol):

    def encode(self, model: ModelOptions, prompt, options) -> np.ndarray:
        ...


@runtime_checkable
class VideoAssembler(Protocol):

    def assemble(self, frames: Sequence[bytes], fps: float) -> bytes:
        ...


# ═════════════════════════════════════════════════════════════════════
#  Input binding / invocation helpers
# ═════════════════════════════════════════════════════════════════════

def bind_inputs(
    runtime: ModelRuntime,
    model: ModelOptions,
    graph: GraphType,
    roles: Sequence[Tuple[str, np.ndarray]],
) -> Dict[str, np.ndarray]:
    """Map ``(role, tensor)`` pairs onto the graph's input names.

    Roles declared in ``model.input_bindings[graph]`` are bound by name.
    If the model does not declare every role, the runtime's reported input
    order is used and roles are assigned positionally.
    """
    declared = model.input_bindings.get(graph)
    if declared and all(role in declared for role, _ in roles):
        return {declared[role]: value for role, value in roles}

    names = list(runtime.get_input_names(model, graph))
    if len(names) < len(roles):
        raise ValueError(
            f"Graph '{graph.value}' exposes {len(names)} inputs, "
            f"{len(roles)} required")
    return {names[i]: value for i, (_, value) in enumerate(roles)}


def run_inference(
    runtime: ModelRuntime,
    model: ModelOptions,
    graph: GraphType,
    inputs: Mapping[str, np.ndarray],
) -> np.ndarray:
    """Invoke ``graph`` once and return its first output tensor."""
    try:
        outputs = runtime.infer(model, graph, inputs)
    except LatentStackError:
        raise
    except Exception as exc:
        logger.error(f"{graph.value} inference failed for model "
                     f"'{model.name}': {exc}")
        raise RuntimeInferenceFailure(graph.value, str(exc)) from exc

    first: Optional[np.ndarray] = next(iter(outputs.values()), None)
    if first is None:
        raise RuntimeInferenceFailure(graph.value, 'runtime returned no outputs')
    return np.asarray(first, dtype=np.float32)


__all__ = [
    'ModelOptions',
    'ModelRuntime',
    'PromptEncoder',
    'VideoAssembler',
    'bind_inputs',
    'run_inference',
]
