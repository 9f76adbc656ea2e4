"""Shared stubs for the latentstack tests.

``StubRuntime`` stands in for a real model runtime: it records every call
and returns small deterministic tensors shaped like the real graphs would.
"""
import numpy as np
import pytest

from latentstack.config import Settings
from latentstack.enums import GraphType, PipelineType
from latentstack.runtime import ModelOptions
from latentstack.diffusion.utils import seed_sequence
from latentstack.service import StableDiffusionService

INPUT_NAMES = {
    GraphType.UNET: ['sample', 'timestep', 'encoder_hidden_states',
                     'timestep_cond'],
    GraphType.VAE_ENCODER: ['sample'],
    GraphType.VAE_DECODER: ['latent_sample'],
    GraphType.TEXT_ENCODER: ['input_ids'],
}


class StubRuntime:

    def __init__(self, fail_on=None, fail_on_call=None):
        self.calls = []
        self.fail_on = fail_on
        # 1-based index among calls to fail_on; None fails every call
        self.fail_on_call = fail_on_call

    def get_input_names(self, model, graph):
        return INPUT_NAMES[graph]

    def infer(self, model, graph, inputs):
        self.calls.append((graph, {k: np.array(v) for k, v in inputs.items()}))
        if graph == self.fail_on and (
                self.fail_on_call is None
                or len(self.calls_for(graph)) == self.fail_on_call):
            raise RuntimeError('device lost')

        if graph == GraphType.UNET:
            sample = inputs['sample']
            return {'out_sample': (0.1 * sample).astype(np.float32)}
        if graph == GraphType.VAE_DECODER:
            latent = inputs['latent_sample']
            n, _, h, w = latent.shape
            value = np.tanh(latent.mean(axis=(1, 2, 3)))
            pixels = np.ones((n, 3, h * 8, w * 8), dtype=np.float32)
            return {'sample': pixels * value.reshape(n, 1, 1, 1)}
        if graph == GraphType.VAE_ENCODER:
            image = inputs['sample']
            n, _, h, w = image.shape
            value = image.mean(axis=(1, 2, 3)).reshape(n, 1, 1, 1)
            return {'latent': np.ones((n, 4, h // 8, w // 8),
                                      dtype=np.float32) * value}
        raise AssertionError(f'unexpected graph {graph}')

    def calls_for(self, graph):
        return [inputs for g, inputs in self.calls if g == graph]


class StubPromptEncoder:

    def __init__(self):
        self.calls = []

    def encode(self, model, prompt, options):
        self.calls.append((prompt, options))
        rows = 2 if options.guidance_scale > 1.0 else 1
        return np.zeros((rows, 77, 32), dtype=np.float32)


class StubVideoAssembler:

    def __init__(self):
        self.calls = []

    def assemble(self, frames, fps):
        self.calls.append((list(frames), fps))
        return b'VIDEO' + bytes([len(frames)])


@pytest.fixture
def runtime():
    return StubRuntime()


@pytest.fixture
def prompt_encoder():
    return StubPromptEncoder()


@pytest.fixture
def video_assembler():
    return StubVideoAssembler()


@pytest.fixture
def settings():
    return Settings(log_level='DEBUG', progress_bar=False,
                    guidance_embedding_dim=256,
                    scale_guidance_embedding=False)


@pytest.fixture
def lcm_model():
    return ModelOptions(name='lcm-test',
                        pipeline_type=PipelineType.LATENT_CONSISTENCY)


@pytest.fixture
def sd_model():
    return ModelOptions(name='sd-test',
                        pipeline_type=PipelineType.STABLE_DIFFUSION)


@pytest.fixture
def service(runtime, prompt_encoder, video_assembler, settings):
    return StableDiffusionService.create(
        runtime, prompt_encoder, video_assembler,
        settings=settings, seed_source=seed_sequence(1234))
