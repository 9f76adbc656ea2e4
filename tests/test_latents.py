"""
Tests for latent encode / decode, runtime input binding and image conversion.
"""
import numpy as np
import pytest

from latentstack.config import PromptOptions, SchedulerOptions
from latentstack.enums import GraphType
from latentstack.errors import RuntimeInferenceFailure
from latentstack.runtime import ModelOptions, bind_inputs, run_inference
from latentstack.diffusion.latents import LatentCodec
from latentstack.diffusion.imaging import (
    image_to_bytes,
    image_to_tensor,
    images_to_tensor,
    tensor_to_image_bytes,
    tensor_to_images,
)

from conftest import StubRuntime


def test_decode_single_item_is_one_call(runtime, lcm_model):
    codec = LatentCodec(runtime)
    latents = np.full((1, 4, 8, 8), lcm_model.scale_factor, dtype=np.float32)
    out = codec.decode(lcm_model, PromptOptions(prompt='x'),
                       SchedulerOptions(), latents)

    assert out.shape == (1, 3, 64, 64)
    calls = runtime.calls_for(GraphType.VAE_DECODER)
    assert len(calls) == 1
    np.testing.assert_allclose(calls[0]['latent_sample'], 1.0, rtol=1e-6)


def test_decode_batch_is_split_and_joined_in_order(runtime, lcm_model):
    codec = LatentCodec(runtime)
    latents = np.stack([np.full((4, 8, 8), v, dtype=np.float32)
                        for v in (0.1, 0.2, 0.3)])
    out = codec.decode(lcm_model, PromptOptions(prompt='x', batch_count=3),
                       SchedulerOptions(), latents)

    assert out.shape == (3, 3, 64, 64)
    calls = runtime.calls_for(GraphType.VAE_DECODER)
    assert len(calls) == 3
    assert all(c['latent_sample'].shape == (1, 4, 8, 8) for c in calls)
    means = [float(c['latent_sample'].mean()) for c in calls]
    assert means == sorted(means)
    assert out[0, 0, 0, 0] < out[1, 0, 0, 0] < out[2, 0, 0, 0]


def test_encode_scales_and_repeats(runtime, lcm_model):
    codec = LatentCodec(runtime)
    images = np.full((1, 3, 64, 64), 0.5, dtype=np.float32)
    latents = codec.encode(lcm_model, PromptOptions(prompt='x', batch_count=2),
                           SchedulerOptions(), images)

    assert latents.shape == (2, 4, 8, 8)
    np.testing.assert_allclose(latents, 0.5 * lcm_model.scale_factor,
                               rtol=1e-6)
    assert len(runtime.calls_for(GraphType.VAE_ENCODER)) == 1


def test_bind_inputs_by_declared_roles(runtime):
    model = ModelOptions(name='m', input_bindings={
        GraphType.VAE_DECODER: {'latent_sample': 'z'}})
    z = np.zeros((1, 4, 8, 8), dtype=np.float32)
    bound = bind_inputs(runtime, model, GraphType.VAE_DECODER,
                        [('latent_sample', z)])
    assert list(bound) == ['z']


def test_bind_inputs_positionally(runtime, lcm_model):
    a = np.zeros(1)
    b = np.ones(1)
    bound = bind_inputs(runtime, lcm_model, GraphType.UNET,
                        [('x', a), ('t', b)])
    assert list(bound) == ['sample', 'timestep']

    with pytest.raises(ValueError):
        bind_inputs(runtime, lcm_model, GraphType.VAE_DECODER,
                    [('x', a), ('t', b)])


def test_run_inference_wraps_runtime_errors(lcm_model):
    failing = StubRuntime(fail_on=GraphType.VAE_DECODER)
    with pytest.raises(RuntimeInferenceFailure) as info:
        run_inference(failing, lcm_model, GraphType.VAE_DECODER,
                      {'latent_sample': np.zeros((1, 4, 8, 8))})
    assert info.value.graph == 'vae_decoder'
    assert isinstance(info.value.__cause__, RuntimeError)


def test_image_tensor_conversions():
    frame = np.zeros((32, 48, 3), dtype=np.uint8)
    frame[..., 0] = 255
    tensor = image_to_tensor(frame, 64, 64)
    assert tensor.shape == (1, 3, 64, 64)
    assert tensor.min() >= -1.0 and tensor.max() <= 1.0

    stacked = images_to_tensor([frame, frame], 64, 64)
    assert stacked.shape == (2, 3, 64, 64)

    images = tensor_to_images(stacked)
    assert len(images) == 2
    assert images[0].size == (64, 64)
    assert images[0].getpixel((0, 0))[0] == 255

    png = image_to_bytes(images[0])
    assert png.startswith(b'\x89PNG')
    assert len(tensor_to_image_bytes(stacked)) == 2

    with pytest.raises(ValueError):
        tensor_to_images(np.zeros((3, 8, 8)))
