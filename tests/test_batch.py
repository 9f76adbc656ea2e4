"""
Tests for batch option expansion and lazy batch runs.
"""
import threading

import numpy as np
import pytest

from latentstack.config import BatchOptions, PromptOptions, SchedulerOptions
from latentstack.enums import (
    BatchOptionType, GraphType, PipelineType, SchedulerType,
)
from latentstack.errors import Cancelled, RuntimeInferenceFailure
from latentstack.diffusion import (
    build_default_registry,
    generate_batch_options,
    seed_sequence,
)

from conftest import StubRuntime


def _options(**kw):
    kw.setdefault('height', 64)
    kw.setdefault('width', 64)
    kw.setdefault('inference_steps', 2)
    return SchedulerOptions(**kw)


@pytest.fixture
def registry(runtime, prompt_encoder, settings):
    return build_default_registry(runtime, prompt_encoder, settings=settings,
                                  seed_source=seed_sequence(8))


# ═════════════════════════════════════════════════════════════════════
#  Option expansion
# ═════════════════════════════════════════════════════════════════════

def test_seed_batch_from_configured_seed():
    items = generate_batch_options(
        PromptOptions(prompt='x'), _options(seed=100),
        BatchOptions(batch_type=BatchOptionType.SEED, value_to=3))
    assert [o.seed for _, o in items] == [100, 101, 102]
    assert all(kind == SchedulerType.LCM for kind, _ in items)


def test_seed_batch_draws_fresh_seeds():
    items = generate_batch_options(
        PromptOptions(prompt='x'), _options(),
        BatchOptions(batch_type='seed', value_to=4),
        seed_source=seed_sequence(1))
    seeds = [o.seed for _, o in items]
    assert len(seeds) == 4
    assert all(s > 0 for s in seeds)
    assert len(set(seeds)) == 4


def test_step_batch_pins_seed():
    items = generate_batch_options(
        PromptOptions(prompt='x'), _options(),
        BatchOptions(batch_type=BatchOptionType.STEP, value_from=2,
                     value_to=4),
        seed_source=seed_sequence(1))
    assert [o.inference_steps for _, o in items] == [2, 3, 4]
    assert len({o.seed for _, o in items}) == 1


def test_guidance_batch_is_inclusive():
    items = generate_batch_options(
        PromptOptions(prompt='x'), _options(seed=5),
        BatchOptions(batch_type=BatchOptionType.GUIDANCE, value_from=1.0,
                     value_to=2.0, increment=0.5))
    assert [o.guidance_scale for _, o in items] == [1.0, 1.5, 2.0]
    assert all(o.seed == 5 for _, o in items)


def test_scheduler_batch_orders_kinds():
    items = generate_batch_options(
        PromptOptions(prompt='x', scheduler_type=SchedulerType.DDIM),
        _options(seed=5),
        BatchOptions(batch_type=BatchOptionType.SCHEDULER),
        scheduler_types=[SchedulerType.EULER, SchedulerType.DDPM,
                         SchedulerType.DDIM])
    assert [kind for kind, _ in items] == [
        SchedulerType.DDIM, SchedulerType.DDPM, SchedulerType.EULER]


def test_empty_range_is_rejected():
    with pytest.raises(ValueError):
        generate_batch_options(
            PromptOptions(prompt='x'), _options(seed=5),
            BatchOptions(batch_type=BatchOptionType.STEP, value_from=5,
                         value_to=2))


def test_swept_values_are_validated():
    with pytest.raises(ValueError):
        generate_batch_options(
            PromptOptions(prompt='x'), _options(seed=5),
            BatchOptions(batch_type=BatchOptionType.STEP, value_from=0,
                         value_to=2))


# ═════════════════════════════════════════════════════════════════════
#  Lazy runs
# ═════════════════════════════════════════════════════════════════════

def test_batch_runs_lazily(registry, runtime, lcm_model):
    stream = registry.dispatch_batch(
        lcm_model, PromptOptions(prompt='a cat'), _options(seed=20),
        BatchOptions(value_to=3))
    assert runtime.calls == []

    first = next(stream)
    assert first.options.seed == 20
    assert first.result.shape == (1, 3, 64, 64)
    assert len(runtime.calls_for(GraphType.VAE_DECODER)) == 1

    rest = list(stream)
    assert [item.options.seed for item in rest] == [21, 22]
    assert len(runtime.calls_for(GraphType.VAE_DECODER)) == 3
    assert len(runtime.calls_for(GraphType.UNET)) == 6


def test_batch_items_match_single_runs(registry, lcm_model):
    items = list(registry.dispatch_batch(
        lcm_model, PromptOptions(prompt='a cat'), _options(seed=20),
        BatchOptions(value_to=2)))
    single = registry.dispatch(lcm_model, PromptOptions(prompt='a cat'),
                               _options(seed=21))
    np.testing.assert_array_equal(items[1].result, single)


def test_scheduler_batch_visits_pipeline_schedulers(registry, sd_model):
    items = list(registry.dispatch_batch(
        sd_model,
        PromptOptions(prompt='a cat', scheduler_type=SchedulerType.DDIM),
        _options(seed=3, guidance_scale=1.0),
        BatchOptions(batch_type=BatchOptionType.SCHEDULER)))
    assert [item.scheduler_type for item in items] == [
        SchedulerType.DDIM, SchedulerType.DDPM, SchedulerType.EULER]
    assert all(item.options.seed == 3 for item in items)


def test_batch_cancel_between_items(registry, runtime, lcm_model):
    cancel = threading.Event()
    stream = registry.dispatch_batch(
        lcm_model, PromptOptions(prompt='a cat'), _options(seed=20),
        BatchOptions(value_to=3), cancel_event=cancel)

    next(stream)
    cancel.set()
    with pytest.raises(Cancelled):
        next(stream)
    assert len(runtime.calls_for(GraphType.VAE_DECODER)) == 1


def test_abandoned_batch_stops_running(registry, runtime, lcm_model):
    stream = registry.dispatch_batch(
        lcm_model, PromptOptions(prompt='a cat'), _options(seed=20),
        BatchOptions(value_to=5))
    next(stream)
    stream.close()
    assert len(runtime.calls_for(GraphType.UNET)) == 2


# ═════════════════════════════════════════════════════════════════════
#  Failed items
# ═════════════════════════════════════════════════════════════════════

def _failing_registry(prompt_encoder, settings):
    runtime = StubRuntime(fail_on=GraphType.VAE_DECODER, fail_on_call=2)
    registry = build_default_registry(runtime, prompt_encoder,
                                      settings=settings,
                                      seed_source=seed_sequence(8))
    return runtime, registry


def test_failed_item_ends_stream_by_default(prompt_encoder, settings,
                                            lcm_model):
    _, registry = _failing_registry(prompt_encoder, settings)
    stream = registry.dispatch_batch(
        lcm_model, PromptOptions(prompt='a cat'), _options(seed=20),
        BatchOptions(value_to=3))

    assert next(stream).options.seed == 20
    with pytest.raises(RuntimeInferenceFailure):
        next(stream)
    assert list(stream) == []


def test_later_items_run_after_a_failed_item(prompt_encoder, settings,
                                             lcm_model):
    runtime, registry = _failing_registry(prompt_encoder, settings)
    results = list(registry.dispatch_batch(
        lcm_model, PromptOptions(prompt='a cat'), _options(seed=20),
        BatchOptions(value_to=3), on_error='continue'))

    assert [r.options.seed for r in results] == [20, 21, 22]
    assert [r.ok for r in results] == [True, False, True]
    assert results[1].result is None
    assert isinstance(results[1].error, RuntimeInferenceFailure)
    assert isinstance(results[1].error.__cause__, RuntimeError)
    assert results[2].result.shape == (1, 3, 64, 64)
    assert len(runtime.calls_for(GraphType.VAE_DECODER)) == 3


def test_cancel_still_ends_a_continuing_batch(registry, runtime, lcm_model):
    cancel = threading.Event()
    stream = registry.dispatch_batch(
        lcm_model, PromptOptions(prompt='a cat'), _options(seed=20),
        BatchOptions(value_to=3), cancel_event=cancel, on_error='continue')

    next(stream)
    cancel.set()
    with pytest.raises(Cancelled):
        next(stream)


def test_unknown_error_policy_is_rejected(registry, runtime, lcm_model):
    with pytest.raises(ValueError):
        registry.dispatch_batch(
            lcm_model, PromptOptions(prompt='a cat'), _options(seed=20),
            BatchOptions(value_to=3), on_error='ignore')
    assert runtime.calls == []
