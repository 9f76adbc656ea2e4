"""
Tests for option models, settings and logging setup.
"""
import io

import pytest
from loguru import logger

from latentstack.config import (
    BatchOptions, PromptOptions, SchedulerOptions, Settings,
)
from latentstack.enums import BatchOptionType, SchedulerType
from latentstack.log import configure_logging


def test_scheduler_option_defaults():
    options = SchedulerOptions()
    assert options.seed == 0
    assert options.inference_steps == 30
    assert options.original_inference_steps == 50
    assert options.train_timesteps == 1000
    assert options.height == options.width == 512


@pytest.mark.parametrize('kw', [
    {'height': 500},
    {'width': 7},
    {'inference_steps': 0},
    {'seed': -1},
    {'strength': 1.5},
])
def test_scheduler_option_validation(kw):
    with pytest.raises(ValueError):
        SchedulerOptions(**kw)


def test_prompt_options():
    prompt = PromptOptions(prompt='x', scheduler_type='ddim')
    assert prompt.scheduler_type == SchedulerType.DDIM
    assert not prompt.has_input_image
    assert not prompt.has_input_video
    assert PromptOptions(prompt='x', input_video=[1]).has_input_video
    with pytest.raises(ValueError):
        PromptOptions(prompt='x', batch_count=0)


def test_batch_options():
    assert BatchOptions().batch_type == BatchOptionType.SEED
    with pytest.raises(ValueError):
        BatchOptions(increment=0)


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv('LATENTSTACK_PROGRESS_BAR', 'true')
    monkeypatch.setenv('LATENTSTACK_GUIDANCE_EMBEDDING_DIM', '128')
    monkeypatch.setenv('LATENTSTACK_SCALE_GUIDANCE_EMBEDDING', '0')
    settings = Settings()
    assert settings.progress_bar is True
    assert settings.guidance_embedding_dim == 128
    assert settings.scale_guidance_embedding is False


def test_configure_logging_filters_by_level():
    sink = io.StringIO()
    handler = configure_logging('WARNING', sink=sink)
    try:
        logger.info('quiet')
        logger.warning('loud')
    finally:
        logger.remove(handler)
    text = sink.getvalue()
    assert 'loud' in text
    assert 'quiet' not in text
