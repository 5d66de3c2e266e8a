#!/usr/bin/env python3
"""Test configuration loading and discovery options."""

import argparse
import os
import sys
from datetime import timedelta
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from aws_infra_catalog.core.config import Config, DiscoveryOptions

ENV_VARS = [
    "AWS_DEFAULT_REGION",
    "AWS_PROFILE",
    "OUTPUT_DIR",
    "CACHE_HOURS",
    "CACHE_ENABLED",
    "MAX_RETRIES",
    "BATCH_SIZE",
    "PAGINATION_DELAY",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults():
    config = Config()

    assert config.max_retries == 5
    assert config.max_results == 10
    assert config.pagination_delay == 0.04
    assert (config.az_batch_size, config.az_batch_delay) == (20, 0.1)
    assert (config.region_name_batch_size, config.region_name_batch_delay) == (10, 0.1)
    assert (config.service_name_batch_size, config.service_name_batch_delay) == (
        20,
        0.1,
    )
    assert config.service_by_region_batch_size == 10
    assert config.service_by_region_batch_delay == 0
    assert config.cache_ttl == timedelta(hours=24)
    assert config.cache_path == Path("output") / ".cache-services-by-region.json"


def test_from_env(clean_env):
    clean_env.setenv("AWS_DEFAULT_REGION", "eu-west-1")
    clean_env.setenv("OUTPUT_DIR", "/tmp/catalog")
    clean_env.setenv("CACHE_HOURS", "6")
    clean_env.setenv("CACHE_ENABLED", "false")
    clean_env.setenv("BATCH_SIZE", "4")
    clean_env.setenv("PAGINATION_DELAY", "100")

    config = Config.from_env()

    assert config.aws_region == "eu-west-1"
    assert config.output_dir == "/tmp/catalog"
    assert config.cache_ttl == timedelta(hours=6)
    assert config.cache_enabled is False
    assert config.service_by_region_batch_size == 4
    assert config.pagination_delay == 0.1


def test_from_args_overrides_env(clean_env):
    clean_env.setenv("AWS_DEFAULT_REGION", "eu-west-1")
    args = argparse.Namespace(
        region="us-west-2",
        profile="catalog",
        output_dir="out",
        cache_hours=2,
        no_cache=True,
        batch_size=3,
        pagination_delay=0,
        max_retries=2,
        no_launch_data=True,
        log_level="DEBUG",
    )

    config = Config.from_args(args)

    assert config.aws_region == "us-west-2"
    assert config.aws_profile == "catalog"
    assert config.cache_path == Path("out") / ".cache-services-by-region.json"
    assert config.cache_hours == 2
    assert config.cache_enabled is False
    assert config.service_by_region_batch_size == 3
    assert config.pagination_delay == 0
    assert config.max_retries == 2
    assert config.launch_data_enabled is False
    assert config.log_level == "DEBUG"


def test_from_args_keeps_env_when_unset(clean_env):
    clean_env.setenv("AWS_DEFAULT_REGION", "ap-south-1")

    config = Config.from_args(argparse.Namespace())

    assert config.aws_region == "ap-south-1"
    assert config.cache_enabled is True


def test_zero_cache_hours_is_honoured(clean_env):
    clean_env.setenv("CACHE_HOURS", "12")

    config = Config.from_args(argparse.Namespace(cache_hours=0.0))

    assert config.cache_hours == 0
    assert config.cache_ttl == timedelta(0)


@pytest.mark.parametrize(
    "overrides",
    [{"batch_size": 0}, {"max_retries": 0}, {"cache_hours": -1.0}],
)
def test_from_args_rejects_unusable_values(clean_env, overrides):
    with pytest.raises(ValueError):
        Config.from_args(argparse.Namespace(**overrides))


def test_discovery_options():
    assert DiscoveryOptions().run_regions
    assert DiscoveryOptions().run_services
    assert not DiscoveryOptions().run_service_mapping

    regions_only = DiscoveryOptions(regions_only=True, include_service_mapping=True)
    assert not regions_only.run_services
    assert regions_only.run_service_mapping

    services_only = DiscoveryOptions(services_only=True, include_service_mapping=True)
    assert not services_only.run_regions
    assert not services_only.run_service_mapping


def test_discovery_options_are_exclusive():
    with pytest.raises(ValueError):
        DiscoveryOptions(regions_only=True, services_only=True)
