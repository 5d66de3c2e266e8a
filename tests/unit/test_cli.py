#!/usr/bin/env python3
"""Test command-line entry point."""

import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from aws_infra_catalog.cli import main as cli_main
from aws_infra_catalog.core.cache import CacheStore
from aws_infra_catalog.core.config import Config
from aws_infra_catalog.core.error_handling import DiscoveryError
from aws_infra_catalog.core.models import (
    Catalog,
    Region,
    RegionDiscoveryResult,
    Service,
    ServiceDiscoveryResult,
)
from aws_infra_catalog.data_sources.parameter_client import ParameterSourceClient


class FakeAggregator:
    def __init__(self, catalog=None, error=None):
        self.catalog = catalog
        self.error = error
        self.options = None

    async def run(self, options):
        self.options = options
        if self.error is not None:
            raise self.error
        return self.catalog


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("OUTPUT_DIR", "CACHE_ENABLED", "CACHE_HOURS", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def install_aggregator(monkeypatch, aggregator):
    monkeypatch.setattr(
        cli_main,
        "build_aggregator",
        lambda config, cache_store, cancel_event: aggregator,
    )


def create_catalog(errors=None):
    return Catalog(
        regions=RegionDiscoveryResult([Region("us-east-1", "US East (N. Virginia)")]),
        services=ServiceDiscoveryResult([Service("ec2", "Amazon EC2")]),
        errors=errors or {},
    )


def test_successful_run_writes_outputs(clean_env, tmp_path, capsys):
    aggregator = FakeAggregator(catalog=create_catalog())
    install_aggregator(clean_env, aggregator)

    exit_code = cli_main.main(["--output-dir", str(tmp_path), "--regions-only"])

    assert exit_code == 0
    assert aggregator.options.regions_only is True
    assert (tmp_path / "regions.json").exists()
    assert (tmp_path / "complete-data.json").exists()
    assert "Regions discovered: 1" in capsys.readouterr().out


def test_pipeline_error_exits_non_zero(clean_env, tmp_path):
    catalog = create_catalog(errors={"services_by_region": "throttled"})
    install_aggregator(clean_env, FakeAggregator(catalog=catalog))

    assert cli_main.main(["--output-dir", str(tmp_path)]) == 1
    # Partial results are still written
    assert (tmp_path / "regions.json").exists()


def test_discovery_error_exits_non_zero(clean_env, tmp_path):
    error = DiscoveryError("All discovery pipelines failed")
    install_aggregator(clean_env, FakeAggregator(error=error))

    assert cli_main.main(["--output-dir", str(tmp_path)]) == 1
    assert not (tmp_path / "complete-data.json").exists()


def test_cache_info(clean_env, tmp_path, capsys):
    CacheStore(tmp_path / ".cache-services-by-region.json").save({"by_region": {}})

    exit_code = cli_main.main(["--output-dir", str(tmp_path), "--cache-info"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "CACHE INFORMATION" in output
    assert "Valid" in output


def test_clear_cache_then_runs(clean_env, tmp_path):
    cache_path = tmp_path / ".cache-services-by-region.json"
    CacheStore(cache_path).save({"by_region": {}})
    install_aggregator(clean_env, FakeAggregator(catalog=create_catalog()))

    exit_code = cli_main.main(["--output-dir", str(tmp_path), "--clear-cache"])

    assert exit_code == 0
    assert not cache_path.exists()


def test_zero_batch_size_is_a_usage_error(clean_env, tmp_path):
    with pytest.raises(SystemExit) as exc_info:
        cli_main.main(["--output-dir", str(tmp_path), "--batch-size", "0"])

    assert exc_info.value.code == 2


def test_only_flags_are_exclusive():
    with pytest.raises(SystemExit):
        cli_main.build_parser().parse_args(["--regions-only", "--services-only"])


def test_build_aggregator_wiring():
    config = Config(aws_region="eu-west-1", launch_data_enabled=False)

    aggregator = cli_main.build_aggregator(config, None, None)

    assert isinstance(aggregator.client, ParameterSourceClient)
    assert aggregator.client.region == "eu-west-1"
    assert aggregator.launch_data_provider is None
    assert aggregator.cache_store is None
