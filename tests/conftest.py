"""
Pytest configuration and shared fixtures for archrisk tests

Provides common fixtures for configuration, input records and temp files.
"""

import json
import tempfile
from pathlib import Path

import pytest

from archrisk.config import ArchriskConfig, LLMRouterConfig, set_config
from archrisk.models import ArchitectureInput


@pytest.fixture(autouse=True)
def reset_global_config():
    """Never let one test's global config leak into another"""
    set_config(None)
    yield
    set_config(None)


@pytest.fixture
def test_config():
    """Configuration using the mock LLM and no telemetry side effects"""
    config = ArchriskConfig()
    config.llm.default = "mock"
    config.llm.routers = {"mock": LLMRouterConfig(provider="mock")}
    config.telemetry.enabled = False
    return config


@pytest.fixture
def offline_config():
    """Configuration whose only router has no API key available"""
    config = ArchriskConfig()
    config.llm.default = "gemini"
    config.llm.routers = {
        "gemini": LLMRouterConfig(
            provider="openai",
            api_key=None,
            api_key_env="ARCHRISK_TEST_UNSET_API_KEY",
        )
    }
    config.telemetry.enabled = False
    return config


@pytest.fixture
def sample_input_data():
    """Request body as the browser form sends it"""
    return {
        "systemName": "ShopFront",
        "components": "API Gateway, Order Service, Payment-Gateway, Postgres, Redis",
        "databases": "single PostgreSQL primary",
        "caching": "Redis, no replication",
        "messageQueue": "none",
        "externalAPIs": "Stripe (synchronous)",
        "trafficLoad": "2k req/s peak",
        "scaling": "no auto-scaling",
        "redundancy": "no multi-AZ",
    }


@pytest.fixture
def sample_record(sample_input_data):
    return ArchitectureInput.model_validate(sample_input_data)


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for testing"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def temp_input_file(temp_dir, sample_input_data):
    """Architecture description file for CLI testing"""
    input_file = temp_dir / "system.json"
    input_file.write_text(json.dumps(sample_input_data))
    return input_file


@pytest.fixture
def temp_config_file(temp_dir):
    """Provide a temporary config file for testing"""
    config_file = temp_dir / "archrisk.yml"
    config_file.write_text(
        """
log_level: "DEBUG"
llm:
  default: "test_router"
  routers:
    test_router:
      provider: "mock"
      model: "test-model"
server:
  port: 8081
"""
    )
    return config_file


def pytest_configure(config):
    """Configure custom pytest markers"""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line(
        "markers", "integration: Integration tests across multiple components"
    )
