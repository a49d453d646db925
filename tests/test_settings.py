"""Tests for settings configuration loading."""

from __future__ import annotations

from textwrap import dedent

import pytest
from pydantic import SecretStr

from safe_coordinator.settings import CoordinatorSettings


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Keep default config locations and .env files out of the tests."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("SAFE_COORDINATOR_CONFIG", raising=False)


def test_loads_values_from_toml_table(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        dedent(
            """
            [safe_coordinator]
            rpc_url = "https://rpc.example"
            chain_id = 11155111
            threshold = 3
            owner_addresses = ["0x1111111111111111111111111111111111111111"]
            transfer_amount_eth = "0.5"
            relay_enabled = false
            """
        ).strip()
    )
    monkeypatch.setenv("SAFE_COORDINATOR_CONFIG", str(config_path))

    settings = CoordinatorSettings()

    assert settings.rpc_url == "https://rpc.example"
    assert settings.threshold == 3
    assert settings.owner_addresses == [
        "0x1111111111111111111111111111111111111111"
    ]
    assert settings.transfer_amount_wei == 5 * 10**17
    assert settings.relay_enabled is False


def test_loads_top_level_toml_from_default_location(tmp_path):
    (tmp_path / "safe-coordinator.toml").write_text('rpc_url = "https://local.example"\n')

    settings = CoordinatorSettings()

    assert settings.rpc_url == "https://local.example"


def test_env_overrides_toml(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    config_path.write_text("threshold = 3\n")
    monkeypatch.setenv("SAFE_COORDINATOR_CONFIG", str(config_path))
    monkeypatch.setenv("SAFE_COORDINATOR_THRESHOLD", "1")

    assert CoordinatorSettings().threshold == 1


def test_init_kwargs_override_env(monkeypatch):
    monkeypatch.setenv("SAFE_COORDINATOR_THRESHOLD", "1")

    assert CoordinatorSettings(threshold=2).threshold == 2


def test_comma_separated_env_lists(monkeypatch):
    monkeypatch.setenv("SAFE_COORDINATOR_OWNER_PRIVATE_KEYS", "0xaa, 0xbb")
    monkeypatch.setenv(
        "SAFE_COORDINATOR_OWNER_ADDRESSES",
        "0x1111111111111111111111111111111111111111,0x2222222222222222222222222222222222222222",
    )

    settings = CoordinatorSettings()

    assert [key.get_secret_value() for key in settings.owner_private_keys] == [
        "0xaa",
        "0xbb",
    ]
    assert len(settings.owner_addresses) == 2


@pytest.mark.parametrize(
    "secret", ["deployer_private_key", "owner_private_keys", "relay_api_key"]
)
def test_rejects_secrets_in_toml(tmp_path, monkeypatch, secret):
    config_path = tmp_path / "config.toml"
    config_path.write_text(f'{secret} = "0xdeadbeef"\n')
    monkeypatch.setenv("SAFE_COORDINATOR_CONFIG", str(config_path))

    with pytest.raises(ValueError, match="Security violation"):
        CoordinatorSettings()


def test_secrets_are_wrapped_and_redacted():
    settings = CoordinatorSettings(
        deployer_private_key="0x" + "11" * 32,
        owner_private_keys=["0x" + "22" * 32],
        relay_api_key="token",
    )

    assert isinstance(settings.deployer_private_key, SecretStr)
    dumped = settings.as_safe_dict()
    assert dumped["deployer_private_key"] == "***redacted***"
    assert dumped["owner_private_keys"] == ["***redacted***"]
    assert dumped["relay_api_key"] == "***redacted***"
    assert "22" * 32 not in str(dumped)


def test_blank_secret_is_treated_as_unset():
    assert CoordinatorSettings(relay_api_key="  ").relay_api_key is None


def test_secret_values_lists_every_secret():
    settings = CoordinatorSettings(
        deployer_private_key="0xdd",
        owner_private_keys=["0xaa", "0xbb"],
        relay_api_key="token",
    )

    assert sorted(settings.secret_values()) == ["0xaa", "0xbb", "0xdd", "token"]
