"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import os
import tomllib
from decimal import Decimal
from pathlib import Path
from typing import Annotated, Any

from dotenv import load_dotenv
from eth_account import Account
from eth_account.signers.local import LocalAccount
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import (
    SAFE_DEPLOYMENTS,
    SAFE_SERVICE_URLS,
    SEPOLIA_CHAIN_ID,
    SafeDeployment,
)
from .errors import ConfigurationError
from .models import OwnerSet
from .units import eth_to_wei

load_dotenv()

ENV_PREFIX = "SAFE_COORDINATOR_"

SECRET_FIELDS = {"deployer_private_key", "owner_private_keys", "relay_api_key"}


def _split_csv(v: Any) -> Any:
    if isinstance(v, str):
        return [item.strip() for item in v.split(",") if item.strip()]
    return v


class CoordinatorSettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with SAFE_COORDINATOR_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- network ---
    rpc_url: str | None = None
    chain_id: int = SEPOLIA_CHAIN_ID
    request_timeout: float = Field(default=10.0, gt=0)

    # --- credentials ---
    deployer_private_key: SecretStr | None = None
    owner_private_keys: Annotated[list[SecretStr], NoDecode] = Field(
        default_factory=list
    )

    # --- deployment ---
    owner_addresses: Annotated[list[str], NoDecode] = Field(default_factory=list)
    threshold: int = 2
    salt_nonce: int | None = None
    safe_singleton_address: str | None = None
    safe_proxy_factory_address: str | None = None
    safe_fallback_handler_address: str | None = None

    # --- transfer ---
    safe_address: str | None = None
    recipient: str | None = None
    transfer_amount_eth: Decimal = Field(default=Decimal("0.01"), ge=0)
    dry_run: bool = False

    # --- relay (Safe Transaction Service) ---
    relay_enabled: bool = True
    relay_url: str | None = None
    relay_api_key: SecretStr | None = None

    # --- logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        extra="ignore",  # ignore unknown keys in env/config file
    )

    @field_validator("deployer_private_key", "relay_api_key", mode="before")
    @classmethod
    def wrap_secrets(cls, v: Any) -> SecretStr | None:
        """Wrap string secrets in SecretStr."""
        if v is None or isinstance(v, SecretStr):
            return v
        if isinstance(v, str) and not v.strip():
            return None
        return SecretStr(v)

    @field_validator("owner_private_keys", "owner_addresses", mode="before")
    @classmethod
    def split_lists(cls, v: Any) -> Any:
        """Accept comma separated strings from the environment."""
        return _split_csv(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Custom config-file source with explicit precedence: CLI > ENV > FILE."""
        env_cfg = os.environ.get(f"{ENV_PREFIX}CONFIG")
        cfg_path = Path(env_cfg) if env_cfg else None

        class TomlConfigSource(PydanticBaseSettingsSource):
            def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
                super().__init__(settings_cls)
                self._path = path

            def get_field_value(
                self, field: Any, field_name: str
            ) -> tuple[Any, str, bool]:
                return None, "", False

            def __call__(self) -> dict[str, Any]:
                if not self._path:
                    # Try default locations
                    local_config = Path("safe-coordinator.toml")
                    user_config = (
                        Path.home() / ".config" / "safe-coordinator" / "config.toml"
                    )
                    if local_config.exists():
                        self._path = local_config
                    elif user_config.exists():
                        self._path = user_config
                    else:
                        return {}

                if not self._path.exists():
                    return {}

                with self._path.open("rb") as f:
                    data = tomllib.load(f)  # supports top-level or [safe_coordinator]
                body = data.get("safe_coordinator", data)
                if not isinstance(body, dict):
                    return {}

                for key in SECRET_FIELDS:
                    if key in body:
                        raise ValueError(
                            f"Security violation: '{key}' found in TOML config file. "
                            f"Secrets must only be provided via environment variables or CLI flags."
                        )

                return body

        return (
            init_settings,  # CLI (highest)
            env_settings,  # ENV
            dotenv_settings,  # .env
            TomlConfigSource(settings_cls, cfg_path),  # CONFIG (lowest)
            file_secret_settings,  # optional secrets dir
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a dict with secrets redacted."""
        data = self.model_dump(mode="json")
        if self.deployer_private_key:
            data["deployer_private_key"] = "***redacted***"
        if self.owner_private_keys:
            data["owner_private_keys"] = ["***redacted***"] * len(
                self.owner_private_keys
            )
        if self.relay_api_key:
            data["relay_api_key"] = "***redacted***"
        return data

    def secret_values(self) -> list[str]:
        """Raw secret strings, for masking in log output."""
        secrets = [key.get_secret_value() for key in self.owner_private_keys]
        for secret in (self.deployer_private_key, self.relay_api_key):
            if secret is not None:
                secrets.append(secret.get_secret_value())
        return secrets

    @staticmethod
    def env_name(field_name: str) -> str:
        return f"{ENV_PREFIX}{field_name.upper()}"

    def require(self, *field_names: str) -> None:
        """Fail fast when any of ``field_names`` is unset or empty.

        Raises:
            ConfigurationError: Listing every missing environment variable
        """
        missing = [name for name in field_names if not getattr(self, name)]
        if missing:
            names = ", ".join(self.env_name(name) for name in missing)
            raise ConfigurationError(f"Missing required configuration: {names}")

    @property
    def rpc_url_required(self) -> str:
        """Get rpc_url, raising ConfigurationError if not set."""
        if not self.rpc_url:
            raise ConfigurationError(f"{self.env_name('rpc_url')} must be configured")
        return self.rpc_url

    @property
    def safe_address_required(self) -> str:
        """Get safe_address, raising ConfigurationError if not set."""
        if not self.safe_address:
            raise ConfigurationError(
                f"{self.env_name('safe_address')} must be configured"
            )
        return self.safe_address

    @property
    def recipient_required(self) -> str:
        """Get recipient, raising ConfigurationError if not set."""
        if not self.recipient:
            raise ConfigurationError(f"{self.env_name('recipient')} must be configured")
        return self.recipient

    @property
    def deployer_account(self) -> LocalAccount:
        if self.deployer_private_key is None:
            raise ConfigurationError(
                f"{self.env_name('deployer_private_key')} must be configured"
            )
        return _load_account(
            self.deployer_private_key.get_secret_value(), "deployer_private_key"
        )

    @property
    def owner_accounts(self) -> list[LocalAccount]:
        """Local signer accounts, in configuration order."""
        return [
            _load_account(key.get_secret_value(), f"owner_private_keys[{index}]")
            for index, key in enumerate(self.owner_private_keys)
        ]

    @property
    def owners(self) -> OwnerSet:
        """Owner set for deployment: signer addresses then extra addresses."""
        addresses = [account.address for account in self.owner_accounts]
        known = {address.lower() for address in addresses}
        for address in self.owner_addresses:
            if address.lower() not in known:
                addresses.append(address)
                known.add(address.lower())
        return OwnerSet.from_addresses(addresses)

    @property
    def transfer_amount_wei(self) -> int:
        try:
            return eth_to_wei(self.transfer_amount_eth)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    @property
    def safe_deployment(self) -> SafeDeployment:
        """Safe contract addresses for the configured chain, with overrides."""
        defaults = SAFE_DEPLOYMENTS.get(self.chain_id)
        deployment: dict[str, str | None] = {
            "singleton": self.safe_singleton_address
            or (defaults["singleton"] if defaults else None),
            "proxy_factory": self.safe_proxy_factory_address
            or (defaults["proxy_factory"] if defaults else None),
            "fallback_handler": self.safe_fallback_handler_address
            or (defaults["fallback_handler"] if defaults else None),
        }
        missing = [name for name, value in deployment.items() if value is None]
        if missing:
            raise ConfigurationError(
                f"No Safe deployment known for chain {self.chain_id}; "
                f"configure {', '.join(self.env_name(f'safe_{name}_address') for name in missing)}"
            )
        return SafeDeployment(
            singleton=str(deployment["singleton"]),
            proxy_factory=str(deployment["proxy_factory"]),
            fallback_handler=str(deployment["fallback_handler"]),
        )

    @property
    def relay_url_resolved(self) -> str:
        """Relay endpoint, defaulting to the public Safe Transaction Service."""
        if self.relay_url:
            return self.relay_url.rstrip("/")
        if self.chain_id not in SAFE_SERVICE_URLS:
            raise ConfigurationError(
                f"No Safe Transaction Service known for chain {self.chain_id}; "
                f"configure {self.env_name('relay_url')}"
            )
        return SAFE_SERVICE_URLS[self.chain_id]


def _load_account(private_key: str, field_name: str) -> LocalAccount:
    try:
        return Account.from_key(private_key)
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"Invalid private key in {field_name}") from e
