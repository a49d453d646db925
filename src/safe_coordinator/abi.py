from __future__ import annotations

import json
from functools import cache
from pathlib import Path

ABIS_DIR = Path(__file__).parent / "abis"

SAFE_ABI_PATH = ABIS_DIR / "Safe.json"
SAFE_PROXY_FACTORY_ABI_PATH = ABIS_DIR / "SafeProxyFactory.json"


def load_abi(path: str | Path) -> list[dict]:
    """Load an ABI from a JSON file and return its "abi" field.

    Args:
        path: Path to the JSON file containing an "abi" field.

    Returns:
        ABI as a list of dictionaries.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        KeyError: If the JSON does not contain an "abi" field.
    """
    p = Path(path)
    with p.open() as f:
        data = json.load(f)
    return data["abi"]


@cache
def load_safe_abi() -> list[dict]:
    """Load the Safe (v1.4.1 L2) ABI."""
    return load_abi(SAFE_ABI_PATH)


@cache
def load_safe_proxy_factory_abi() -> list[dict]:
    """Load the SafeProxyFactory ABI."""
    return load_abi(SAFE_PROXY_FACTORY_ABI_PATH)
