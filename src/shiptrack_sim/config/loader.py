import json
from pathlib import Path
from typing import Any


def _load_json_dict(final_path: Path) -> dict[str, Any]:
    with open(final_path, encoding="utf-8") as f:
        data = json.load(f)
        if not isinstance(data, dict):
            raise TypeError(f"Expected dict from {final_path}, got {type(data)}")
        return data


def load_simulation_config(config_path: str | None = None) -> dict[str, Any]:
    """
    Loads the simulation runtime configuration.
    If no path is provided, looks for simulation_config.json in the config directory.
    """
    if config_path is None:
        final_path = Path(__file__).parent / "simulation_config.json"
    else:
        final_path = Path(config_path)
    return _load_json_dict(final_path)


def load_world_definition(config_path: str | None = None) -> dict[str, Any]:
    """
    Loads the static world definition (city catalog, package types, samples).
    If no path is provided, looks for world_definition.json in the config directory.
    """
    if config_path is None:
        final_path = Path(__file__).parent / "world_definition.json"
    else:
        final_path = Path(config_path)
    return _load_json_dict(final_path)
