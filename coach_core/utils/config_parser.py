import os
from pathlib import Path
from typing import Optional, Sequence

from omegaconf import DictConfig, OmegaConf

PACKAGE_ROOT = Path(__file__).resolve().parents[1]


def find_project_root(marker: str = "pyproject.toml") -> Path:
    """
    Finds the project root by searching upwards for a marker file.

    This function starts from the current file's location and traverses up
    the directory tree until it finds a directory containing the specified
    marker file. When the package runs from an installed location with no
    marker above it, the directory containing the package is used.

    Args:
        marker: The name of the marker file to find (e.g., 'pyproject.toml').

    Returns:
        The Path object representing the project root directory.
    """
    current_path = Path(__file__).resolve()
    while current_path != current_path.parent:  # Stop at the filesystem root
        if (current_path / marker).exists():
            return current_path
        current_path = current_path.parent

    return PACKAGE_ROOT.parent


# --- Application-wide Constants ---

PROJECT_ROOT = find_project_root()
CONFIG_DIR = PACKAGE_ROOT / "config"
PROMPTS_DIR = PACKAGE_ROOT / "prompts"


def load_app_config(config_dir: Path = CONFIG_DIR, overrides: Optional[Sequence[str]] = None) -> DictConfig:
    """
    Loads all YAML configuration files from a directory into a single,
    namespaced OmegaConf DictConfig object.

    Each YAML file is loaded under a key corresponding to its filename stem.
    For example, `llms.yaml` will be accessible under the `llms` key
    in the returned config object. This prevents key collisions between different
    configuration files.

    It also registers a resolver to read environment variables with `${env:VAR_NAME}`.

    Args:
        config_dir: The configuration directory. Relative paths are resolved
                    against the project root.
        overrides: Dotted `key=value` assignments applied after loading,
                   e.g. `orchestration.max_turns=3`.

    Returns:
        A single, merged OmegaConf DictConfig object containing all configurations.

    Raises:
        FileNotFoundError: If the specified configuration directory does not exist.
    """
    # This check prevents errors if the function is called multiple times.
    if not OmegaConf.has_resolver("env"):
        OmegaConf.register_new_resolver("env", lambda name: os.environ.get(name))

    config_path = Path(config_dir)
    if not config_path.is_absolute():
        config_path = PROJECT_ROOT / config_path
    if not config_path.is_dir():
        raise FileNotFoundError(f"Configuration directory not found at '{config_path.resolve()}'")

    merged_config = OmegaConf.create()

    # Load each YAML file under a key corresponding to its filename
    for p in sorted(config_path.glob("*.yaml")):
        key = p.stem  # 'llms.yaml' -> 'llms'
        try:
            conf = OmegaConf.load(p)
            merged_config[key] = conf
        except Exception as e:
            # Provide more context on which file failed to load
            raise RuntimeError(f"Failed to load or parse configuration file '{p.name}': {e}") from e

    if overrides:
        merged_config = OmegaConf.merge(merged_config, OmegaConf.from_dotlist(list(overrides)))

    return merged_config
