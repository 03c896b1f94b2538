import os
import json
from typing import Dict, List, Literal, Optional

import click
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from patcher.errors import ConfigError

CONFIG_ENV_VAR = "BETTER_ANTIGRAVITY_CONFIG"
DEFAULT_CONFIG_FILE = "fix_config.json"


class HookWeights(BaseModel):
    """Score added per scheduling-hook candidate occurrence."""
    plain: int = Field(1, ge=0)
    cleanup: int = Field(5, ge=0)


class PatchConfig(BaseModel):
    backup_suffix: str = Field(".bak", min_length=1)
    binding_name: str = Field("_aep", pattern=r"^[A-Za-z_$][\w$]*$")
    policy_window: int = Field(2000, gt=0)
    hook_window: int = Field(5000, gt=0)
    hook_alias_min_len: int = Field(2, ge=1)
    hook_alias_max_len: int = Field(3, ge=1)
    hook_excluded_aliases: List[str] = Field(default_factory=lambda: ["var", "new"])
    hook_weights: HookWeights = Field(default_factory=HookWeights)
    hook_tie_policy: Literal["fail", "first"] = "fail"

    @staticmethod
    def from_json(path: str) -> 'PatchConfig':
        """Load a PatchConfig from a JSON file; missing keys keep their defaults."""
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid config JSON in {path}: {e}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config is not a JSON object: {path}")
        return PatchConfig.build(data)

    @staticmethod
    def build(data: Dict) -> 'PatchConfig':
        try:
            config = PatchConfig(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid config: {e}") from e
        if config.hook_alias_min_len > config.hook_alias_max_len:
            raise ConfigError("hook_alias_min_len must not exceed hook_alias_max_len")
        return config


def load_config(path: Optional[str] = None) -> PatchConfig:
    """
    Resolve the effective configuration.

    Order: defaults < JSON file < environment overrides. The JSON file is the
    explicit `path`, else $BETTER_ANTIGRAVITY_CONFIG, else ./fix_config.json
    when it exists.

    Environment variables (a .env file in the working directory is honoured):
        BETTER_ANTIGRAVITY_CONFIG: path to a JSON config file
        BETTER_ANTIGRAVITY_BACKUP_SUFFIX: backup suffix (default ".bak")
        BETTER_ANTIGRAVITY_HOOK_TIE_POLICY: "fail" or "first"
    """
    load_dotenv()

    config_path = path or os.environ.get(CONFIG_ENV_VAR)
    if config_path:
        if not os.path.exists(config_path):
            raise ConfigError(f"Config file not found: {config_path}")
        data = PatchConfig.from_json(config_path).model_dump()
    elif os.path.exists(DEFAULT_CONFIG_FILE):
        data = PatchConfig.from_json(DEFAULT_CONFIG_FILE).model_dump()
        config_path = DEFAULT_CONFIG_FILE
    else:
        data = {}

    suffix = os.environ.get("BETTER_ANTIGRAVITY_BACKUP_SUFFIX")
    if suffix:
        data["backup_suffix"] = suffix
    tie_policy = os.environ.get("BETTER_ANTIGRAVITY_HOOK_TIE_POLICY")
    if tie_policy:
        data["hook_tie_policy"] = tie_policy.strip().lower()

    config = PatchConfig.build(data)
    if config_path:
        click.echo(f"⚙️  Loaded config from {config_path}")
    return config
