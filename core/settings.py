"""Runtime settings for the mapping engine.

Values come from environment variables, optionally loaded from a ``.env``
file at the repository root:
- DEFAULT_LOCATION_NAME: Warehouse name used when no mapping resolves
- DEFAULT_SHIP_COUNTRY: Country used when a sale carries none
- DEFAULT_QUANTITY_TYPE: Inventory quantity type when a tenant sets none
- DEFAULT_LOCATION_SCOPE: Inventory location scope when a tenant sets none
- ALREADY_AUTHORISED_SIGNATURE: Error text meaning "already in target state"
- TEMPORAL_TASK_QUEUE: Task queue the worker listens on
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

env_path = Path(__file__).resolve().parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


DEFAULT_TASK_QUEUE = "erp-wms-sync"


@dataclass(frozen=True)
class EngineSettings:
    """Defaults applied when tenant data leaves a value unset."""
    default_location_name: str = "Main Warehouse"
    default_ship_country: str = "Australia"
    default_quantity_type: str = "sellable"
    default_location_scope: str = "mapped"
    already_authorised_signature: str = "Status is AUTHORISED"
    task_queue: str = DEFAULT_TASK_QUEUE

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from the process environment."""
        return cls(
            default_location_name=os.getenv("DEFAULT_LOCATION_NAME", cls.default_location_name),
            default_ship_country=os.getenv("DEFAULT_SHIP_COUNTRY", cls.default_ship_country),
            default_quantity_type=os.getenv("DEFAULT_QUANTITY_TYPE", cls.default_quantity_type),
            default_location_scope=os.getenv("DEFAULT_LOCATION_SCOPE", cls.default_location_scope),
            already_authorised_signature=os.getenv(
                "ALREADY_AUTHORISED_SIGNATURE", cls.already_authorised_signature
            ),
            task_queue=os.getenv("TEMPORAL_TASK_QUEUE", DEFAULT_TASK_QUEUE),
        )


_settings: Optional[EngineSettings] = None


def get_settings() -> EngineSettings:
    """Return process-wide settings, reading the environment once."""
    global _settings
    if _settings is None:
        _settings = EngineSettings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
