from infrastructure.config.context import ExportContext, resolve_context

from .globals import global_config
from .dev import dev_config
from .staging import staging_config
from .prod import prod_config

ENVIRONMENTS = [dev_config, staging_config, prod_config]


def get_environment_config(selection_key: str) -> ExportContext:
    """Get the resolved context for the environment matching ``selection_key``."""
    return resolve_context(ENVIRONMENTS, global_config, selection_key)
