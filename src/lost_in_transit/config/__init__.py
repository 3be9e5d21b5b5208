from .env import EnvError, get_app_env
from .logging_config import component_logger, get_logger

__all__ = ["EnvError", "get_app_env", "component_logger", "get_logger"]
