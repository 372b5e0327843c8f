from .config_loader import load_configuration, parse_configuration
from .plan_file import load_plan, save_plan

__all__ = ["load_configuration", "parse_configuration", "load_plan", "save_plan"]
