# finance_tracker/outputs/__init__.py
from importlib import import_module

from finance_tracker.outputs.base import BaseOutput


def get_output(name, config) -> BaseOutput:
    """Build the writer registered as *name* under ``config['output_modules']``."""
    registry = config.get('output_modules') or {}
    if name not in registry:
        known = ', '.join(sorted(registry)) or 'none'
        raise ValueError(f"Unknown output '{name}' (configured: {known})")
    module_name, cls_name = registry[name].rsplit('.', 1)
    writer_cls = getattr(import_module(module_name), cls_name)
    if not (isinstance(writer_cls, type) and issubclass(writer_cls, BaseOutput)):
        raise TypeError(f"{registry[name]} is not a BaseOutput")
    return writer_cls(config)
