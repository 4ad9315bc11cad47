"""Module template library: one template per workload type.

Built-in types are ``container``, ``function`` and ``database``; anything
else falls back to ``generic``. Extra templates can be registered with
:func:`register` or shipped as ``scoreform.templates`` entry points.
"""

from __future__ import annotations

import logging

from scoreform.modules.base import (
    _REGISTRY,
    UNDEFINED,
    Binding,
    ModuleTemplate,
    TemplateOptions,
    register,
)
from scoreform.modules.container import ContainerTemplate
from scoreform.modules.database import DatabaseTemplate
from scoreform.modules.function import FunctionTemplate
from scoreform.modules.generic import GenericTemplate

log = logging.getLogger(__name__)

FALLBACK_TYPE = GenericTemplate.type_name

_plugins_loaded = False


def _load_plugins() -> None:
    global _plugins_loaded
    if _plugins_loaded:
        return
    _plugins_loaded = True

    from scoreform.plugins import discover_templates

    for name, obj in discover_templates().items():
        if not (isinstance(obj, type) and issubclass(obj, ModuleTemplate)):
            log.warning("Ignoring template plugin %s: %r is not a ModuleTemplate subclass", name, obj)
            continue
        if obj.type_name in _REGISTRY:
            log.info("Template plugin %s replaces built-in %r template", name, obj.type_name)
        register(obj)


def get_template(type_name: str) -> ModuleTemplate:
    """Return the template for a workload type, or the generic fallback."""
    _load_plugins()
    cls = _REGISTRY.get(type_name)
    if cls is None:
        log.debug("No template for workload type %r, using %r", type_name, FALLBACK_TYPE)
        cls = _REGISTRY[FALLBACK_TYPE]
    return cls()


def registered_types() -> list[str]:
    _load_plugins()
    return list(_REGISTRY)


__all__ = [
    "Binding",
    "ContainerTemplate",
    "DatabaseTemplate",
    "FALLBACK_TYPE",
    "FunctionTemplate",
    "GenericTemplate",
    "ModuleTemplate",
    "TemplateOptions",
    "UNDEFINED",
    "get_template",
    "register",
    "registered_types",
]
