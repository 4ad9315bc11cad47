"""Plugin discovery: extra module templates shipped as entry points."""

from __future__ import annotations

import logging
from importlib.metadata import entry_points
from typing import Any

logger = logging.getLogger(__name__)

TEMPLATE_GROUP = "scoreform.templates"


def discover_templates() -> dict[str, Any]:
    """Load every ``scoreform.templates`` entry point. Returns {entry point name: loaded object}.

    A plugin that fails to import is logged and skipped.
    """
    result: dict[str, Any] = {}
    try:
        eps = entry_points(group=TEMPLATE_GROUP)
    except Exception as exc:
        logger.warning("Failed to scan entry point group %s: %s", TEMPLATE_GROUP, exc)
        return result

    for ep in eps:
        try:
            result[ep.name] = ep.load()
            logger.debug("Loaded template plugin %s", ep.name)
        except Exception as exc:
            logger.warning("Failed to load template plugin %s: %s", ep.name, exc)
    return result
