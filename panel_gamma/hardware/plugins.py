"""Load externally supplied device drivers by import path.

Photometer drivers and the vendor register engine live outside this
package.  The station config names them as ``"package.module:factory"``;
the factory is called with the keyword options from the config and must
return the matching port instance.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class PluginError(Exception):
    """Raised when a driver import path cannot be resolved."""

    pass


def resolve_factory(spec: str) -> Callable[..., Any]:
    """Resolve ``"module:attr"`` to a callable.

    Raises
    ------
    PluginError
        On a malformed spec, a failed import or a non-callable target.
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise PluginError(
            f"Driver spec must look like 'package.module:factory', got {spec!r}"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise PluginError(f"Cannot import driver module {module_name!r}: {exc}") from exc

    target: Any = module
    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError:
            raise PluginError(
                f"Module {module_name!r} has no attribute {attr!r}"
            ) from None
    if not callable(target):
        raise PluginError(f"Driver factory {spec!r} is not callable")
    return target


def create_driver(spec: str, expected: type, **options: Any) -> Any:
    """Instantiate the driver at *spec* and check it implements *expected*."""
    factory = resolve_factory(spec)
    logger.info("Loading driver %s", spec)
    driver = factory(**options)
    if not isinstance(driver, expected):
        raise PluginError(
            f"Driver {spec!r} returned {type(driver).__name__}, "
            f"expected a {expected.__name__}"
        )
    return driver
