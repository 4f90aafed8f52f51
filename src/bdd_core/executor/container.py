import importlib
import logging
from typing import Any, Dict, Optional

from ..core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _load_class(path: str):
    """Import ``package.module:ClassName`` (or ``package.module.ClassName``)"""
    if ':' in path:
        module_name, _, attr = path.partition(':')
    else:
        module_name, _, attr = path.rpartition('.')

    if not module_name or not attr:
        raise ConfigurationError(f"Invalid helper class path: {path}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import helper module '{module_name}': {e}") from e

    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise ConfigurationError(f"Helper class '{attr}' not found in '{module_name}'") from e


class Container:
    """
    Holds the named helpers actions are dispatched to.

    Helpers are kept in insertion order. A helper entry in the config is
    either a ready object or a mapping with a ``class`` import path; the
    rest of that mapping is passed to the class as keyword options.
    """

    def __init__(self):
        self._helpers: Dict[str, Any] = {}
        self._support: Dict[str, Any] = {}

    def create(self, config: Optional[Dict[str, Any]] = None) -> 'Container':
        """Replace the contents with what the config describes"""
        self.clear()
        return self.append(config or {})

    def append(self, config: Dict[str, Any]) -> 'Container':
        """Add helpers and support objects on top of the current contents"""
        for name, helper in (config.get('helpers') or {}).items():
            self._helpers[name] = self._build_helper(name, helper)
            logger.debug(f"Helper registered: {name}")

        for name, obj in (config.get('support') or {}).items():
            self._support[name] = obj

        return self

    def _build_helper(self, name: str, helper: Any) -> Any:
        if not isinstance(helper, dict):
            return helper

        options = dict(helper)
        class_path = options.pop('class', None)
        if not class_path:
            raise ConfigurationError(f"Helper '{name}' config needs a 'class' entry")

        helper_class = _load_class(class_path)
        return helper_class(**options)

    def helpers(self, name: Optional[str] = None) -> Any:
        """All helpers by name, or the helper called ``name`` (None if missing)"""
        if name is None:
            return dict(self._helpers)
        return self._helpers.get(name)

    def support(self, name: Optional[str] = None) -> Any:
        if name is None:
            return dict(self._support)
        return self._support.get(name)

    def clear(self) -> None:
        self._helpers.clear()
        self._support.clear()


# Shared instance used by the module-level API
default_container = Container()
