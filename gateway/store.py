"""Key-value configuration stores used by the gateway.

The gateway only depends on the ``ConfigurationStore`` protocol: ``get`` and
``set`` over flat string keys such as ``openai.credential`` or
``gateway.primaryProvider``. Two implementations are provided:

- InMemoryConfigurationStore: process-local dictionary, used by tests and
  embedders that manage persistence themselves.
- YamlConfigurationStore: a flat YAML document on disk, used by the CLI.
  Writes are atomic (temp file + rename) and external edits are picked up on
  the next read.

Setting a key to ``None`` removes it. Reads and writes are last-write-wins;
no transactional guarantees are offered.
"""

from __future__ import annotations

import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import yaml

from modules.error_handler import ConfigurationError
from modules.logger import setup_logger

logger = setup_logger(__name__)


@runtime_checkable
class ConfigurationStore(Protocol):
    """Minimal persistent settings collaborator."""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> bool:
        ...


# ============================================================================
# In-Memory Store
# ============================================================================
class InMemoryConfigurationStore:
    """Thread-safe dictionary-backed store."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._values: Dict[str, Any] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: Any) -> bool:
        with self._lock:
            if value is None:
                self._values.pop(key, None)
            else:
                self._values[key] = value
        return True

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._values)


# ============================================================================
# YAML File Store
# ============================================================================
class YamlConfigurationStore:
    """
    Store backed by a flat YAML mapping on disk.

    The file is created lazily on first write. A missing file reads as empty;
    a file that does not contain a mapping raises ConfigurationError so that
    a corrupted settings file is never silently overwritten.

    Example:
        >>> store = YamlConfigurationStore("~/.ai_gateway/settings.yaml")
        >>> store.set("openai.credential", "sk-...")
        True
        >>> store.get("openai.credential")
        'sk-...'
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path).expanduser()
        self._lock = threading.RLock()
        self._values: Dict[str, Any] = {}
        self._loaded_mtime: Optional[float] = None

    def _current_mtime(self) -> Optional[float]:
        try:
            return self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    def _reload_if_changed(self) -> None:
        mtime = self._current_mtime()
        if mtime is None:
            self._values = {}
            self._loaded_mtime = None
            return
        if mtime == self._loaded_mtime:
            return

        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Settings file {self.path} is not valid YAML: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings file {self.path} must contain a mapping")

        self._values = {str(k): v for k, v in data.items()}
        self._loaded_mtime = mtime
        logger.debug(f"Loaded {len(self._values)} settings from {self.path}")

    def _write(self, values: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".settings-", suffix=".yaml", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(values, f, default_flow_style=False, sort_keys=True, allow_unicode=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self._values = values
        self._loaded_mtime = self._current_mtime()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            self._reload_if_changed()
            return self._values.get(key, default)

    def set(self, key: str, value: Any) -> bool:
        with self._lock:
            self._reload_if_changed()
            values = dict(self._values)
            if value is None:
                if key not in values:
                    return True
                values.pop(key)
            else:
                values[key] = value
            try:
                self._write(values)
            except OSError as e:
                logger.error(f"Failed to write settings file {self.path}: {e}")
                return False
        return True

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            self._reload_if_changed()
            return dict(self._values)


__all__ = [
    "ConfigurationStore",
    "InMemoryConfigurationStore",
    "YamlConfigurationStore",
]
