"""
Artifact store: one JSON record per network holding deployment progress
(code ids, contract addresses) keyed by logical resource name.
"""

import os
import json
import logging
import tempfile
from typing import Any, Dict, Iterator, Optional

from .errors import ArtifactParseError, RecordConflictError

logger = logging.getLogger(__name__)


def is_populated(value: Any) -> bool:
    """True when value counts as set (not None, not "", not an empty container)"""
    if value is None:
        return False
    if isinstance(value, (str, list, dict, tuple)) and len(value) == 0:
        return False
    return True


class ArtifactRecord:
    """Deployment progress for one network.

    Keys only ever grow: a populated key can not be overwritten.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(data or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def has(self, key: str) -> bool:
        return is_populated(self._data.get(key))

    def missing(self, *keys: str) -> list:
        return [key for key in keys if not self.has(key)]

    def set(self, key: str, value: Any) -> None:
        if not is_populated(value):
            raise ValueError(f"Refusing to record an empty value for {key}")
        if self.has(key):
            if self._data[key] == value:
                return
            raise RecordConflictError(
                f"{key} is already recorded as {self._data[key]!r}, refusing to overwrite with {value!r}"
            )
        self._data[key] = value

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._data)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ArtifactRecord):
            return self._data == other._data
        if isinstance(other, dict):
            return self._data == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"ArtifactRecord({self._data!r})"


class ArtifactStore:
    """Reads and writes `<base_dir>/<network_id>.json`"""

    def __init__(self, base_dir: str):
        self.base_dir = base_dir

    def path_for(self, network_id: str) -> str:
        return os.path.join(self.base_dir, f"{network_id}.json")

    def load(self, network_id: str) -> ArtifactRecord:
        """
        Load the record for a network.

        Args:
            network_id: Chain identifier

        Returns:
            The persisted record, or an empty one if no file exists yet

        Raises:
            ArtifactParseError: The file exists but is not a JSON object
        """
        path = self.path_for(network_id)
        if not os.path.exists(path):
            logger.debug(f"No artifact record at {path}, starting empty")
            return ArtifactRecord()

        with open(path, 'r', encoding='utf-8') as f:
            try:
                data = json.load(f)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise ArtifactParseError(f"Malformed artifact record {path}: {e}") from e

        if not isinstance(data, dict):
            raise ArtifactParseError(f"Artifact record {path} must be a JSON object, got {type(data).__name__}")
        return ArtifactRecord(data)

    def save(self, record: ArtifactRecord, network_id: str) -> None:
        """
        Overwrite the record for a network with the full in-memory record.

        The file is replaced atomically so a crash never leaves a partial file.
        """
        os.makedirs(self.base_dir, exist_ok=True)
        path = self.path_for(network_id)

        fd, tmp_path = tempfile.mkstemp(prefix=f".{network_id}.", suffix=".tmp", dir=self.base_dir)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(record.as_dict(), f, indent=2)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
