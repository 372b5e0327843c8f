"""Built-in providers that manage objects on the local machine."""

import hashlib
import os
import uuid
from pathlib import Path
from typing import Any, Dict, Tuple
from ..utils.errors import ProviderError, ResourceNotFoundError
from ..utils.logging import get_logger
from .base import Provider, ProviderCapabilities

logger = get_logger("providers.local")

DEFAULT_FILE_PERMISSION = "0644"


class LocalFileProvider(Provider):
    """
    ``local_file``: a file with the given content.

    Attributes: filename (required, forces replacement), content,
    file_permission (octal string, or an integer mode). Computed: id
    (absolute path), sha256. Reads report content only; the filename is the
    instance id and permissions are not compared.
    """

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            updatable_attributes=frozenset({"content", "file_permission"}),
            computed_attributes=frozenset({"id", "sha256"}),
        )

    def create(self, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        filename = attributes.get("filename")
        if not filename or not isinstance(filename, str):
            raise ProviderError("local_file requires a 'filename' string attribute")

        path = Path(filename).expanduser().resolve()
        instance_id = str(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(str(attributes.get("content", "")), encoding="utf-8")
        except OSError as e:
            raise ProviderError(f"Failed to write {path}: {e}")

        try:
            self._chmod(path, attributes)
        except (OSError, ValueError) as e:
            raise ProviderError(f"Created {path} but failed to set permissions: {e}", instance_id=instance_id)

        logger.info(f"Created local file {path}")
        return instance_id, self._attributes(path, attributes)

    def read(self, instance_id: str) -> Dict[str, Any]:
        path = Path(instance_id)
        if not path.is_file():
            raise ResourceNotFoundError(f"{path} no longer exists")
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ProviderError(f"Failed to read {path}: {e}", retryable=True)
        return {
            "content": content,
            "id": instance_id,
            "sha256": _sha256(content),
        }

    def update(self, instance_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        path = Path(instance_id)
        try:
            path.write_text(str(attributes.get("content", "")), encoding="utf-8")
            self._chmod(path, attributes)
        except (OSError, ValueError) as e:
            raise ProviderError(f"Failed to update {path}: {e}")
        logger.info(f"Updated local file {path}")
        return self._attributes(path, attributes)

    def destroy(self, instance_id: str) -> None:
        path = Path(instance_id)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug(f"{path} already absent")
            return
        except OSError as e:
            raise ProviderError(f"Failed to delete {path}: {e}")
        logger.info(f"Deleted local file {path}")

    @staticmethod
    def _chmod(path: Path, attributes: Dict[str, Any]) -> None:
        os.chmod(path, file_mode(attributes.get("file_permission", DEFAULT_FILE_PERMISSION)))

    @staticmethod
    def _attributes(path: Path, attributes: Dict[str, Any]) -> Dict[str, Any]:
        content = str(attributes.get("content", ""))
        resolved = dict(attributes)
        resolved.update({"id": str(path), "sha256": _sha256(content)})
        return resolved


class NullResourceProvider(Provider):
    """``null_resource``: no remote object; any attribute change forces replacement."""

    def create(self, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        instance_id = str(uuid.uuid4().int)[:19]
        resolved = dict(attributes)
        resolved["id"] = instance_id
        return instance_id, resolved

    def read(self, instance_id: str) -> Dict[str, Any]:
        return {"id": instance_id}

    def update(self, instance_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        resolved = dict(attributes)
        resolved["id"] = instance_id
        return resolved

    def destroy(self, instance_id: str) -> None:
        pass


def file_mode(permission: Any) -> int:
    """
    Mode bits for a file_permission value.

    Strings are octal ("0644", "644"). Integers are already a mode, which is
    what YAML makes of an unquoted 0644.
    """
    if isinstance(permission, bool):
        raise ValueError(f"Invalid file_permission: {permission!r}")
    if isinstance(permission, int):
        mode = permission
    elif isinstance(permission, str):
        mode = int(permission, 8)
    else:
        raise ValueError(f"Invalid file_permission: {permission!r}")
    if not 0 <= mode <= 0o7777:
        raise ValueError(f"file_permission out of range: {permission!r}")
    return mode


def _sha256(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
