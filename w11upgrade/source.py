"""
Setup-source resolver
---------------------

Turns the configured source, a disk image or a directory, into the path
of the setup executable.  A disk image is mounted and the first volume
with an accessible drive root is used.  The returned
:class:`SetupSource` owns the mount and must be released by the caller,
either explicitly or by using it as a context manager.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from .errors import (
    MountResolutionError,
    SetupExecutableNotFound,
    SourceNotFound,
    UnsupportedSource,
)

IMAGE_SUFFIXES = (".iso", ".img", ".vhd", ".vhdx")

logger = logging.getLogger("w11upgrade.source")


@dataclass
class MountHandle:
    """A disk image attached for the duration of one run.

    ``owned`` is False when the image was already attached before the
    run; releasing such a handle leaves the image mounted.
    """

    image_path: str
    root: str
    ops: object = field(repr=False)
    owned: bool = True
    released: bool = field(default=False, init=False)

    def release(self) -> None:
        """Dismount the image.  Only the first call has an effect."""
        if self.released:
            return
        self.released = True
        if not self.owned:
            logger.info("Leaving pre-existing mount of %s attached", self.image_path)
            return
        self.ops.dismount_image(self.image_path)
        logger.info("✓ Image dismounted: %s", self.image_path)


@dataclass
class SetupSource:
    root: str
    setup_executable: str
    mount: Optional[MountHandle] = None

    def release(self) -> None:
        if self.mount is not None:
            self.mount.release()

    def __enter__(self) -> "SetupSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


def is_image_file(path: str) -> bool:
    return os.path.splitext(path)[1].lower() in IMAGE_SUFFIXES


class SourceResolver:
    """Resolve a setup source path into a :class:`SetupSource`.

    Parameters
    ----------
    ops : PlatformOps
        Backend used to mount, enumerate and dismount disk images.
    setup_name : str
        File name of the setup executable expected at the source root.
    """

    def __init__(self, ops, setup_name: str = "setup.exe") -> None:
        self.ops = ops
        self.setup_name = setup_name

    def resolve(self, path: str) -> SetupSource:
        """Resolve ``path``.

        Raises
        ------
        SourceNotFound
            If ``path`` does not exist.  Nothing is mounted.
        UnsupportedSource
            If ``path`` is a file without a disk-image extension.
        MountResolutionError
            If the mounted image exposes no accessible volume.
        SetupExecutableNotFound
            If the setup executable is missing from the resolved root.
        """
        if not os.path.exists(path):
            raise SourceNotFound(f"Setup source not found: {path}")

        mount: Optional[MountHandle] = None
        if os.path.isdir(path):
            root = os.path.realpath(os.path.abspath(path))
            logger.info("Using setup directory %s", root)
        elif is_image_file(path):
            mount = self._mount(os.path.abspath(path))
            root = mount.root
        else:
            raise UnsupportedSource(f"Not a directory or disk image: {path}")

        setup_executable = os.path.join(root, self.setup_name)
        if not os.path.isfile(setup_executable):
            if mount is not None:
                self._release_quietly(mount)
            raise SetupExecutableNotFound(f"{self.setup_name} not found in {root}")
        return SetupSource(root=root, setup_executable=setup_executable, mount=mount)

    def _mount(self, image_path: str) -> MountHandle:
        owned = True
        try:
            if self.ops.is_image_attached(image_path):
                owned = False
                logger.info("Image %s is already mounted", image_path)
        except Exception as exc:
            logger.warning("Could not query mount state of %s: %s", image_path, exc)

        if owned:
            logger.info("Mounting image %s ...", image_path)
            try:
                self.ops.mount_image(image_path)
            except Exception as exc:
                raise MountResolutionError(f"Could not mount {image_path}: {exc}") from exc

        handle = MountHandle(image_path=image_path, root="", ops=self.ops, owned=owned)
        try:
            roots = self.ops.image_volume_roots(image_path)
        except Exception as exc:
            self._release_quietly(handle)
            raise MountResolutionError(f"Could not enumerate volumes of {image_path}: {exc}") from exc

        for root in roots:
            if os.path.isdir(root):
                handle.root = root
                logger.info("✓ Image available at %s", root)
                return handle

        self._release_quietly(handle)
        raise MountResolutionError(f"No accessible volume after mounting {image_path}")

    @staticmethod
    def _release_quietly(handle: MountHandle) -> None:
        try:
            handle.release()
        except Exception as exc:
            logger.warning("Could not dismount %s: %s", handle.image_path, exc)
