"""Persistent build cache store.

This module handles:
- Copying cache directory trees with permissions and timestamps preserved
- Restoring a cache store entry into the local staging directory
- Extracting the cache path from a built image back into the store

The store is laid out as <cache_dir>/<build_hash>. It is an optimization
only: a missing entry is a normal miss and write-back failures are reported
but never abort a build.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from pathlib import Path

from stackbuild.builds.runner import (
    DEFAULT_DOCKER_BIN,
    CommandError,
    CommandRunner,
    OutputSink,
    RunnerOptions,
    docker_command,
)

logger = logging.getLogger(__name__)

STAGING_CACHE_DIR = Path(".cache") / "build"


class CacheTransferError(Exception):
    """Raised when a cache directory cannot be copied."""

    def __init__(self, message: str, code: str = "cache_transfer_error") -> None:
        super().__init__(message)
        self.code = code


def copy_file(src: str, dst: str) -> None:
    """Copy a regular file byte for byte and sync it to disk.

    Permission bits and access/modification times are set to match src.

    Args:
        src: Source file path.
        dst: Destination file path (created or truncated).

    Raises:
        OSError: If any step fails.
    """
    with open(src, "rb") as fsrc, open(dst, "wb") as fdst:
        shutil.copyfileobj(fsrc, fdst)
        fdst.flush()
        os.fsync(fdst.fileno())

    st = os.stat(src)
    os.chmod(dst, stat.S_IMODE(st.st_mode))
    os.utime(dst, ns=(st.st_atime_ns, st.st_mtime_ns))


def _copy_tree(src: str, dst: str) -> None:
    src_stat = os.stat(src)
    if not stat.S_ISDIR(src_stat.st_mode):
        raise CacheTransferError(
            f"source is not a directory: {src}",
            code="source_not_dir",
        )
    if os.path.lexists(dst):
        raise CacheTransferError(
            f"destination already exists: {dst}",
            code="destination_exists",
        )

    os.makedirs(dst)

    with os.scandir(src) as it:
        entries = sorted(it, key=lambda e: e.name)

    for entry in entries:
        dst_path = os.path.join(dst, entry.name)
        if entry.is_symlink():
            continue
        if entry.is_dir(follow_symlinks=False):
            _copy_tree(entry.path, dst_path)
        elif entry.is_file(follow_symlinks=False):
            copy_file(entry.path, dst_path)
        else:
            logger.debug("Skipping special file: %s", entry.path)

    # Applied last so read-only source directories can still be populated
    os.chmod(dst, stat.S_IMODE(src_stat.st_mode))


def copy_dir(src: str | Path, dst: str | Path) -> None:
    """Recursively copy a directory tree into a new destination.

    Symbolic links are skipped. The destination must not exist; nothing is
    written when it does.

    Args:
        src: Source directory.
        dst: Destination directory (must not exist).

    Raises:
        CacheTransferError: If src is missing or not a directory, dst exists,
            or any filesystem operation fails.
    """
    src = os.path.normpath(os.fspath(src))
    dst = os.path.normpath(os.fspath(dst))

    try:
        _copy_tree(src, dst)
    except FileNotFoundError as e:
        raise CacheTransferError(
            f"no such file or directory: {e.filename or src}",
            code="source_not_found",
        ) from e
    except OSError as e:
        raise CacheTransferError(f"failed to copy {src} -> {dst}: {e}") from e


def cache_entry_path(cache_dir: Path, build_hash: str) -> Path:
    """Return the cache store entry for a build hash."""
    return cache_dir / build_hash


def staging_cache_path(base_dir: Path) -> Path:
    """Return the local staging cache directory for an application."""
    return base_dir / STAGING_CACHE_DIR


def restore_cache(
    cache_dir: Path,
    build_hash: str,
    staging_dir: Path,
    sink: OutputSink,
) -> bool:
    """Restore a cache store entry into the staging directory.

    Args:
        cache_dir: Cache store root.
        build_hash: Content hash of the build.
        staging_dir: Local staging cache directory to replace.
        sink: Receives non-fatal cache errors.

    Returns:
        True if the entry was copied into the staging directory.
    """
    entry = cache_entry_path(cache_dir, build_hash)
    if not entry.exists():
        logger.debug("No cache entry for %s", build_hash)
        return False

    try:
        shutil.rmtree(staging_dir)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not clear staging cache %s: %s", staging_dir, e)
        sink(f"cache error: {e}")

    try:
        copy_dir(entry, staging_dir)
    except CacheTransferError as e:
        if e.code == "source_not_found":
            logger.debug("Cache entry vanished during restore: %s", e)
        else:
            logger.warning("Cache restore failed for %s: %s", build_hash, e)
            sink(f"cache error: {e}")
        return False

    logger.info("Restored build cache %s into %s", build_hash, staging_dir)
    return True


def persist_cache(
    runner: CommandRunner,
    sink: OutputSink,
    image_tag: str,
    build_hash: str,
    cache_dir: Path,
    image_cache_path: str,
    options: RunnerOptions | None = None,
    docker_bin: str = DEFAULT_DOCKER_BIN,
) -> bool:
    """Extract the cache path of a built image into the cache store.

    A temporary container named after the hash is created from the image,
    its cache path copied to <cache_dir>/<hash>, and the container removed.
    Every failure is reported to the sink and logged; none are raised.

    Args:
        runner: Command runner.
        sink: Receives command output and non-fatal errors.
        image_tag: Tag of the image just built.
        build_hash: Content hash of the build.
        cache_dir: Cache store root.
        image_cache_path: Cache path inside the image.
        options: Runner options for the container tool commands.
        docker_bin: Container tool executable.

    Returns:
        True if every step succeeded.
    """
    entry = cache_entry_path(cache_dir, build_hash)
    ok = True

    try:
        runner.run(
            sink,
            docker_command("create", "--name", build_hash, image_tag, binary=docker_bin),
            options,
        )
    except CommandError as e:
        logger.warning("Could not create cache container %s: %s", build_hash, e)
        sink(f"cache error: {e}")
        ok = False

    try:
        if entry.exists():
            shutil.rmtree(entry)
        cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("Could not prepare cache entry %s: %s", entry, e)
        sink(f"cache error: {e}")
        ok = False

    try:
        runner.run(
            sink,
            docker_command(
                "cp",
                f"{build_hash}:{image_cache_path}",
                str(entry),
                binary=docker_bin,
            ),
            options,
        )
    except CommandError as e:
        logger.info("No build cache extracted for %s: %s", build_hash, e)
        sink("ignoring build cache")
        ok = False

    try:
        runner.run(sink, docker_command("rm", build_hash, binary=docker_bin), options)
    except CommandError as e:
        logger.warning("Could not remove cache container %s: %s", build_hash, e)
        sink(f"cache error: {e}")
        ok = False

    return ok


__all__ = [
    "STAGING_CACHE_DIR",
    "CacheTransferError",
    "cache_entry_path",
    "copy_dir",
    "copy_file",
    "persist_cache",
    "restore_cache",
    "staging_cache_path",
]
