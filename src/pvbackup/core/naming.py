# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/core/naming.py

"""
Archive naming scheme.

An archive is named ``{provider}_{stem}_{ext}_{content_id}.img``. ``ext`` is
the disk name's final extension, or ``noext`` when it has none, so the
name always decodes back to the exact disk name. Stems may contain
underscores; provider tags and content ids never do.
"""

import secrets
import time
from dataclasses import dataclass

import xxhash

from pvbackup.system.exceptions import NamingError

IMAGE_SUFFIX = ".img"
INDEX_SUFFIX = ".fidx"
NO_EXTENSION = "noext"
CONTENT_ID_LENGTH = 8


@dataclass(frozen=True)
class ArchiveParts:
    provider: str
    disk_name: str
    content_id: str


def split_disk_name(disk_name: str) -> tuple[str, str | None]:
    """Split on the final '.', the way a path's stem and suffix are derived.

    A single leading dot (".hidden") belongs to the stem.
    """
    stem, dot, ext = disk_name.rpartition(".")
    if not dot or not stem:
        return disk_name, None
    return stem, ext


def create(provider: str, disk_name: str, content_id: str) -> str:
    stem, ext = split_disk_name(disk_name)
    if not stem:
        raise NamingError(f"disk name has no stem: '{disk_name}'", name=disk_name)
    if ext is not None and (not ext or "_" in ext or ext == NO_EXTENSION):
        raise NamingError(f"disk name has an unencodable extension: '{disk_name}'", name=disk_name)
    if not provider or "_" in provider or not content_id or "_" in content_id:
        raise NamingError(f"invalid provider tag or content id for '{disk_name}'", name=disk_name)
    return f"{provider}_{stem}_{ext or NO_EXTENSION}_{content_id}{IMAGE_SUFFIX}"


def parse(name: str) -> ArchiveParts:
    base = name
    if base.endswith(INDEX_SUFFIX):
        base = base[:-len(INDEX_SUFFIX)]
    if base.endswith(IMAGE_SUFFIX):
        base = base[:-len(IMAGE_SUFFIX)]

    parts = base.split("_")
    if len(parts) < 4:
        raise NamingError(f"unexpected archive name format: '{name}'", name=name)

    provider, ext, content_id = parts[0], parts[-2], parts[-1]
    stem = "_".join(parts[1:-2])
    if not provider or not stem or not ext or not content_id:
        raise NamingError(f"unexpected archive name format: '{name}'", name=name)

    disk_name = stem if ext == NO_EXTENSION else f"{stem}.{ext}"
    return ArchiveParts(provider=provider, disk_name=disk_name, content_id=content_id)


def is_archive_name(name: str) -> bool:
    try:
        parse(name)
    except NamingError:
        return False
    base = name[:-len(INDEX_SUFFIX)] if name.endswith(INDEX_SUFFIX) else name
    return base.endswith(IMAGE_SUFFIX)


def content_id_from_int(identity: int) -> str:
    """First 8 lowercase hex characters of a 128-bit native identity."""
    return f"{identity:x}"[:CONTENT_ID_LENGTH]


def content_id_from_text(identity: str) -> str:
    """First 8 hex digits of a textual identity such as an LV UUID.

    LV UUIDs use a 64-character alphabet and may hold fewer than 8 hex
    digits; those fall back to an xxh3 digest of the whole identity.
    """
    digits = "".join(ch for ch in identity.lower() if ch in "0123456789abcdef")
    if len(digits) < CONTENT_ID_LENGTH:
        digits = xxhash.xxh3_64_hexdigest(identity.encode("utf-8"))
    return digits[:CONTENT_ID_LENGTH]


def new_run_token(now: float | None = None) -> str:
    """Unix seconds plus a random nibble pair, unique across same-second runs."""
    seconds = int(time.time() if now is None else now)
    return f"{seconds}-{secrets.token_hex(2)}"


def clone_name(leaf: str, suffix: str, run_token: str) -> str:
    return f"{leaf}-{suffix}-{run_token}"
