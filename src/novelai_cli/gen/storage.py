from __future__ import annotations

import datetime as _dt
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Optional, Union

from .errors import NoSavePathError, WriteError

logger = logging.getLogger(__name__)

APP_NAME = "novelai-cli"
FILENAME_PREFIX = "novelai-"

Writer = Callable[[Path, bytes], None]


def _write_bytes(path: Path, data: bytes) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_bytes(data)
        tmp.replace(path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def now_utc_iso(now: Optional[_dt.datetime] = None) -> str:
    if now is None:
        now = _dt.datetime.now(tz=_dt.timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(_dt.timezone.utc)
    return now.replace(tzinfo=None).isoformat(timespec="microseconds") + "Z"


def make_filename(now: Optional[_dt.datetime] = None) -> str:
    stamp = now_utc_iso(now).replace(":", "-").replace(".", "-")
    return f"{FILENAME_PREFIX}{stamp}.png"


def app_data_dir() -> Path:
    """Per-user data root; ``NOVELAI_HOME`` overrides the platform location."""
    override = os.environ.get("NOVELAI_HOME")
    if override:
        return Path(override).expanduser()

    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA")
        root = Path(base) if base else Path.home() / "AppData" / "Roaming"
    elif sys.platform == "darwin":
        root = Path.home() / "Library" / "Application Support"
    else:
        base = os.environ.get("XDG_DATA_HOME")
        root = Path(base) if base else Path.home() / ".local" / "share"
    return root / APP_NAME


def default_save_dir() -> Path:
    """Resolve, create and probe the default image directory.

    Raises:
        NoSavePathError: If the directory cannot be created or written to.
    """
    image_dir = app_data_dir() / "images"
    probe = image_dir / ".write_probe.tmp"
    try:
        image_dir.mkdir(parents=True, exist_ok=True)
        probe.write_bytes(b"probe")
        probe.unlink()
    except OSError as e:
        raise NoSavePathError(f"Default image directory is not usable: {image_dir} ({e})") from e
    return image_dir


def save_image(
    data: bytes,
    directory: Union[str, Path, None],
    now: Optional[_dt.datetime] = None,
    writer: Optional[Writer] = None,
) -> str:
    """Write image bytes into ``directory`` under a timestamped name.

    Returns the full path of the written file. Existing files are overwritten.

    Raises:
        NoSavePathError: If no directory was given.
        WriteError: If the directory or file cannot be written.
    """
    if directory is None or str(directory).strip() == "":
        raise NoSavePathError("No save directory available")

    out_dir = Path(directory).expanduser()
    out_path = out_dir / make_filename(now)
    write = writer or _write_bytes
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        write(out_path, data)
    except OSError as e:
        raise WriteError(str(out_path), str(e)) from e

    logger.info("Saved %d bytes to %s", len(data), out_path)
    return str(out_path)
