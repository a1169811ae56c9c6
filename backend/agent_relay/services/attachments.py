import base64
import binascii
import logging
import os
import re
import shutil
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from agent_relay.core.config import CLAUDE_IMAGE_DIR
from agent_relay.schemas.claude import ImageAttachment

logger = logging.getLogger(__name__)

DATA_URI_RE = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)


@dataclass
class MaterializedImages:
    temp_dir: Optional[str] = None
    paths: List[str] = field(default_factory=list)


def _extension_for(mime_type: str) -> str:
    _, _, subtype = mime_type.partition("/")
    return subtype.strip() or "png"


def _make_scoped_dir(working_dir: str) -> str:
    base = os.path.join(working_dir, CLAUDE_IMAGE_DIR)
    os.makedirs(base, exist_ok=True)
    stamp = str(time.time_ns())
    candidate = os.path.join(base, stamp)
    suffix = 0
    while True:
        try:
            os.mkdir(candidate)
            return candidate
        except FileExistsError:
            suffix += 1
            candidate = os.path.join(base, f"{stamp}-{suffix}")


def materialize_images(
    images: Sequence[ImageAttachment], working_dir: str
) -> MaterializedImages:
    """Write inline image attachments under ``working_dir`` for the CLI to read.

    Entries that are not valid base64 data URIs are skipped. The caller owns
    cleanup of the returned directory via :func:`cleanup_images`.
    """
    result = MaterializedImages()
    if not images:
        return result

    try:
        result.temp_dir = _make_scoped_dir(working_dir)
    except OSError as exc:
        logger.error("failed to create image directory in %s: %s", working_dir, exc)
        return result

    for index, image in enumerate(images):
        match = DATA_URI_RE.match(image.data or "")
        if not match:
            logger.warning("skipping image %d: invalid data uri", index)
            continue
        mime_type, payload = match.groups()
        try:
            content = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            logger.warning("skipping image %d: %s", index, exc)
            continue
        path = os.path.join(
            result.temp_dir, f"image_{index}.{_extension_for(mime_type)}"
        )
        try:
            with open(path, "wb") as handle:
                handle.write(content)
        except OSError as exc:
            logger.warning("skipping image %d: %s", index, exc)
            continue
        result.paths.append(path)

    return result


def append_image_note(command: str, paths: Sequence[str]) -> str:
    if not paths:
        return command
    listing = "\n".join(f"{i}. {path}" for i, path in enumerate(paths, start=1))
    return f"{command}\n\n[Images provided at the following paths:]\n{listing}"


def cleanup_images(images: MaterializedImages) -> None:
    for path in images.paths:
        try:
            os.unlink(path)
        except OSError as exc:
            logger.warning("failed to delete temp image %s: %s", path, exc)
    if images.temp_dir:
        try:
            shutil.rmtree(images.temp_dir)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning(
                "failed to delete temp directory %s: %s", images.temp_dir, exc
            )
