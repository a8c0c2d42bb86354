import asyncio
import json
import os
import struct
from datetime import datetime, timezone
from pathlib import Path

import structlog

from spark_console.schemas.models import ModelRecord

logger = structlog.get_logger()

MODEL_FORMATS = {
    ".gguf": "GGUF",
    ".safetensors": "SAFETENSORS",
    ".bin": "BIN",
    ".pt": "PT",
    ".pth": "PTH",
    ".onnx": "ONNX",
    ".ckpt": "CKPT",
}

_GGUF_MAGIC = b"GGUF"
_SAFETENSORS_MAX_HEADER = 16 * 1024 * 1024
_HF_REPO_PREFIX = "models--"


def read_gguf_metadata(path: Path) -> dict[str, str | int]:
    with open(path, "rb") as f:
        header = f.read(24)
    if len(header) < 8 or header[:4] != _GGUF_MAGIC:
        return {"header": "invalid"}
    (version,) = struct.unpack_from("<I", header, 4)
    meta: dict[str, str | int] = {"gguf_version": version}
    if version == 1 and len(header) >= 16:
        tensors, kv_count = struct.unpack_from("<II", header, 8)
    elif len(header) >= 24:
        tensors, kv_count = struct.unpack_from("<QQ", header, 8)
    else:
        return meta
    meta["tensor_count"] = tensors
    meta["metadata_kv_count"] = kv_count
    return meta


def read_safetensors_metadata(path: Path) -> dict[str, str | int]:
    with open(path, "rb") as f:
        prefix = f.read(8)
        if len(prefix) < 8:
            return {"header": "invalid"}
        (header_len,) = struct.unpack("<Q", prefix)
        if header_len == 0 or header_len > _SAFETENSORS_MAX_HEADER:
            return {"header": "invalid"}
        raw = f.read(header_len)
    try:
        header = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {"header": "invalid"}
    if not isinstance(header, dict):
        return {"header": "invalid"}

    extra = header.pop("__metadata__", None) or {}
    dtypes = sorted({t.get("dtype", "") for t in header.values() if isinstance(t, dict)} - {""})
    meta: dict[str, str | int] = {"tensor_count": len(header)}
    if dtypes:
        meta["dtypes"] = ",".join(dtypes)
    if isinstance(extra, dict) and isinstance(extra.get("format"), str):
        meta["format"] = extra["format"]
    return meta


_METADATA_READERS = {
    "GGUF": read_gguf_metadata,
    "SAFETENSORS": read_safetensors_metadata,
}


def huggingface_repo_id(path: Path) -> str | None:
    """Hub cache layout: <root>/models--<org>--<name>/snapshots/<rev>/<file>."""
    for part in path.parts:
        if part.startswith(_HF_REPO_PREFIX):
            return part[len(_HF_REPO_PREFIX):].replace("--", "/")
    return None


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _modified_time(path: Path, stat: os.stat_result) -> datetime:
    try:
        return datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        logger.warning("model_mtime_out_of_range", path=str(path), mtime=stat.st_mtime)
        return _EPOCH


def classify_model_file(path: Path, root: Path, stat: os.stat_result) -> ModelRecord | None:
    """Build a ModelRecord for a model file, or None if the extension is not a model format."""
    fmt = MODEL_FORMATS.get(path.suffix.lower())
    if fmt is None:
        return None

    metadata: dict[str, str | int] = {}
    reader = _METADATA_READERS.get(fmt)
    if reader is not None:
        try:
            metadata = reader(path)
        except OSError as e:
            logger.warning("model_header_unreadable", path=str(path), error=str(e))
        except (ValueError, RecursionError) as e:
            logger.warning("model_header_invalid", path=str(path), error=type(e).__name__)
            metadata = {"header": "invalid"}

    repo_id = huggingface_repo_id(path.relative_to(root))
    return ModelRecord(
        name=path.stem,
        path=str(path),
        size_bytes=stat.st_size,
        format=fmt,
        modified=_modified_time(path, stat),
        root=str(root),
        source="huggingface" if repo_id else "local",
        repo_id=repo_id,
        metadata=metadata,
    )


class ModelDiscovery:
    """Scans configured roots for model artifacts. Every call rescans; nothing is cached."""

    def __init__(self, roots: list[Path], max_depth: int = 4):
        self._roots = [Path(r) for r in roots]
        self._max_depth = max_depth

    def _scan_root(self, root: Path) -> list[ModelRecord]:
        try:
            is_dir = root.is_dir()
        except OSError as e:
            logger.warning("model_scan_dir_skipped", path=str(root), error=str(e))
            return []
        if not is_dir:
            logger.debug("model_root_missing", root=str(root))
            return []

        records = []
        stack = [(root, 0)]
        while stack:
            directory, depth = stack.pop()
            try:
                with os.scandir(directory) as it:
                    entries = list(it)
            except OSError as e:
                logger.warning("model_scan_dir_skipped", path=str(directory), error=str(e))
                continue

            for entry in entries:
                if entry.name.startswith("."):
                    continue
                try:
                    if entry.is_dir(follow_symlinks=False):
                        if depth < self._max_depth:
                            stack.append((Path(entry.path), depth + 1))
                        continue
                    if not entry.is_file():
                        continue
                    path = Path(entry.path)
                    if path.suffix.lower() not in MODEL_FORMATS:
                        continue
                    record = classify_model_file(path, root, entry.stat())
                except (OSError, ValueError) as e:
                    logger.warning("model_file_skipped", path=entry.path, error=str(e))
                    continue
                if record is not None:
                    records.append(record)
        return records

    def scan_sync(self) -> list[ModelRecord]:
        records = []
        for root in self._roots:
            records.extend(self._scan_root(root))
        records.sort(key=lambda r: (r.name, r.path))
        return records

    async def scan(self) -> list[ModelRecord]:
        return await asyncio.to_thread(self.scan_sync)
