from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class ModelRecord(BaseModel):
    name: str
    path: str
    size_bytes: int
    format: str  # "GGUF", "SAFETENSORS", "PT", ...
    modified: datetime
    root: str
    source: Literal["huggingface", "local"] = "local"
    repo_id: str | None = None
    metadata: dict[str, str | int] = {}
