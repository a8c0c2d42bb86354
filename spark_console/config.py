from pathlib import Path

from pydantic_settings import BaseSettings

METRIC_FAMILIES = ("gpu", "cpu", "memory", "disk", "uptime")
COLLECTION_MODES = ("live", "mock")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server
    spark_bind_host: str = "0.0.0.0"
    spark_port: int = 3000

    # Logging
    spark_log_level: str = "info"

    # Collection mode: "live" or "mock". Per-family overrides win over the default.
    spark_collection_mode: str = "live"
    spark_gpu_mode: str | None = None
    spark_cpu_mode: str | None = None
    spark_memory_mode: str | None = None
    spark_disk_mode: str | None = None
    spark_uptime_mode: str | None = None
    spark_container_mode: str | None = None
    spark_mock_seed: int | None = None

    # Source readers
    spark_source_timeout: float = 5.0
    spark_cpu_sample_interval: float = 0.1
    spark_proc_root: str = "/proc"
    spark_nvidia_smi: str = "nvidia-smi"
    spark_disk_fs_denylist: str | None = None

    # Model discovery
    spark_model_dirs: str = "/opt/models,~/.cache/huggingface/hub,~/.ollama/models"
    spark_model_scan_depth: int = 4

    # Container control
    spark_container_action_timeout: int = 10

    # Feature flags
    spark_auth_token: str | None = None  # None = LAN-only, no access control
    spark_containers_enabled: bool = True
    spark_models_enabled: bool = True
    spark_cors_origins: str = "http://localhost:3000"

    model_config = {"env_prefix": "", "case_sensitive": False, "env_file": ".env", "env_file_encoding": "utf-8"}

    def mode_for(self, family: str) -> str:
        """Resolve the collection mode for a metric family ("container" included)."""
        override = getattr(self, f"spark_{family}_mode", None)
        mode = (override or self.spark_collection_mode).strip().lower()
        if mode not in COLLECTION_MODES:
            raise ValueError(f"Invalid collection mode for {family}: {mode!r}")
        return mode

    def collection_modes(self) -> dict[str, str]:
        return {family: self.mode_for(family) for family in METRIC_FAMILIES}

    def model_dirs(self) -> list[Path]:
        return [Path(d.strip()).expanduser() for d in self.spark_model_dirs.split(",") if d.strip()]


settings = Settings()
