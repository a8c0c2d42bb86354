from fastapi import Request

from spark_console.config import settings
from spark_console.core.exceptions import FeatureDisabledError
from spark_console.services.containers import ContainerControl, ContainerReader
from spark_console.services.model_discovery import ModelDiscovery
from spark_console.services.provider import MetricsProvider


def get_provider(request: Request) -> MetricsProvider:
    """Return the metrics provider stored on app state during lifespan."""
    return request.app.state.provider


def get_container_reader(request: Request) -> ContainerReader:
    if not settings.spark_containers_enabled:
        raise FeatureDisabledError("Container management is disabled.")
    return request.app.state.container_reader


def get_container_control(request: Request) -> ContainerControl:
    if not settings.spark_containers_enabled:
        raise FeatureDisabledError("Container management is disabled.")
    return request.app.state.container_control


def get_model_discovery(request: Request) -> ModelDiscovery:
    if not settings.spark_models_enabled:
        raise FeatureDisabledError("Model discovery is disabled.")
    return request.app.state.model_discovery
