"""
flowstream Configuration - Loop, stream and transport settings

Configuration is plain dataclasses validated on construction. A YAML file
can supply all three sections; ``${VAR}`` references are replaced with
environment variable values before parsing.

Example config.yaml:
    loop:
      model: gpt-4o
      max_iterations: 8
      system: "You are a helpful assistant."
    stream:
      queue_max_size: 500
      keepalive_seconds: 10
    llm:
      provider: openai
      model: gpt-4o
      api_key: ${OPENAI_API_KEY}
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .llm.base import LLMConfig

logger = logging.getLogger(__name__)

_ENV_PATTERN = re.compile(r"\$\{(\w+)\}")


class ConfigurationError(ValueError):
    """Raised when a configuration value is invalid"""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


@dataclass
class LoopConfig:
    """
    Settings for the streaming execution loop.

    Attributes:
        model: Model name sent with every request
        max_iterations: Upper bound on model calls per run
        max_tokens: Maximum tokens per response
        temperature: Sampling temperature, omitted from requests when None
        system: Optional system prompt
        extra: Additional request parameters passed through unchanged
    """
    model: str = "gpt-4o"
    max_iterations: int = 10
    max_tokens: int = 4096
    temperature: Optional[float] = None
    system: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.model:
            raise ConfigurationError("model must not be empty", "model", self.model)
        if self.max_iterations < 1:
            raise ConfigurationError(
                f"max_iterations must be at least 1, got {self.max_iterations}",
                "max_iterations", self.max_iterations,
            )
        if self.max_tokens < 1:
            raise ConfigurationError(
                f"max_tokens must be at least 1, got {self.max_tokens}",
                "max_tokens", self.max_tokens,
            )
        if self.temperature is not None and not 0.0 <= self.temperature <= 2.0:
            raise ConfigurationError(
                f"temperature must be between 0.0 and 2.0, got {self.temperature}",
                "temperature", self.temperature,
            )

    def to_api_params(self) -> Dict[str, Any]:
        """Request parameters for one model call (without messages/tools)"""
        params: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
        }
        if self.temperature is not None:
            params["temperature"] = self.temperature
        if self.system:
            params["system"] = self.system
        params.update(self.extra)
        return params

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoopConfig":
        return cls(**_known_fields(cls, data, "loop"))


@dataclass
class StreamConfig:
    """
    Settings for event streaming.

    Attributes:
        queue_max_size: Capacity of the event queue (drop-on-full)
        poll_interval: Seconds between queue polls while a run is active
        keepalive_seconds: Idle seconds before an SSE ping is sent
        stream_tokens: Whether token events are forwarded to consumers
        track_progress: Whether progress.update events are emitted
    """
    queue_max_size: int = 1000
    poll_interval: float = 0.05
    keepalive_seconds: float = 15.0
    stream_tokens: bool = True
    track_progress: bool = True

    def __post_init__(self):
        if self.queue_max_size < 1:
            raise ConfigurationError(
                f"queue_max_size must be at least 1, got {self.queue_max_size}",
                "queue_max_size", self.queue_max_size,
            )
        if self.poll_interval <= 0:
            raise ConfigurationError(
                f"poll_interval must be positive, got {self.poll_interval}",
                "poll_interval", self.poll_interval,
            )
        if self.keepalive_seconds <= 0:
            raise ConfigurationError(
                f"keepalive_seconds must be positive, got {self.keepalive_seconds}",
                "keepalive_seconds", self.keepalive_seconds,
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StreamConfig":
        return cls(**_known_fields(cls, data, "stream"))


@dataclass
class FlowConfig:
    """Top-level configuration: loop, stream and model transport"""
    loop: LoopConfig = field(default_factory=LoopConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "FlowConfig":
        data = data or {}
        for section in ("loop", "stream", "llm"):
            value = data.get(section)
            if value is not None and not isinstance(value, dict):
                raise ConfigurationError(
                    f"Section '{section}' must be a mapping", section, value
                )
        return cls(
            loop=LoopConfig.from_dict(data.get("loop") or {}),
            stream=StreamConfig.from_dict(data.get("stream") or {}),
            llm=LLMConfig.from_dict(data.get("llm") or {}),
        )


def _known_fields(cls, data: Dict[str, Any], section: str) -> Dict[str, Any]:
    unknown = set(data) - set(cls.__dataclass_fields__)
    if unknown:
        logger.warning(f"Ignoring unknown {section} config keys: {sorted(unknown)}")
    return {k: v for k, v in data.items() if k in cls.__dataclass_fields__}


def substitute_env(raw: str, source: str = "<string>") -> str:
    """Replace ${VAR} with environment variable values."""

    def _replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigurationError(
                f"Environment variable '{var_name}' not set "
                f"(referenced in config file '{source}')",
                var_name,
            )
        return value

    return _ENV_PATTERN.sub(_replace_env, raw)


def load_config(path: str) -> FlowConfig:
    """Read YAML config file with ${VAR} environment variable substitution."""
    import yaml

    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()

    data = yaml.safe_load(substitute_env(raw, path))
    if data is not None and not isinstance(data, dict):
        raise ConfigurationError(f"Config file '{path}' must contain a mapping")

    logger.debug(f"Loaded config from {path}")
    return FlowConfig.from_dict(data)
