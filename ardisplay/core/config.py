"""Configuration management for ardisplay.

This module defines all configuration models using Pydantic for validation.
Configuration can be loaded from JSON files or constructed programmatically,
and is passed explicitly to the resize service and the HTTP app.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class ServiceConfig(BaseModel):
    """Storage layout and cache parameters for the resize service."""

    models_dir: Path = Field(
        default=Path("models"),
        description="Directory holding the source models"
    )
    resized_subdir: str = Field(
        default="resized",
        description="Subdirectory of models_dir holding resized variants"
    )
    url_prefix: str = Field(
        default="/models",
        description="Public URL prefix under which models_dir is served"
    )

    # Model identifiers
    default_extension: str = Field(
        default=".glb",
        description="Extension appended to model ids without a known suffix"
    )
    allowed_extensions: tuple[str, ...] = Field(
        default=(".glb", ".gltf"),
        description="Scene document extensions the service accepts"
    )

    # Cache keys
    digest_length: int = Field(
        default=32,
        ge=8,
        le=64,
        description="Number of hex characters kept from the SHA-256 digest"
    )

    # Scene graph
    wrapper_node_name: str = Field(
        default="parent",
        description="Name given to the injected scale wrapper node"
    )

    # Concurrency
    lock_per_key: bool = Field(
        default=True,
        description="Serialize concurrent cache misses for the same key"
    )

    @field_validator("default_extension")
    @classmethod
    def _dotted_extension(cls, value: str) -> str:
        if not value.startswith("."):
            value = f".{value}"
        return value.lower()

    @field_validator("allowed_extensions")
    @classmethod
    def _dotted_extensions(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(v.lower() if v.startswith(".") else f".{v.lower()}" for v in value)

    @field_validator("url_prefix")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def resized_dir(self) -> Path:
        """Directory where resized variants are written."""
        return self.models_dir / self.resized_subdir


class ServerConfig(BaseModel):
    """HTTP server parameters."""

    host: str = Field(default="0.0.0.0", description="Interface to bind")
    port: int = Field(default=3000, ge=1, le=65535, description="Port to listen on")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed CORS origins"
    )
    serve_static: bool = Field(
        default=True,
        description="Serve models_dir under url_prefix"
    )

    # TLS (AR viewers require HTTPS on mobile browsers)
    ssl_keyfile: Path | None = Field(default=None, description="TLS private key")
    ssl_certfile: Path | None = Field(default=None, description="TLS certificate")
    ssl_ca_certs: Path | None = Field(default=None, description="TLS CA bundle")


class ArDisplayConfig(BaseModel):
    """Main configuration container."""

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @classmethod
    def from_file(cls, path: Path | str) -> ArDisplayConfig:
        """Load configuration from a JSON file."""
        path = Path(path)
        with open(path) as f:
            data = json.load(f)
        return cls.model_validate(data)

    def to_file(self, path: Path | str) -> None:
        """Save configuration to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)

    @classmethod
    def default(cls) -> ArDisplayConfig:
        """Create a default configuration."""
        return cls()
