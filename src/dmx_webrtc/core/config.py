"""
Configuration Management for DMXWebRTC.

Uses Pydantic Settings for type-safe configuration with environment
variable support and YAML file loading.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SIGNALING_PORT = 5214
DEFAULT_ARTNET_PORT = 6454


class SignalingConfig(BaseModel):
    """Websocket signaling server configuration."""
    host: str = "0.0.0.0"
    port: int = Field(default=DEFAULT_SIGNALING_PORT, ge=1, le=65535)


class ArtNetConfig(BaseModel):
    """Shared Art-Net UDP socket configuration."""
    bind_host: str = "0.0.0.0"
    port: int = Field(default=DEFAULT_ARTNET_PORT, ge=1, le=65535)
    broadcast: bool = True
    reuse_address: bool = True
    relay_inbound: bool = False  # Relay received ArtDMX frames to open channels


class WebRTCConfig(BaseModel):
    """Options handed to the WebRTC engine."""
    ice_servers: List[str] = Field(default_factory=list)  # e.g. "stun:stun.l.google.com:19302"


class OutputConfig(BaseModel):
    """One network output: an interface address and its netmask."""
    name: str
    address: str
    mask: str


class Settings(BaseSettings):
    """
    Main application settings.

    Can be configured via:
    - Environment variables (prefixed with DMXWEBRTC_)
    - YAML config file
    - Direct instantiation
    """

    model_config = SettingsConfigDict(
        env_prefix="DMXWEBRTC_",
        env_nested_delimiter="__",
    )

    signaling: SignalingConfig = Field(default_factory=SignalingConfig)
    artnet: ArtNetConfig = Field(default_factory=ArtNetConfig)
    webrtc: WebRTCConfig = Field(default_factory=WebRTCConfig)

    # Initial output set; replaced wholesale by __OUTPUTS__SET messages
    outputs: List[OutputConfig] = Field(default_factory=list)

    # Debug
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value):
        return value.upper() if isinstance(value, str) else value

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: Path) -> None:
        """Save settings to a YAML file."""
        with open(path, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False)
