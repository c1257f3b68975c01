# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Configuration for the MCP Memory Graph.

Each concern is a ``pydantic-settings`` section with its own environment
prefix, so any field can be overridden without a config file::

    MCP_PATHS_BASE_DIR=/data/memory
    MCP_STORAGE_BACKEND=memory
    MCP_RANKING_CENTRALITY_WEIGHT=0.5

``settings`` is the process-wide instance read by the server entry point.
Library code receives the sections it needs as arguments.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_BASE_DIR = Path.home() / ".mcp-memory-graph"


class PathSettings(BaseSettings):
    """Where scope documents live on disk."""

    model_config = SettingsConfigDict(env_prefix="MCP_PATHS_")

    base_dir: Path = _DEFAULT_BASE_DIR
    # Project scopes are stored inside the project: <project>/<project_dir_name>/<file_name>
    project_dir_name: str = Field(default=".memory-graph", min_length=1)
    file_name: str = Field(default="memories.json", min_length=1)


class StorageSettings(BaseSettings):
    """Scope store backend selection."""

    model_config = SettingsConfigDict(env_prefix="MCP_STORAGE_")

    backend: Literal["json", "memory"] = "json"
    fsync: bool = True
    indent: int = Field(default=2, ge=0, le=8)


class GraphSettings(BaseSettings):
    """Relation graph traversal limits."""

    model_config = SettingsConfigDict(env_prefix="MCP_GRAPH_")

    default_depth: int = Field(default=2, ge=1)
    max_depth: int = Field(default=5, ge=1)


class RankingSettings(BaseSettings):
    """Weights for memory prioritization.

    Every weight must be strictly positive so the score stays strictly
    increasing in each signal.
    """

    model_config = SettingsConfigDict(env_prefix="MCP_RANKING_")

    recency_weight: float = Field(default=0.3, gt=0.0, le=1.0)
    frequency_weight: float = Field(default=0.2, gt=0.0, le=1.0)
    centrality_weight: float = Field(default=0.3, gt=0.0, le=1.0)
    context_weight: float = Field(default=0.2, gt=0.0, le=1.0)
    recency_half_life_hours: float = Field(default=168.0, gt=0.0)
    # Access count that maps to a frequency score of 0.5
    frequency_reference: int = Field(default=20, ge=1)
    default_limit: int = Field(default=20, ge=1, le=100)


class ServerSettings(BaseSettings):
    """MCP transport options."""

    model_config = SettingsConfigDict(env_prefix="MCP_SERVER_")

    transport_mode: Literal["stdio", "http"] = "stdio"
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    log_level: str = "INFO"


class Settings(BaseSettings):
    """Top-level settings aggregating every section."""

    paths: PathSettings = Field(default_factory=PathSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    graph: GraphSettings = Field(default_factory=GraphSettings)
    ranking: RankingSettings = Field(default_factory=RankingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)


settings = Settings()
