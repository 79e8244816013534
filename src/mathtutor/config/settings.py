"""Configuration model for MathTutor."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator


class GeneratorConfig(BaseModel):
    api_key: Optional[str] = Field(default=None)
    model: str = "claude-sonnet-4-6"
    max_tokens: int = 2048
    timeout_seconds: float = 60.0

    def get_api_key(self) -> Optional[str]:
        return self.api_key or os.environ.get("ANTHROPIC_API_KEY")

    def get_model(self) -> str:
        return os.environ.get("MATHTUTOR_MODEL") or self.model


class QuizConfig(BaseModel):
    # Pause after a correct answer before moving on
    auto_advance_delay: float = Field(default=1.0, ge=0.0)
    default_pass_score: int = Field(default=3, ge=0)


class Settings(BaseModel):
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    quiz: QuizConfig = Field(default_factory=QuizConfig)
    data_dir: Path = Path.home() / ".mathtutor"
    courses_dir: Optional[Path] = None  # None means the bundled catalog

    @field_validator("data_dir", "courses_dir")
    @classmethod
    def _expand_home(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser() if value is not None else None

    @property
    def db_path(self) -> Path:
        return self.data_dir / "attempts.db"

    @classmethod
    def default_config_path(cls) -> Path:
        env = os.environ.get("MATHTUTOR_CONFIG")
        return Path(env).expanduser() if env else Path.home() / ".mathtutor" / "config.yaml"

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        config_path = config_path or cls.default_config_path()
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            return cls(**data)
        return cls()

    def save(self, config_path: Optional[Path] = None) -> Path:
        config_path = config_path or self.data_dir / "config.yaml"
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            yaml.dump(self.model_dump(mode="json", exclude_none=True), f, default_flow_style=False)
        return config_path
