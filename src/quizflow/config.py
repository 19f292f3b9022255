"""
quizflow configuration

Engine policies and validation defaults live here.
Environment variables override defaults for deployment flexibility.
"""

import os
from dataclasses import dataclass, field


@dataclass
class EngineConfig:
    """Run state machine policies"""
    # Refuse advance() while a required question on the node is unanswered or invalid
    block_on_required: bool = os.getenv("QUIZFLOW_BLOCK_ON_REQUIRED", "true").lower() == "true"
    # Upper bound on advance() calls when replaying answers through a cyclic graph
    max_replay_steps: int = int(os.getenv("QUIZFLOW_MAX_REPLAY_STEPS", "1000"))


@dataclass
class ValidationConfig:
    """Answer validation defaults"""
    rating_min: float = float(os.getenv("QUIZFLOW_RATING_MIN", "1"))
    rating_max: float = float(os.getenv("QUIZFLOW_RATING_MAX", "5"))
    step_tolerance: float = float(os.getenv("QUIZFLOW_STEP_TOLERANCE", "1e-9"))


@dataclass
class LoggingConfig:
    """Log level used by the CLI"""
    level: str = os.getenv("QUIZFLOW_LOG_LEVEL", "WARNING").upper()


@dataclass
class Config:
    """Master config; import this"""
    engine: EngineConfig = field(default_factory=EngineConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Quick presets
    @classmethod
    def strict_mode(cls) -> "Config":
        """Block advancing past required questions that lack a valid answer"""
        cfg = cls()
        cfg.engine.block_on_required = True
        return cfg

    @classmethod
    def lenient_mode(cls) -> "Config":
        """Let the embedding application decide about required questions"""
        cfg = cls()
        cfg.engine.block_on_required = False
        return cfg


# Singleton
config = Config()
