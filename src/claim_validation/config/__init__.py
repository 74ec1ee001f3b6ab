"""Pipeline configuration."""

from claim_validation.config.settings import PipelineConfig, load_config

__all__ = ["PipelineConfig", "load_config"]
