"""Station configuration: ``station.yaml`` loader and example SKU table."""

from panel_gamma.configs.loader import ConfigError, StationConfig, load_config

__all__ = ["ConfigError", "StationConfig", "load_config"]
