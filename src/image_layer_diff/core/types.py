"""Core types for the layer comparison engine."""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class TreeIndexKey:
    """Layer ranges identifying one squashed and diffed tree.

    Layers [bottom_start..bottom_stop] form the base, layers
    [top_start..top_stop] are stacked on top of it. A range whose stop is
    one less than its start is empty.
    """

    bottom_start: int
    bottom_stop: int
    top_start: int
    top_stop: int

    def __str__(self) -> str:
        return (
            f"bottom=[{self.bottom_start}:{self.bottom_stop}] "
            f"top=[{self.top_start}:{self.top_stop}]"
        )


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AnalysisConfig:
    """Settings for reading and analyzing an image."""

    build_cache: bool = True
    aggregated_cache: bool = False
    hash_contents: bool = True

    @classmethod
    def from_env(cls) -> "AnalysisConfig":
        """Build a config from LAYER_DIFF_* environment variables."""
        return cls(
            build_cache=_env_flag("LAYER_DIFF_BUILD_CACHE", cls.build_cache),
            aggregated_cache=_env_flag(
                "LAYER_DIFF_AGGREGATED_CACHE", cls.aggregated_cache
            ),
            hash_contents=_env_flag("LAYER_DIFF_HASH_CONTENTS", cls.hash_contents),
        )
