from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from layers.types import RGBA


def _rgba(v: list[int], default_alpha: int = 255) -> RGBA:
    r, g, b = (int(c) for c in v[:3])
    a = int(v[3]) if len(v) > 3 else default_alpha
    return (r, g, b, a)


class StyleColor(BaseModel):
    """Parsed from [r, g, b] or [r, g, b, a]."""

    rgba: tuple[int, int, int, int]

    @model_validator(mode="before")
    @classmethod
    def _from_list(cls, v):
        if isinstance(v, (list, tuple)):
            if len(v) not in (3, 4) or any(not 0 <= int(c) <= 255 for c in v):
                raise ValueError(f"color must be 3 or 4 channels in 0..255, got {v!r}")
            return {"rgba": _rgba(list(v))}
        return v


class RampStop(BaseModel):
    at: float = Field(ge=0.0, le=100.0)
    color: StyleColor


class BoundaryStyle(BaseModel):
    title: str = "State boundaries"
    lineColor: StyleColor = StyleColor(rgba=(255, 255, 255, 90))
    lineWidth: float = Field(default=1.0, gt=0.0)


class CoverageStyle(BaseModel):
    title: str = "Charging coverage"
    fillAlpha: int = Field(default=170, ge=0, le=255)
    lineWidth: float = Field(default=1.5, gt=0.0)


class StationStyle(BaseModel):
    title: str = "Charging stations"
    # Keys are matched case-insensitively against the record attribute.
    levels: dict[str, float] = Field(default_factory=dict)
    defaultRadius: float = Field(default=4.0, gt=0.0)
    networks: dict[str, StyleColor] = Field(default_factory=dict)
    defaultColor: StyleColor = StyleColor(rgba=(0, 255, 200, 255))
    pricing: dict[str, float] = Field(default_factory=dict)
    defaultOpacity: float = Field(default=0.85, ge=0.0, le=1.0)

    @field_validator("levels", "networks", "pricing", mode="before")
    @classmethod
    def _lower_keys(cls, v):
        if isinstance(v, dict):
            return {str(k).strip().lower(): val for k, val in v.items()}
        return v


class HighlightStyle(BaseModel):
    title: str = "Selected"
    color: StyleColor = StyleColor(rgba=(255, 64, 129, 255))
    radius: float = Field(default=12.0, gt=0.0)
    lineWidth: float = Field(default=3.0, gt=0.0)


class StyleConfig(BaseModel):
    """
    Declarative attribute -> visual channel rules.

    Loaded from YAML so palette tweaks don't need code changes.
    """

    ramp: list[RampStop] = Field(min_length=2)
    tiers: dict[str, float] = Field(default_factory=dict)
    unknownColor: StyleColor = StyleColor(rgba=(128, 128, 128, 160))
    boundaries: BoundaryStyle = Field(default_factory=BoundaryStyle)
    coverage: CoverageStyle = Field(default_factory=CoverageStyle)
    stations: StationStyle = Field(default_factory=StationStyle)
    highlight: HighlightStyle = Field(default_factory=HighlightStyle)

    @field_validator("ramp")
    @classmethod
    def _ascending_stops(cls, v: list[RampStop]) -> list[RampStop]:
        positions = [s.at for s in v]
        if positions != sorted(positions) or len(set(positions)) != len(positions):
            raise ValueError("ramp stops must be strictly ascending")
        return v

    @field_validator("tiers", mode="before")
    @classmethod
    def _lower_tier_keys(cls, v):
        if isinstance(v, dict):
            return {str(k).strip().lower(): val for k, val in v.items()}
        return v

    @field_validator("tiers")
    @classmethod
    def _tiers_on_ramp(cls, v: dict[str, float]) -> dict[str, float]:
        for tier, pos in v.items():
            if not 0.0 <= float(pos) <= 100.0:
                raise ValueError(f"tier {tier!r} position must be within 0..100")
        return v
