"""Immutable device readout handed to callers."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class DeviceSnapshot(BaseModel):
    """Main volume and dim state of the device at one point in time.

    Every field is required: a snapshot only exists once all three values have
    been reported by the device.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    volume: float = Field(..., ge=0.0, le=1.0, description="Volume as a fraction of the fader travel")
    volume_decibels: str = Field(..., description="Device-formatted level text, e.g. '-38.2 dB' or '-oo'")
    is_dimmed: bool = Field(..., description="Whether the dim function is engaged")
