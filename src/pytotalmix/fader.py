"""TotalMix fader curve and volume stepping.

TotalMix maps its 1023-position main fader onto decibels with a two-segment
curve: linear in dB above -6 dB and quadratic below it.

Boundaries:

* ``value_to_decibels(0.0) == -65.0`` and ``decibels_to_value(-65.0) == 0.0``.
* ``value_to_decibels(1.0)`` is a hair above +6 dB and converts back to exactly
  1.0 only through the clamp.
* Any dB value below -65 maps to 0.0 and any value above the top of the curve
  maps to 1.0.
"""

from __future__ import annotations

import math

FADER_POSITIONS = 1023
"""Number of fader steps the device reports a fraction against."""

_KNEE_POSITION = 649
_KNEE_DECIBELS = -6.0

_LINEAR_SLOPE = 0.0320855615
_LINEAR_OFFSET = 26.8235294118

_QUADRATIC_DIVISOR = 11033
_QUADRATIC_SLOPE = 0.1497326203
_QUADRATIC_OFFSET = 65

_INVERSE_VERTEX = 826
_INVERSE_CONSTANT = -34869


def value_to_decibels(value: float) -> float:
    """Convert a volume fraction (0.0-1.0) to decibels."""
    position = value * FADER_POSITIONS
    if position >= _KNEE_POSITION:
        return position * _LINEAR_SLOPE - _LINEAR_OFFSET
    return -(position * position) / _QUADRATIC_DIVISOR + position * _QUADRATIC_SLOPE - _QUADRATIC_OFFSET


def decibels_to_value(decibels: float) -> float:
    """Convert decibels to a volume fraction, clamped to 0.0-1.0."""
    if decibels >= _KNEE_DECIBELS:
        value = (decibels + _LINEAR_OFFSET) / _LINEAR_SLOPE / FADER_POSITIONS
    else:
        value = (_INVERSE_VERTEX - math.sqrt(_INVERSE_CONSTANT - _QUADRATIC_DIVISOR * decibels)) / FADER_POSITIONS
    return max(0.0, min(1.0, value))


# ------------------------------------------------------------------
# Stepping
# ------------------------------------------------------------------


def step_percent(current: float, increment: float, maximum: float, *, increase: bool) -> float:
    """Return the next fraction one ``increment`` away from ``current``.

    Increasing clamps only at ``maximum``; decreasing clamps only at 0.0.
    """
    if increase:
        candidate = current + increment
        return maximum if candidate >= maximum else candidate
    candidate = current - increment
    return 0.0 if candidate < 0.0 else candidate


def step_decibels(current: float, increment: float, maximum: float, *, increase: bool) -> float:
    """Return the next fraction one dB ``increment`` away from ``current``.

    The current level is rounded to one decimal (the device's display
    granularity) and snapped to an ``increment`` multiple in the direction of
    travel before stepping, so repeated presses walk the grid
    ``..., -40, -38, -36, ...`` instead of carrying an odd offset along.

    Increasing clamps at ``maximum`` dB.  Decreasing relies on
    :func:`decibels_to_value` to clamp at the 0.0 fraction floor, so the dB
    value requested may sit below the -65 dB end of the curve.
    """
    decibels = round(value_to_decibels(current), 1)
    if increase:
        target = math.floor(decibels / increment) * increment + increment
        target = min(target, maximum)
    else:
        target = math.ceil(decibels / increment) * increment - increment
    return decibels_to_value(target)
