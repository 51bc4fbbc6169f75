"""Client configuration for pytotalmix."""

from __future__ import annotations

import dataclasses
import math
import os
from typing import Any

from pytotalmix._constants import (
    DEFAULT_HOST,
    DEFAULT_INCOMING_PORT,
    DEFAULT_OUTGOING_PORT,
    DEFAULT_RECEIVE_TIMEOUT,
    DEFAULT_REQUEST_INTERVAL,
)
from pytotalmix.exceptions import TotalMixConfigError

__all__ = [
    "DEFAULT_INCOMING_PORT",
    "DEFAULT_OUTGOING_PORT",
    "TotalMixConfig",
    "VolumeSettings",
    "parse_endpoint",
]


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _is_multiple_of(value: float, step: float) -> bool:
    return math.isclose(value / step, round(value / step), abs_tol=1e-9)


def parse_endpoint(raw: str, default_port: int) -> tuple[str, int]:
    """Split ``"host:port"`` into its parts.

    A bare host uses ``default_port``.  Bracketed IPv6 hosts
    (``"[::1]:9001"``) are accepted.
    """
    value = raw.strip()
    if not value:
        raise TotalMixConfigError("Endpoint value is empty")

    if value.startswith("["):
        host, sep, rest = value[1:].partition("]")
        if not sep:
            raise TotalMixConfigError(f"Invalid endpoint {raw!r}")
        maybe_port = rest[1:] if rest.startswith(":") else ""
    else:
        host, _, maybe_port = value.rpartition(":")
        if not host:
            host, maybe_port = value, ""

    if not maybe_port:
        return host, default_port
    if not maybe_port.isdigit():
        raise TotalMixConfigError(f"Invalid port in endpoint {raw!r}")
    return host, int(maybe_port)


def _check_port(name: str, port: int) -> None:
    if not 1 <= port <= 65535:
        raise TotalMixConfigError(f"{name} must be between 1 and 65535, got {port}")


@dataclasses.dataclass(frozen=True)
class VolumeSettings:
    """Volume stepping settings.

    Both the percent-domain and the decibel-domain values are always held;
    ``use_decibels`` selects which pair governs increase/decrease.

    Parameters
    ----------
    use_decibels : bool
        Step in decibels instead of fractions.
    increment_percent : float
        Regular fraction step, greater than 0 and at most 0.10.
    fine_increment_percent : float
        Fine fraction step, greater than 0 and at most 0.05.
    max_percent : float
        Highest fraction an increase may reach, greater than 0 and at most 1.0.
    increment_decibels : float
        Regular dB step, a multiple of 0.5, greater than 0 and at most 6.0.
    fine_increment_decibels : float
        Fine dB step, a multiple of 0.25, greater than 0 and at most 3.0.
    max_decibels : float
        Highest dB level an increase may reach, at most 6.0 (the top of the
        fader).
    """

    use_decibels: bool = False
    increment_percent: float = 0.02
    fine_increment_percent: float = 0.01
    max_percent: float = 1.0
    increment_decibels: float = 2.0
    fine_increment_decibels: float = 1.0
    max_decibels: float = 6.0

    def __post_init__(self) -> None:
        if not 0.0 < self.increment_percent <= 0.10:
            raise TotalMixConfigError(
                f"increment_percent must be greater than 0 and at most 0.1, got {self.increment_percent}"
            )
        if not 0.0 < self.fine_increment_percent <= 0.05:
            raise TotalMixConfigError(
                f"fine_increment_percent must be greater than 0 and at most 0.05, got {self.fine_increment_percent}"
            )
        if not 0.0 < self.max_percent <= 1.0:
            raise TotalMixConfigError(f"max_percent must be greater than 0 and at most 1.0, got {self.max_percent}")
        if not 0.0 < self.increment_decibels <= 6.0 or not _is_multiple_of(self.increment_decibels, 0.5):
            raise TotalMixConfigError(
                "increment_decibels must be a multiple of 0.5 greater than 0 and at most 6.0, "
                f"got {self.increment_decibels}"
            )
        if not 0.0 < self.fine_increment_decibels <= 3.0 or not _is_multiple_of(self.fine_increment_decibels, 0.25):
            raise TotalMixConfigError(
                "fine_increment_decibels must be a multiple of 0.25 greater than 0 and at most 3.0, "
                f"got {self.fine_increment_decibels}"
            )
        if self.max_decibels > 6.0:
            raise TotalMixConfigError(f"max_decibels must be at most 6.0, got {self.max_decibels}")

    def increment(self, fine: bool = False) -> float:
        """Active step for the selected domain."""
        if self.use_decibels:
            return self.fine_increment_decibels if fine else self.increment_decibels
        return self.fine_increment_percent if fine else self.increment_percent

    @property
    def maximum(self) -> float:
        """Active ceiling for the selected domain."""
        return self.max_decibels if self.use_decibels else self.max_percent


@dataclasses.dataclass(frozen=True)
class TotalMixConfig:
    """Client configuration.

    The outgoing endpoint is where TotalMix listens (its "Port incoming"
    setting); the incoming endpoint is where this library listens (the
    TotalMix "Port outgoing" setting).

    Parameters
    ----------
    outgoing_host : str
        Host running TotalMix FX.
    outgoing_port : int
        UDP port TotalMix receives OSC on.
    incoming_host : str
        Local address to bind for device messages.
    incoming_port : int
        Local UDP port to bind for device messages.
    receive_timeout : float
        Seconds without any device packet before the device is considered
        unreachable.
    request_interval : float
        Seconds between state requests while the state is unknown.
    volume : VolumeSettings
        Volume stepping settings.
    """

    outgoing_host: str = DEFAULT_HOST
    outgoing_port: int = DEFAULT_OUTGOING_PORT
    incoming_host: str = DEFAULT_HOST
    incoming_port: int = DEFAULT_INCOMING_PORT
    receive_timeout: float = DEFAULT_RECEIVE_TIMEOUT
    request_interval: float = DEFAULT_REQUEST_INTERVAL
    volume: VolumeSettings = dataclasses.field(default_factory=VolumeSettings)

    def __post_init__(self) -> None:
        _check_port("outgoing_port", self.outgoing_port)
        _check_port("incoming_port", self.incoming_port)
        if self.receive_timeout <= 0:
            raise TotalMixConfigError(f"receive_timeout must be positive, got {self.receive_timeout}")
        if self.request_interval <= 0:
            raise TotalMixConfigError(f"request_interval must be positive, got {self.request_interval}")

    @property
    def outgoing_endpoint(self) -> str:
        return f"{self.outgoing_host}:{self.outgoing_port}"

    @property
    def incoming_endpoint(self) -> str:
        return f"{self.incoming_host}:{self.incoming_port}"

    @classmethod
    def from_env(cls, **overrides: Any) -> TotalMixConfig:
        """Create configuration from environment variables.

        Reads ``TOTALMIX_OUTGOING_ENDPOINT`` and ``TOTALMIX_INCOMING_ENDPOINT``
        (``host:port``), ``TOTALMIX_RECEIVE_TIMEOUT``,
        ``TOTALMIX_REQUEST_INTERVAL`` and the ``TOTALMIX_VOLUME_*`` stepping
        variables. Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TotalMixConfig
            Populated configuration.

        Raises
        ------
        TotalMixConfigError
            If a variable cannot be parsed or a value is out of range.
        """
        env = os.environ

        volume_kwargs: dict[str, Any] = {}
        _ENV_VOLUME_MAP = {
            "TOTALMIX_VOLUME_INCREMENT_PERCENT": "increment_percent",
            "TOTALMIX_VOLUME_FINE_INCREMENT_PERCENT": "fine_increment_percent",
            "TOTALMIX_VOLUME_MAX_PERCENT": "max_percent",
            "TOTALMIX_VOLUME_INCREMENT_DECIBELS": "increment_decibels",
            "TOTALMIX_VOLUME_FINE_INCREMENT_DECIBELS": "fine_increment_decibels",
            "TOTALMIX_VOLUME_MAX_DECIBELS": "max_decibels",
        }
        for env_key, field_name in _ENV_VOLUME_MAP.items():
            val = env.get(env_key)
            if val is not None:
                volume_kwargs[field_name] = _env_float(env_key, val)

        use_decibels_env = env.get("TOTALMIX_VOLUME_USE_DECIBELS")
        if use_decibels_env is not None:
            volume_kwargs["use_decibels"] = _env_bool(use_decibels_env, False)

        # Allow overriding volume fields via a nested dict
        volume_overrides = overrides.pop("volume", None)
        if isinstance(volume_overrides, dict):
            volume_kwargs.update(volume_overrides)
        elif isinstance(volume_overrides, VolumeSettings):
            volume_kwargs = dataclasses.asdict(volume_overrides)

        config_kwargs: dict[str, Any] = {"volume": VolumeSettings(**volume_kwargs)}

        outgoing_env = env.get("TOTALMIX_OUTGOING_ENDPOINT")
        if outgoing_env is not None:
            host, port = parse_endpoint(outgoing_env, DEFAULT_OUTGOING_PORT)
            config_kwargs["outgoing_host"] = host
            config_kwargs["outgoing_port"] = port

        incoming_env = env.get("TOTALMIX_INCOMING_ENDPOINT")
        if incoming_env is not None:
            host, port = parse_endpoint(incoming_env, DEFAULT_INCOMING_PORT)
            config_kwargs["incoming_host"] = host
            config_kwargs["incoming_port"] = port

        timeout_env = env.get("TOTALMIX_RECEIVE_TIMEOUT")
        if timeout_env is not None and "receive_timeout" not in overrides:
            config_kwargs["receive_timeout"] = _env_float("TOTALMIX_RECEIVE_TIMEOUT", timeout_env)

        interval_env = env.get("TOTALMIX_REQUEST_INTERVAL")
        if interval_env is not None and "request_interval" not in overrides:
            config_kwargs["request_interval"] = _env_float("TOTALMIX_REQUEST_INTERVAL", interval_env)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)


def _env_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise TotalMixConfigError(f"{name} must be a number, got {value!r}") from exc
