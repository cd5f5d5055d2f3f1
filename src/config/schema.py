"""
Configuration schema and loader.

This module defines dataclasses that mirror the expected structure of
the YAML configuration file (`config.yaml`).  A helper function
`load_config()` reads a YAML file from disk, fills any missing fields
with the defaults below and validates the result with
`validate_config()`.

The strategy parameters are frozen once loaded.  When extending the
configuration, add new fields to the appropriate dataclass, to the
defaults in `load_config()` and, where the value has a restricted
domain, to `validate_config()`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from typing import Any, Dict, List
import yaml

from ..utils.timeutils import parse_time_str


class ConfigError(ValueError):
    """Raised when a configuration value is outside its valid domain."""


@dataclass(frozen=True)
class SessionConfig:
    """Defines the window in which new entries may be placed.

    Attributes
    ----------
    start : str
        Start time in `HH:MM` 24‑hour format, interpreted in the timezone
        given by `data.timezone`.
    end : str
        End time in `HH:MM` format.  Both ends are inclusive.  When
        `start` is later than `end` the window wraps past midnight.
    close : str
        Time at which the trading session closes and any open position
        is flattened.  The last bar at or before this time ends the
        session, so it should fall outside the entry window.

    The parsed `start_time`, `end_time` and `close_time` are set once at
    construction.
    """

    start: str = "18:00"
    end: str = "06:00"
    close: str = "17:00"
    start_time: time = field(init=False, repr=False)
    end_time: time = field(init=False, repr=False)
    close_time: time = field(init=False, repr=False)

    def __post_init__(self) -> None:
        for name in ("start", "end", "close"):
            raw = getattr(self, name)
            try:
                parsed = parse_time_str(raw)
            except (ValueError, AttributeError) as exc:
                raise ConfigError(f"session.{name} must be in HH:MM format, got {raw!r}") from exc
            object.__setattr__(self, f"{name}_time", parsed)


@dataclass(frozen=True)
class DaysConfig:
    """Day‑of‑week trading flags.  Weekend days have no flag and are allowed."""

    monday: bool = True
    tuesday: bool = True
    wednesday: bool = False
    thursday: bool = False
    friday: bool = True

    def as_weekday_map(self) -> Dict[int, bool]:
        """Return the flags keyed by `datetime.weekday()` (Monday == 0)."""
        return {
            0: self.monday,
            1: self.tuesday,
            2: self.wednesday,
            3: self.thursday,
            4: self.friday,
        }


@dataclass(frozen=True)
class StrategyConfig:
    """Thresholds and periods of the stochastic trend strategy.

    Attributes
    ----------
    range_lookback : int
        Number of bars used for the volatility range (max high − min low).
    min_range : float
        The range must be strictly greater than this value to allow entries.
    adx_period, sma_period, stochastic_period : int
        Indicator periods.
    stochastic_k_smoothing, stochastic_d_smoothing : int
        Smoothing windows of the slow stochastic %K and %D lines.
    min_adx_long, min_adx_short : float
        Minimum ADX value required for long and short entries.
    stop_ticks, profit_ticks : int
        Distance in ticks between the entry close and the initial stop and
        the profit target.
    stop_acceleration : float
        Base acceleration factor of the trailing stop.
    buy_level, sell_level : float
        %D levels whose crossing triggers a long or short entry.
    """

    range_lookback: int = 10
    min_range: float = 0.002
    adx_period: int = 14
    sma_period: int = 78
    stochastic_period: int = 68
    stochastic_k_smoothing: int = 3
    stochastic_d_smoothing: int = 3
    min_adx_long: float = 12.0
    min_adx_short: float = 12.0
    stop_ticks: int = 24
    profit_ticks: int = 77
    stop_acceleration: float = 0.2
    buy_level: float = 51.0
    sell_level: float = 49.0


@dataclass(frozen=True)
class InstrumentConfig:
    """Instrument metadata.

    Attributes
    ----------
    symbol : str
        Instrument symbol; the CSV file is expected at `{csv_dir}/{symbol}.csv`.
    tick_size : float
        Minimum price increment, used to convert tick distances into prices.
    contract_size : float
        Currency value of a one point move for one contract.
    """

    symbol: str = "EURUSD"
    tick_size: float = 0.0001
    contract_size: float = 125_000.0


@dataclass(frozen=True)
class CostsConfig:
    """Models trading costs.

    Attributes
    ----------
    spread : float
        Spread in price units.  For EURUSD a spread of `0.0002` equals 2 pips.
    slippage : float
        Additional price movement in the trader’s disfavor when orders are
        executed.  Also expressed in price units.
    commission_per_contract : float
        Commission charged per contract and side.
    """

    spread: float = 0.0
    slippage: float = 0.0
    commission_per_contract: float = 0.0


@dataclass(frozen=True)
class DataConfig:
    """Data source configuration.

    Attributes
    ----------
    csv_dir : str
        Directory containing the CSV file of the instrument.
    timezone : str
        IANA timezone name used both for interpreting timestamps in
        historical data and for the day and session filters.
    """

    csv_dir: str = "data"
    timezone: str = "Europe/Brussels"


@dataclass(frozen=True)
class Config:
    """Root configuration for the trading program."""

    session: SessionConfig = field(default_factory=SessionConfig)
    days: DaysConfig = field(default_factory=DaysConfig)
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    instrument: InstrumentConfig = field(default_factory=InstrumentConfig)
    costs: CostsConfig = field(default_factory=CostsConfig)
    data: DataConfig = field(default_factory=DataConfig)
    initial_equity: float = 100_000.0


def _merge_dict(defaults: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries.

    The values in `override` take precedence over those in `defaults`.
    This helper is used when loading YAML into nested dataclasses.
    """
    result: Dict[str, Any] = defaults.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def _build(cls, values: Dict[str, Any], section: str):
    try:
        return cls(**(values or {}))
    except TypeError as exc:
        raise ConfigError(f"Invalid keys in section '{section}': {exc}") from exc


def validate_config(cfg: Config) -> Config:
    """Check every constrained value and raise one `ConfigError` listing all violations.

    Returns the configuration unchanged so the call can be chained.
    """
    s = cfg.strategy
    errors: List[str] = []

    for name in ("range_lookback", "adx_period", "sma_period", "stochastic_period",
                 "stochastic_k_smoothing", "stochastic_d_smoothing",
                 "stop_ticks", "profit_ticks"):
        value = getattr(s, name)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            errors.append(f"strategy.{name} must be a positive integer, got {value!r}")
    for name in ("min_range", "min_adx_long", "min_adx_short"):
        if getattr(s, name) < 0:
            errors.append(f"strategy.{name} must be non-negative, got {getattr(s, name)!r}")
    if s.stop_acceleration <= 0:
        errors.append(f"strategy.stop_acceleration must be positive, got {s.stop_acceleration!r}")
    for name in ("buy_level", "sell_level"):
        if not 0.0 <= getattr(s, name) <= 100.0:
            errors.append(f"strategy.{name} must be within [0, 100], got {getattr(s, name)!r}")
    if s.buy_level <= s.sell_level:
        errors.append(
            f"strategy.buy_level ({s.buy_level}) must be greater than strategy.sell_level ({s.sell_level})"
        )
    if cfg.instrument.tick_size <= 0:
        errors.append(f"instrument.tick_size must be positive, got {cfg.instrument.tick_size!r}")
    if cfg.instrument.contract_size <= 0:
        errors.append(f"instrument.contract_size must be positive, got {cfg.instrument.contract_size!r}")
    for name in ("monday", "tuesday", "wednesday", "thursday", "friday"):
        value = getattr(cfg.days, name)
        if not isinstance(value, bool):
            errors.append(f"days.{name} must be true or false, got {value!r}")

    if errors:
        raise ConfigError("; ".join(errors))
    return cfg


def load_config(path: str) -> Config:
    """Load a configuration file from the given YAML path.

    Parameters
    ----------
    path : str
        Path to the YAML file.

    Returns
    -------
    Config
        A populated and validated configuration object.

    Raises
    ------
    ConfigError
        If a section contains unknown keys or a value is out of range.
    """
    with open(path, "r", encoding="utf-8") as fh:
        raw: Dict[str, Any] = yaml.safe_load(fh) or {}

    defaults: Dict[str, Any] = {
        'session': {'start': "18:00", 'end': "06:00", 'close': "17:00"},
        'days': {
            'monday': True,
            'tuesday': True,
            'wednesday': False,
            'thursday': False,
            'friday': True,
        },
        'strategy': {},
        'instrument': {},
        'costs': {},
        'data': {'csv_dir': 'data', 'timezone': 'Europe/Brussels'},
        'initial_equity': 100_000.0,
    }

    merged = _merge_dict(defaults, raw)

    cfg = Config(
        session=_build(SessionConfig, merged['session'], 'session'),
        days=_build(DaysConfig, merged['days'], 'days'),
        strategy=_build(StrategyConfig, merged['strategy'], 'strategy'),
        instrument=_build(InstrumentConfig, merged['instrument'], 'instrument'),
        costs=_build(CostsConfig, merged['costs'], 'costs'),
        data=_build(DataConfig, merged['data'], 'data'),
        initial_equity=float(merged.get('initial_equity', 100_000.0)),
    )
    return validate_config(cfg)
