"""
===============================================================================
LOW-THRUST SHAPING - Configuration Loading and Validation
===============================================================================
Transfers are described by a YAML file (see config/shaping_config.yaml):

    transfer       central body, departure / arrival circular orbits,
                   time of flight (days), number of revolutions
    root_finder    method, tolerances, iteration budget, bracket
    quadrature     rule, nodes per panel, number of panels
    interpolation  time step of the time-azimuth table (s)
    propagation    optional full propagation with mass
    output         output directory and plot switch

validate_config() checks every section and reports all problems at once in
a single ConfigurationError; the builder functions assume a validated
configuration.
===============================================================================
"""

import logging
import os
from typing import Any, Dict, List, Tuple

import numpy as np
import yaml

from core.constants import AU, DEG2RAD, JULIAN_DAY, get_body_mu
from dynamics.orbital_mechanics import OrbitalMechanics
from shaping.errors import ConfigurationError
from shaping.quadrature import QuadratureSettings, SUPPORTED_RULES
from shaping.root_finding import RootFinderSettings, SUPPORTED_METHODS

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), '..', '..', 'config', 'shaping_config.yaml')

KNOWN_BODIES = ('sun', 'earth', 'mars', 'jupiter')


# =============================================================================
# LOADING
# =============================================================================

def load_config(config_path: str = None) -> dict:
    """
    Load a transfer configuration from YAML.

    Args:
        config_path: Path to the YAML file; defaults to config/shaping_config.yaml.

    Returns:
        Configuration dictionary.

    Raises:
        ConfigurationError: If the file is empty or not a mapping.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    logger.info("Loading configuration from: %s", config_path)
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    if not isinstance(config, dict):
        raise ConfigurationError(f"Configuration file {config_path} does not hold a mapping")
    return config


# =============================================================================
# VALIDATION
# =============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _section(cfg: Dict[str, Any], key: str, errors: List[str], required: bool = True) -> dict:
    value = cfg.get(key)
    if value is None:
        if required:
            errors.append(f"Missing section: {key}")
        return {}
    if not isinstance(value, dict):
        errors.append(f"{key} must be a mapping")
        return {}
    return value


def _positive(section: dict, key: str, path: str, errors: List[str],
              required: bool = True) -> None:
    if key not in section:
        if required:
            errors.append(f"Missing key: {path}.{key}")
        return
    if not _is_number(section[key]) or float(section[key]) <= 0.0:
        errors.append(f"{path}.{key} must be > 0")


def _validate_orbit(orbit: Any, path: str, errors: List[str]) -> None:
    if not isinstance(orbit, dict):
        errors.append(f"{path} must be a mapping")
        return
    _positive(orbit, 'radius_au', path, errors)
    for key in ('azimuth_deg', 'inclination_deg'):
        if key in orbit and not _is_number(orbit[key]):
            errors.append(f"{path}.{key} must be numeric")


def _validate_transfer(cfg: dict, errors: List[str]) -> None:
    body = cfg.get('central_body', 'sun')
    if not isinstance(body, str) or body.lower() not in KNOWN_BODIES:
        errors.append(f"transfer.central_body must be one of {list(KNOWN_BODIES)}")

    for end in ('departure', 'arrival'):
        if end not in cfg:
            errors.append(f"Missing key: transfer.{end}")
        else:
            _validate_orbit(cfg[end], f"transfer.{end}", errors)

    _positive(cfg, 'time_of_flight_days', 'transfer', errors)

    revolutions = cfg.get('revolutions', 0)
    if not isinstance(revolutions, int) or isinstance(revolutions, bool) or revolutions < 0:
        errors.append("transfer.revolutions must be a non-negative integer")


def _validate_root_finder(cfg: dict, errors: List[str]) -> None:
    method = cfg.get('method', 'brentq')
    if method not in SUPPORTED_METHODS:
        errors.append(f"root_finder.method must be one of {list(SUPPORTED_METHODS)}")
    for key in ('xtol', 'rtol', 'maximum_iterations'):
        _positive(cfg, key, 'root_finder', errors, required=False)
    for key in ('lower_bound', 'upper_bound', 'initial_guess'):
        if key in cfg and not _is_number(cfg[key]):
            errors.append(f"root_finder.{key} must be numeric")
    lower, upper = cfg.get('lower_bound', -1.0), cfg.get('upper_bound', 1.0)
    if _is_number(lower) and _is_number(upper) and not lower < upper:
        errors.append("root_finder.lower_bound must be below root_finder.upper_bound")


def _validate_quadrature(cfg: dict, errors: List[str]) -> None:
    if cfg.get('rule', 'gauss_legendre') not in SUPPORTED_RULES:
        errors.append(f"quadrature.rule must be one of {list(SUPPORTED_RULES)}")
    for key in ('order', 'subintervals'):
        if key in cfg and (not isinstance(cfg[key], int) or cfg[key] < 1):
            errors.append(f"quadrature.{key} must be an integer >= 1")


def _validate_propagation(cfg: dict, errors: List[str]) -> None:
    if 'enabled' in cfg and not isinstance(cfg['enabled'], bool):
        errors.append("propagation.enabled must be true or false")
    for key in ('specific_impulse_s', 'initial_mass_kg', 'rtol', 'atol'):
        _positive(cfg, key, 'propagation', errors, required=False)
    if 'epochs' in cfg and (not isinstance(cfg['epochs'], int) or cfg['epochs'] < 2):
        errors.append("propagation.epochs must be an integer >= 2")


def validate_config(cfg: Dict[str, Any]) -> None:
    """
    Check a configuration dictionary.

    Raises:
        ConfigurationError: Listing every problem found.
    """
    errors: List[str] = []

    _validate_transfer(_section(cfg, 'transfer', errors), errors)
    _validate_root_finder(_section(cfg, 'root_finder', errors, required=False), errors)
    _validate_quadrature(_section(cfg, 'quadrature', errors, required=False), errors)
    _validate_propagation(_section(cfg, 'propagation', errors, required=False), errors)

    interpolation = _section(cfg, 'interpolation', errors, required=False)
    _positive(interpolation, 'step_s', 'interpolation', errors, required=False)

    output = _section(cfg, 'output', errors, required=False)
    if 'plots' in output and not isinstance(output['plots'], bool):
        errors.append("output.plots must be true or false")

    if errors:
        for message in errors:
            logger.error("Configuration error: %s", message)
        raise ConfigurationError(
            f"Invalid configuration ({len(errors)} problem(s)): " + "; ".join(errors),
            errors=errors,
        )


# =============================================================================
# BUILDERS
# =============================================================================

def build_root_finder_settings(cfg: Dict[str, Any]) -> RootFinderSettings:
    section = cfg.get('root_finder') or {}
    defaults = RootFinderSettings()
    return RootFinderSettings(
        method=section.get('method', defaults.method),
        xtol=float(section.get('xtol', defaults.xtol)),
        rtol=float(section.get('rtol', defaults.rtol)),
        maximum_iterations=int(section.get('maximum_iterations', defaults.maximum_iterations)),
        lower_bound=float(section.get('lower_bound', defaults.lower_bound)),
        upper_bound=float(section.get('upper_bound', defaults.upper_bound)),
        initial_guess=float(section.get('initial_guess', defaults.initial_guess)),
    )


def build_quadrature_settings(cfg: Dict[str, Any]) -> QuadratureSettings:
    section = cfg.get('quadrature') or {}
    defaults = QuadratureSettings()
    return QuadratureSettings(
        rule=section.get('rule', defaults.rule),
        order=int(section.get('order', defaults.order)),
        subintervals=int(section.get('subintervals', defaults.subintervals)),
    )


def central_body_mu(cfg: Dict[str, Any]) -> float:
    return get_body_mu(cfg['transfer'].get('central_body', 'sun'))


def build_boundary_states(cfg: Dict[str, Any]) -> Tuple[np.ndarray, np.ndarray]:
    """Cartesian departure and arrival states on the configured circular orbits."""
    transfer = cfg['transfer']
    mu = central_body_mu(cfg)

    states = []
    for end in ('departure', 'arrival'):
        orbit = transfer[end]
        states.append(OrbitalMechanics.circular_state(
            float(orbit['radius_au']) * AU,
            float(orbit.get('azimuth_deg', 0.0)) * DEG2RAD,
            float(orbit.get('inclination_deg', 0.0)) * DEG2RAD,
            mu,
        ))
    return states[0], states[1]


def time_of_flight_seconds(cfg: Dict[str, Any]) -> float:
    return float(cfg['transfer']['time_of_flight_days']) * JULIAN_DAY


def interpolation_step_seconds(cfg: Dict[str, Any]) -> float:
    return float((cfg.get('interpolation') or {}).get('step_s', JULIAN_DAY))
