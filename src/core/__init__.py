"""
===============================================================================
LOW-THRUST SHAPING - Core Module
===============================================================================
Shared building blocks used by every other package.

Submodules:
    constants  -- Physical constants, canonical units, gravitational parameters
    frames     -- Spherical, body-fixed, inertial and topocentric conversions
    config     -- YAML configuration loading, validation and settings builders
===============================================================================
"""
