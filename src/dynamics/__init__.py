"""
===============================================================================
LOW-THRUST SHAPING - Dynamics Module
===============================================================================
Two-body dynamics used to check and propagate shaped transfers.

Submodules:
    orbital_mechanics -- Two-body acceleration, circular states, Hohmann transfer
    propagation       -- Numerical integration of a shaped thrust profile with mass
===============================================================================
"""
