"""
===============================================================================
LOW-THRUST SHAPING - Shaping Module
===============================================================================
Shape-based design of low-thrust transfers.

Submodules:
    composite_functions -- Basis terms and composite radial / elevation shapes
    boundary_conditions -- Azimuth-parametrized boundary states and the 10x10 solve
    quadrature          -- Gauss-Legendre time-of-flight and delta-V integration
    root_finding        -- Time-of-flight matching on the free coefficient
    time_angle_map      -- Monotone time <-> azimuth interpolation
    spherical_shaping   -- The spherical shaping problem and its queries
    exposins            -- Exponential-sinusoid (planar) shaping
    errors              -- Exception hierarchy
===============================================================================
"""
