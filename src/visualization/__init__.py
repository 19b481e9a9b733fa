"""
===============================================================================
LOW-THRUST SHAPING - Visualization Module
===============================================================================
Matplotlib plots of shaped transfers, written with the Agg backend.

Modules:
    trajectory_plots -- Trajectory, thrust profile and propagation comparison
===============================================================================
"""
