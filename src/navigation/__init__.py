"""
===============================================================================
LOW-THRUST SHAPING - Navigation Module
===============================================================================
Tracking geometry for shaped transfers.

Modules:
    ground_station -- Station states, pointing angles and visibility checks
===============================================================================
"""
