"""
===============================================================================
LOW-THRUST SHAPING - Transfer Visualization
===============================================================================

Plots for a converged shaped transfer:

  1. Trajectory in the reference plane (and 3D when out of plane)
  2. Thrust-acceleration profile versus time
  3. Propagated-versus-shaped position difference and mass history

All plots are written to files with the non-interactive Agg backend.

===============================================================================
"""

import logging
import os
from typing import List, Optional

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from core.constants import AU

logger = logging.getLogger(__name__)

plt.rcParams.update({
    'font.size': 11,
    'axes.labelsize': 12,
    'axes.titlesize': 14,
    'legend.fontsize': 10,
    'figure.dpi': 150,
    'lines.linewidth': 1.5,
    'axes.grid': True,
    'grid.alpha': 0.3,
    'axes.spines.top': False,
    'axes.spines.right': False,
})

COLORS = {
    'sun': '#f1c40f',
    'trajectory': '#2c3e50',
    'departure': '#3498db',
    'arrival': '#e67e22',
    'thrust': '#e74c3c',
    'propagated': '#27ae60',
    'mass': '#9b59b6',
}


def _save(fig, output_path: str) -> str:
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    fig.tight_layout()
    fig.savefig(output_path, dpi=150, bbox_inches='tight',
                facecolor='white', edgecolor='none')
    plt.close(fig)
    logger.info("Saved plot: %s", output_path)
    return output_path


def plot_transfer_trajectory(trajectory: pd.DataFrame, output_path: str,
                             title: str = 'Shaped Low-Thrust Transfer') -> str:
    """
    Plot the transfer projected on the reference plane, plus a 3D view when
    the trajectory leaves the plane.

    Args:
        trajectory: Table from ShapingProblem.to_dataframe().
        output_path: PNG file to write.
    """
    x = trajectory['x_m'].to_numpy() / AU
    y = trajectory['y_m'].to_numpy() / AU
    z = trajectory['z_m'].to_numpy() / AU
    out_of_plane = np.max(np.abs(z)) > 1e-9

    fig = plt.figure(figsize=(14, 7) if out_of_plane else (8, 8))
    ax = fig.add_subplot(1, 2 if out_of_plane else 1, 1)

    ax.plot(x, y, color=COLORS['trajectory'], label='Shaped trajectory')
    ax.plot(x[0], y[0], 'o', color=COLORS['departure'], label='Departure')
    ax.plot(x[-1], y[-1], 's', color=COLORS['arrival'], label='Arrival')
    ax.plot(0.0, 0.0, '*', color=COLORS['sun'], markersize=14, label='Central body')
    ax.set_xlabel('X (AU)')
    ax.set_ylabel('Y (AU)')
    ax.set_aspect('equal', adjustable='datalim')
    ax.set_title(title)
    ax.legend(loc='upper right')

    if out_of_plane:
        ax3d = fig.add_subplot(1, 2, 2, projection='3d')
        ax3d.plot(x, y, z, color=COLORS['trajectory'])
        ax3d.scatter([x[0]], [y[0]], [z[0]], color=COLORS['departure'])
        ax3d.scatter([x[-1]], [y[-1]], [z[-1]], color=COLORS['arrival'])
        ax3d.set_xlabel('X (AU)')
        ax3d.set_ylabel('Y (AU)')
        ax3d.set_zlabel('Z (AU)')

    return _save(fig, output_path)


def plot_thrust_profile(trajectory: pd.DataFrame, output_path: str) -> str:
    """Thrust-acceleration magnitude and components versus time."""
    days = trajectory['time_days'].to_numpy()

    fig, (ax_mag, ax_comp) = plt.subplots(2, 1, figsize=(10, 8), sharex=True)

    ax_mag.plot(days, trajectory['thrust_magnitude_mps2'] * 1e3, color=COLORS['thrust'])
    ax_mag.set_ylabel('|a_thrust| (mm/s²)')
    ax_mag.set_title('Required Thrust Acceleration')

    for column, label in (('thrust_x_mps2', 'x'), ('thrust_y_mps2', 'y'),
                          ('thrust_z_mps2', 'z')):
        ax_comp.plot(days, trajectory[column] * 1e3, label=label)
    ax_comp.set_xlabel('Time since departure (days)')
    ax_comp.set_ylabel('Component (mm/s²)')
    ax_comp.legend()

    return _save(fig, output_path)


def plot_propagation_comparison(propagation: pd.DataFrame, output_path: str) -> str:
    """Position difference between propagated and shaped states (and mass)."""
    has_mass = 'mass_kg' in propagation.columns
    fig, axes = plt.subplots(2 if has_mass else 1, 1, figsize=(10, 8 if has_mass else 5),
                             sharex=True, squeeze=False)
    days = propagation['time_days'].to_numpy()

    axes[0, 0].semilogy(days, np.maximum(propagation['position_error_m'].to_numpy(), 1e-3),
                        color=COLORS['propagated'])
    axes[0, 0].set_ylabel('|r_prop - r_shaped| (m)')
    axes[0, 0].set_title('Full Propagation versus Shaped Trajectory')

    if has_mass:
        axes[1, 0].plot(days, propagation['mass_kg'], color=COLORS['mass'])
        axes[1, 0].set_ylabel('Mass (kg)')
    axes[-1, 0].set_xlabel('Time since departure (days)')

    return _save(fig, output_path)


def generate_all_plots(trajectory: pd.DataFrame, output_dir: str,
                       propagation: Optional[pd.DataFrame] = None) -> List[str]:
    """Write every available plot to *output_dir*; returns the file paths."""
    os.makedirs(output_dir, exist_ok=True)
    paths = [
        plot_transfer_trajectory(trajectory, os.path.join(output_dir, 'transfer_trajectory.png')),
        plot_thrust_profile(trajectory, os.path.join(output_dir, 'thrust_profile.png')),
    ]
    if propagation is not None:
        paths.append(plot_propagation_comparison(
            propagation, os.path.join(output_dir, 'propagation_comparison.png')))
    return paths
