"""Plotting utilities for switching transients."""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

from grid_topology.network import PowerNetwork

from .transient_solver import TransientResult

# Use non-interactive backend by default
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib.axes import Axes
from matplotlib.figure import Figure


class TransientPlotter:
    """Time series plots of TransientResult waveforms.

    Example:
        result = simulate_switching(network, states, delta)
        TransientPlotter.plot_bus_voltages(result, network, save_path='sw.png')
    """

    @staticmethod
    def plot_bus_voltages(
        result: TransientResult,
        network: PowerNetwork,
        buses: Optional[Sequence[int]] = None,
        ax: Optional[Axes] = None,
        title: Optional[str] = None,
        show: bool = False,
        save_path: Optional[str] = None,
        time_scale: float = 1000.0,
        time_label: str = "ms",
    ) -> Tuple[Figure, Axes]:
        """Plot voltage traces of original buses with the switching instant marked.

        Args:
            result: Transient result
            network: Network the result was computed on (for bus labels)
            buses: Original bus indices to plot (default: one per reduced bus)
            ax: Matplotlib axes (created if None)
            title: Plot title (default names the switching operation)
            show: Whether to display the plot
            save_path: Path to save figure (None = don't save)
            time_scale: Scale applied to the time axis (default s -> ms)
            time_label: Unit label for the time axis

        Returns:
            (fig, ax) tuple
        """
        if ax is None:
            fig, ax = plt.subplots(figsize=(10, 5))
        else:
            fig = ax.get_figure()

        if buses is None:
            buses = [group[0] for group in result.reduced.mapping.to_supergraph_nodes]

        t = result.t * time_scale
        for bus in buses:
            trace = result.bus_voltage(bus)
            if trace is None:
                continue
            ax.plot(t, trace, linewidth=1.0, label=f"bus {network.bus(bus).number}")

        ax.axvline(result.switch_time * time_scale, color='k', linestyle='--',
                   linewidth=0.8, label='switching')
        ax.set_xlabel(f"Time ({time_label})")
        ax.set_ylabel("Voltage (pu)")
        ax.set_title(title or f"Transient: {network.delta_label(result.delta)}")
        ax.grid(True, alpha=0.3)
        ax.legend(loc='upper right', fontsize='small')
        fig.tight_layout()

        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches='tight')
        if show:
            plt.show()

        return fig, ax
