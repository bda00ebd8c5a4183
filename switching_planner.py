"""Switching Sequence Planner

Loads a grid from its text files, derives the target switch configuration
that isolates the requested equipment, and searches for an operating
sequence that reaches it. Each candidate step is checked by steady-state
power flow and by a switching-transient simulation.

In ``evaluate`` mode the outage deltas are tried as the only candidate moves,
which checks whether the direct sequence is acceptable.
"""

import argparse
import logging
import sys

from grid_topology import load_network, GridFileError
from grid_topology.network import hamming_distance
from grid_topology.outage import GenerateOutageError, generate_outage, operable_deltas
from powerflow.steady_state import SteadyStateConfig, SteadyStateSolver
from switch_search.astar import (
    AStarSearch,
    EvaluateSequence,
    GenerateMoves,
    SearchConfig,
)
from switch_search.evaluators import SteadyStateEvaluator, TransientEvaluator
from switch_search.scanners import (
    DisconnectorUnderLoadScanner,
    TransientOvervoltageScanner,
    UnservedLoadScanner,
    VoltageLimitScanner,
)
from transient.integrators import IntegratorConfig
from transient.rlc_model import RLCParameters
from transient.transient_solver import (
    IntegrationMethod,
    TransientConfig,
    TransientError,
    TransientSimulator,
)


def build_parser():
    parser = argparse.ArgumentParser(
        description="Switching sequence planning for equipment outages",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # Grid and outage
    parser.add_argument("--grid", type=str, required=True,
                        help="Directory with Buses.txt, Gens.txt, Switches.txt, Circuits.txt")
    parser.add_argument("--outage", type=str, nargs="+", required=True,
                        help="Names of the equipment to isolate (e.g. Cir1 CB3)")
    parser.add_argument("--base-mva", type=float, default=100.0,
                        help="System base for per-unit conversion")
    parser.add_argument("--mode", choices=["generate", "evaluate"], default="generate",
                        help="Search all switch flips or only the direct outage deltas")

    # Search
    parser.add_argument("--heuristic-scale", type=float, default=10.0,
                        help="Weight of each differing switch in the heuristic")
    parser.add_argument("--max-iterations", type=int, default=None,
                        help="Iteration budget (unlimited if omitted)")
    parser.add_argument("--time-limit", type=float, default=None,
                        help="Wall-clock budget in seconds (unlimited if omitted)")
    parser.add_argument("--no-prune", action="store_true",
                        help="Regenerate repeated transitions (penalty-free cycles may expand indefinitely)")

    # Steady state
    parser.add_argument("--pf-tolerance", type=float, default=1e-4,
                        help="Power flow convergence tolerance")
    parser.add_argument("--v-min", type=float, default=0.9,
                        help="Lower steady-state voltage limit (pu)")
    parser.add_argument("--v-max", type=float, default=1.1,
                        help="Upper steady-state voltage limit (pu)")

    # Transient
    parser.add_argument("--method", choices=[m.value for m in IntegrationMethod],
                        default=IntegrationMethod.DOP853.value,
                        help="Transient integration method")
    parser.add_argument("--rtol", type=float, default=0.01, help="Integrator relative tolerance")
    parser.add_argument("--atol", type=float, default=0.01, help="Integrator absolute tolerance")
    parser.add_argument("--max-steps", type=int, default=100000,
                        help="Integrator step budget per segment")
    parser.add_argument("--switch-resistance", type=float, default=0.001,
                        help="Contact resistance of a closed switch (pu)")
    parser.add_argument("--bus-capacitance", type=float, default=0.0,
                        help="Extra shunt capacitance at every bus (pu)")
    parser.add_argument("--overvoltage-limit", type=float, default=None,
                        help="Penalize transient peaks above this voltage (off if omitted)")
    parser.add_argument("--plot-transient", type=str, default=None,
                        help="Save the transient of the first step of the sequence to this file")

    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level")
    return parser


def build_search(network, outage, args):
    """Map command-line options onto the search, solver and scanner settings."""
    solver = SteadyStateSolver(SteadyStateConfig(tolerance=args.pf_tolerance))
    steady = SteadyStateEvaluator(solver=solver, scanners=[
        DisconnectorUnderLoadScanner(),
        VoltageLimitScanner(v_min=args.v_min, v_max=args.v_max),
        UnservedLoadScanner(),
    ])

    transient_config = TransientConfig(
        method=IntegrationMethod(args.method),
        integrator=IntegratorConfig(rtol=args.rtol, atol=args.atol, max_steps=args.max_steps),
        rlc=RLCParameters(switch_resistance=args.switch_resistance,
                          bus_capacitance=args.bus_capacitance),
    )
    scanners = None
    if args.overvoltage_limit is not None:
        scanners = [TransientOvervoltageScanner(limit=args.overvoltage_limit)]
    transient = TransientEvaluator(TransientSimulator(transient_config), scanners=scanners)

    if args.mode == "evaluate":
        policy = EvaluateSequence(operable_deltas(network, outage))
    else:
        policy = GenerateMoves(prune_revisits=not args.no_prune)

    config = SearchConfig(
        heuristic_scale=args.heuristic_scale,
        max_iterations=args.max_iterations,
        time_limit=args.time_limit,
    )
    search = AStarSearch(network, outage.target_state, policy=policy,
                         steady_state=steady, transient=transient, config=config)
    return search, transient_config


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s %(name)s %(levelname)s: %(message)s")

    print("=" * 80)
    print("Switching Sequence Planner")
    print("=" * 80)

    # Step 1: Load grid
    print(f"\n[1] Loading grid from {args.grid}...")
    try:
        network = load_network(args.grid, base_mva=args.base_mva)
    except GridFileError as e:
        print(f"  Error: {e}")
        return 2
    print(f"  {network}")
    print(f"  Switches: {len(network.switch_edges())}")

    # Step 2: Outage target
    print(f"\n[2] Generating outage target for {', '.join(args.outage)}...")
    try:
        outage = generate_outage(network, args.outage)
    except GenerateOutageError as e:
        print(f"  Error: {e}")
        return 2
    print(f"  Outage region: {sum(outage.in_outage)} buses, "
          f"{len(outage.boundary_edges)} boundary edges")
    print(f"  Target differs from start in {len(outage.deltas)} switches:")
    for label in outage.describe(network):
        print(f"    {label}")

    # Step 3: Search
    print(f"\n[3] Searching ({args.mode} mode, {args.method})...")
    search, transient_config = build_search(network, outage, args)
    result = search.run()
    stats = result.statistics

    print(f"\n  Status: {result.status.value}")
    print(f"  Iterations:         {stats.iterations}")
    print(f"  Nodes created:      {stats.nodes_created} ({stats.nodes_expanded} expanded)")
    print(f"  Steady-state evals: {stats.steady_state_evaluations} "
          f"({stats.steady_state_failures} failed, {stats.steady_state_time:.3f} s)")
    print(f"  Transient evals:    {stats.transient_evaluations} "
          f"({stats.transient_failures} failed, {stats.transient_time:.3f} s)")
    print(f"  Wall time:          {stats.wall_time:.3f} s")

    if not result.success:
        print("\n  No acceptable sequence found.")
        return 1

    # Step 4: Report sequence
    node = result.accepted_node
    print(f"\n[4] Operating sequence ({len(result.sequence)} steps, "
          f"penalty {node.penalty:g}):")
    for i, label in enumerate(result.describe(network), 1):
        print(f"  {i:>3}. {label}")
    for c in node.contributions:
        print(f"       {c.kind.value}: {c.reason} (+{c.amount:g})")
    final = network.actual_state(result.sequence)
    print(f"  Remaining distance to target: {hamming_distance(outage.target_state, final)}")

    # Step 5: Optional waveform of the first step
    if args.plot_transient and result.sequence:
        print("\n[5] Plotting first switching transient...")
        from transient.plotter import TransientPlotter
        import matplotlib.pyplot as plt

        delta = result.sequence[0]
        try:
            transient = TransientSimulator(transient_config).simulate(
                network, list(network.start_state), delta)
        except TransientError as e:
            print(f"  Skipped: {e}")
        else:
            if transient is None:
                print(f"  Skipped: no transient for {network.delta_label(delta)}")
            else:
                fig, _ = TransientPlotter.plot_bus_voltages(
                    transient, network, save_path=args.plot_transient)
                plt.close(fig)
                print(f"  Saved: {args.plot_transient}")

    print("\n" + "=" * 80)
    print("Switching Sequence Planner Complete!")
    print("=" * 80)
    return 0


if __name__ == "__main__":
    sys.exit(main())
