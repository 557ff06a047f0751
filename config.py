import argparse
from pathlib import Path


def str2bool(v):
    """Proper bool parser for argparse."""
    if isinstance(v, bool):
        return v
    if v.lower() in ('yes', 'true', 't', 'y', '1'):
        return True
    elif v.lower() in ('no', 'false', 'f', 'n', '0'):
        return False
    else:
        raise argparse.ArgumentTypeError('Boolean value expected.')


def Config(argv=None):
    parser = argparse.ArgumentParser(
        description="Compose and integrate an example epidemic open system."
    )
    parser.add_argument(
        "--model",
        default='sir_undirected',
        type=str,
        choices=['sir_directed', 'sir_undirected', 'sir_vital', 'stages'],
        help="Library model to build.",
    )
    parser.add_argument(
        "--method",
        default='rk4',
        type=str,
        choices=['euler', 'rk4', 'dopri5', 'scipy', 'stochastic'],
        help="Step method used by the integrator.",
    )
    parser.add_argument(
        "--t_end",
        default=100.0,
        type=float,
        help="End of the integration span (starts at 0).",
    )
    parser.add_argument(
        "--dt",
        default=0.1,
        type=float,
        help="Output sampling interval.",
    )
    parser.add_argument(
        "--beta",
        default=0.0005,
        type=float,
        help="Mass-action transmission rate.",
    )
    parser.add_argument(
        "--gamma",
        default=0.25,
        type=float,
        help="Recovery rate.",
    )
    parser.add_argument(
        "--mu",
        default=0.01,
        type=float,
        help="Death/birth rate for the vital-dynamics box.",
    )
    parser.add_argument(
        "--n_stages",
        default=4,
        type=int,
        help="Number of serial infectious stages (stages model only).",
    )
    parser.add_argument(
        "--seed",
        default=None,
        type=int,
        help="Random seed for the stochastic step method.",
    )
    parser.add_argument(
        "--output_dir",
        default=Path("simulations"),
        type=Path,
        help="Directory for the trajectory CSV and metadata.",
    )
    parser.add_argument(
        "--visualize",
        default=False,
        type=str2bool,
        help="Save a plot of the trajectory next to the CSV.",
    )
    parser.add_argument(
        "--progress",
        default=False,
        type=str2bool,
        help="Show a progress bar while integrating.",
    )
    args = parser.parse_args(argv)
    return args
