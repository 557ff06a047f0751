"""Command-line runner
===================

Builds one of the library models, integrates it and writes the trajectory
(CSV), a metadata ledger (JSON) and optionally a plot.

    epiwire-simulate --model stages --method dopri5 --t_end 60 --visualize true
"""
from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Dict

from config import Config

from .errors import EpiwireError
from .integrate import get_step_method, integrate
from .models import build_model
from .systems import initial_state


def model_params(args: argparse.Namespace) -> Dict[str, float]:
    params = {"beta": args.beta, "gamma": args.gamma, "mu": args.mu}
    if args.model == "stages":
        params["n_stages"] = args.n_stages
        params["delta"] = args.n_stages * args.gamma
    return params


def run(args: argparse.Namespace) -> Dict:
    """Build, integrate and save one model run. Returns the metadata record."""
    kwargs = {"n_stages": args.n_stages} if args.model == "stages" else {}
    system, initial = build_model(args.model, **kwargs)
    params = model_params(args)
    method_kwargs = {"seed": args.seed} if args.method == "stochastic" else {}
    stepper = get_step_method(args.method, **method_kwargs)

    u0 = initial_state(system, initial)
    trajectory = integrate(
        system, u0, (0.0, args.t_end), params,
        step_method=stepper, dt=args.dt, progress=args.progress,
    )

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    stem = f"{args.model}_{args.method}"
    csv_path = trajectory.to_csv(output_dir / f"{stem}.csv")
    print(f"✓ Trajectory saved to: {csv_path}")

    totals = trajectory.totals()
    record = {
        "model": args.model,
        "system": system.name,
        "state_dim": system.state_dim,
        "labels": list(system.labels),
        "method": repr(stepper),
        "params": params,
        "t_span": [0.0, args.t_end],
        "dt": args.dt,
        "num_samples": len(trajectory),
        "csv_path": str(csv_path),
        "initial_total": float(totals[0]),
        "final_total": float(totals[-1]),
        "final_state": dict(zip(system.labels, map(float, trajectory.final_state))),
    }

    if args.visualize:
        from .visualize import plot_trajectory
        plot_path = output_dir / f"{stem}.png"
        plot_trajectory(trajectory, title=f"{args.model} ({stepper.name})", save_path=plot_path)
        record["plot_path"] = str(plot_path)
        print(f"✓ Visualization saved to: {plot_path}")

    metadata_path = output_dir / f"{stem}_metadata.json"
    with metadata_path.open("w") as f:
        json.dump(record, f, indent=2)
    print(f"✓ Metadata saved to: {metadata_path}")
    return record


def main(argv=None) -> None:
    args = Config(argv)
    try:
        record = run(args)
    except EpiwireError as e:
        print(f"Failed to simulate {args.model}: {type(e).__name__}: {e}")
        raise SystemExit(1)

    print("\nSummary:")
    print(f"  System: {record['system']} ({record['state_dim']} states)")
    print(f"  Samples: {record['num_samples']}")
    print(f"  Total population: {record['initial_total']:.2f} -> {record['final_total']:.2f}")


if __name__ == "__main__":
    main()
