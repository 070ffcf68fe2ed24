#!/usr/bin/env python3
"""Sample workbook generator.

Writes a synthetic sales workbook that exercises every chart type:

- "Sales" sheet: Region / Month / Product / Sales / Units / Margin
  (categorical and point-cloud charts)
- "Targets" sheet: Region / Quarter / Target (column catalog union)

Usage:
  %(prog)s data/sales.xlsx --rows 150 --seed 7
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

REGIONS = ["North", "South", "East", "West", "Central"]
PRODUCTS = ["Widget", "Gadget", "Gizmo", "Doohickey"]
MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def generate_sales(rows: int, seed: int = 42, blank_ratio: float = 0.0) -> pd.DataFrame:
    """Sales rows; `blank_ratio` of the Sales cells are left empty."""
    rng = np.random.default_rng(seed)
    units = rng.integers(1, 500, rows)
    sales = np.round(units * rng.uniform(8.0, 25.0, rows), 2)
    data: dict[str, list[Any]] = {
        "Region": rng.choice(REGIONS, rows).tolist(),
        "Month": [MONTHS[i % len(MONTHS)] for i in range(rows)],
        "Product": rng.choice(PRODUCTS, rows).tolist(),
        "Sales": sales.tolist(),
        "Units": units.tolist(),
        "Margin": np.round(rng.uniform(0.05, 0.45, rows), 3).tolist(),
    }
    if blank_ratio > 0:
        for i in np.flatnonzero(rng.random(rows) < blank_ratio):
            data["Sales"][i] = None
    return pd.DataFrame(data)


def generate_targets(seed: int = 42) -> pd.DataFrame:
    rng = np.random.default_rng(seed + 1)
    rows = [
        {"Region": region, "Quarter": f"Q{q}", "Target": int(rng.integers(10_000, 50_000))}
        for region in REGIONS
        for q in range(1, 5)
    ]
    return pd.DataFrame(rows)


def create_workbook(output_path: Path, rows: int, seed: int = 42, blank_ratio: float = 0.0) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        generate_sales(rows, seed, blank_ratio).to_excel(writer, sheet_name="Sales", index=False)
        generate_targets(seed).to_excel(writer, sheet_name="Targets", index=False)
    print(f"Created workbook: {output_path}")
    print(f"  Sheets: Sales ({rows} rows), Targets ({len(REGIONS) * 4} rows)")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a sample sales workbook for chart experiments",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("output", type=Path, help="Output .xlsx path")
    parser.add_argument("--rows", type=int, default=150, help="Sales rows (default: 150)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument(
        "--blank-ratio",
        type=float,
        default=0.0,
        help="Share of Sales cells left empty (default: 0)",
    )
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    if not 0.0 <= args.blank_ratio < 1.0:
        print("Error: --blank-ratio must be in [0, 1)", file=sys.stderr)
        return 1

    create_workbook(args.output, args.rows, args.seed, args.blank_ratio)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
