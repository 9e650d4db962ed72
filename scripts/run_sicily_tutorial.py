"""Run the Sicily smoking ban analysis from data to figures.

Examples
--------
Run on the bundled data and show the figures:

    python scripts/run_sicily_tutorial.py --show

Run on a local copy of the data and save the figures:

    python scripts/run_sicily_tutorial.py --data sicily.csv --output-dir figures

"""

import argparse
import logging
from pathlib import Path

import matplotlib.pyplot as plt

import phits as ph


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Poisson interrupted time series analysis of the Sicily "
        "smoking ban data.",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=None,
        help=(
            "CSV file with the Sicily schema. Defaults to the bundled dataset. "
            "The slope change term is centred on its first post-ban month."
        ),
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory to save the figures to.",
    )
    parser.add_argument("--show", action="store_true", help="Show the figures.")
    parser.add_argument("--verbose", action="store_true", help="Debug logging.")
    return parser.parse_args()


def make_figures(data, result) -> dict:
    """All figures of the analysis, by file name."""
    models = result.models
    figures = {}
    figures["rates_pre"], _ = ph.plot_rates(
        data, pre_only=True, title="Sicily, 2002-2006"
    )
    figures["rates"], _ = ph.plot_rates(data, title="Sicily, 2002-2006")
    figures["model1_counterfactual"], _ = models["model1"].plot(
        lines=("factual", "counterfactual"), title="Sicily, 2002-2006"
    )
    figures["model2_residuals"], _ = models["model2"].plot_residuals(ylim=(-5, 10))
    figures["model2_acf"], _ = models["model2"].plot_diagnostics()
    figures["model3_residuals"], _ = models["model3"].plot_residuals(ylim=(-5, 10))
    figures["model3_acf"], _ = models["model3"].plot_diagnostics()
    figures["model3_deseasonalised"], _ = models["model3"].plot(
        lines=("factual", "deseasonalised"),
        ylim=(120, 300),
        title="Sicily, 2002-2006",
    )
    figures["model3_vs_model4"], _ = ph.plot_trend_comparison(
        {
            "Step-change only": models["model3"],
            "Step-change + change-in-slope": models["model4"],
        },
        ylim=(120, 300),
        title="Sicily, 2002-2006",
    )
    return figures


def main() -> int:
    args = parse_args()
    setup_logging(args.verbose)

    data = ph.load_data("sicily") if args.data is None else ph.read_its_csv(args.data)
    start = int(data.loc[data["smokban"] == 1, "time"].min())
    steps = ph.sicily_tutorial_steps(intervention_start=start)
    result = ph.Pipeline(data=data, steps=steps).run()

    print(result.described)
    for model in result.models.values():
        model.summary(round_to=4)
    print(result.effect_table())
    for (restricted, full), comparison in result.comparisons.items():
        print(f"{restricted} vs {full}: {comparison}")

    figures = make_figures(data, result)
    if args.output_dir is not None:
        args.output_dir.mkdir(parents=True, exist_ok=True)
        for name, fig in figures.items():
            path = args.output_dir / f"{name}.png"
            fig.savefig(path, dpi=150, bbox_inches="tight")
            logging.info("Saved %s", path)
    if args.show:
        plt.show()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
