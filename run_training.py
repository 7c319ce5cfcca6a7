#!/usr/bin/env python3
"""
Train the sequence forecaster on a CSV time series.

Loads the file, trains a fresh LSTM regressor, prints per-epoch losses and
the test-partition metrics, and writes the charts and a JSON result.

Usage:
    python run_training.py data/wti.csv --epochs 50 --output-dir results/
"""

import argparse
import json
import sys
from pathlib import Path

from sequence_forecaster import (
    ForecastingError,
    ConfigurationError,
    MatplotlibChartSink,
    StatusReporter,
    create_training_session
)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Train an LSTM next-value forecaster on a CSV file")
    parser.add_argument("csv", help="CSV file with a header row, a Date column and the target column")
    parser.add_argument("--config", default=None, help="YAML configuration file")
    parser.add_argument("--environment", default="development",
                        choices=["development", "testing", "production"])
    parser.add_argument("--epochs", type=int, default=None, help="Override configured epochs")
    parser.add_argument("--batch-size", type=int, default=None, help="Override configured batch size")
    parser.add_argument("--output-dir", default="results", help="Directory for charts and the JSON result")
    return parser.parse_args(argv)


def print_epoch(event):
    val_loss = "n/a" if event.validation_loss is None else f"{event.validation_loss:.6f}"
    print(f"  epoch {event.epoch + 1:4d}  loss {event.training_loss:.6f}  val_loss {val_loss}")


def print_status(status):
    print(f"[{status.level.value}] {status.message}")


def main(argv=None) -> bool:
    args = parse_args(argv)
    output_dir = Path(args.output_dir)

    try:
        session = create_training_session(
            args.config,
            args.environment,
            status=StatusReporter(listener=print_status)
        )
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return False

    if session.chart_sink is None:
        session.chart_sink = MatplotlibChartSink(
            output_dir,
            target_label=session.config.data.target_column,
            max_prediction_points=session.config.monitoring.chart_max_points
        )

    try:
        session.load_file(args.csv)
        result = session.train_sync(
            observer=print_epoch,
            epochs=args.epochs,
            batch_size=args.batch_size
        )
    except (ForecastingError, FileNotFoundError) as e:
        print(f"Training failed: {e}")
        return False
    finally:
        session.dispose()

    if result.summary is not None:
        print("\nTest partition metrics")
        print(f"  MSE:  {result.summary.mse:.6f}")
        print(f"  RMSE: {result.summary.rmse:.6f}")
        print(f"  MAE:  {result.summary.mae:.6f}")

    output_dir.mkdir(parents=True, exist_ok=True)
    results_file = output_dir / "training_result.json"
    with open(results_file, 'w') as f:
        json.dump(result.to_dict(), f, indent=2, default=str)

    print(f"\nResults saved to: {results_file}")
    return True


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
