"""
cli.py
~~~~~~

Command-line entry point: load a dataset, train a network, report accuracy
on the test split and optionally save the result.

Defaults come from ``TrainingConfig.from_env()``; flags override them.
"""

import argparse
import logging
import os
import sys
from dataclasses import replace
from typing import List, Optional, Sequence

from fixednet import idx_loader
from fixednet.config import TrainingConfig, parse_layer_sizes
from fixednet.model_persistence import save_network
from fixednet.network import Network, Sample

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """
    Set up logging from the environment.

    ``LOG_LEVEL`` picks the level (default INFO).
    """
    log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='fixednet-train',
        description='Train a sigmoid feedforward classifier on an IDX dataset.'
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument('--data-dir', help='directory with the IDX files')
    source.add_argument('--npz', help='.npz cache produced by convert_idx_to_npz.py')
    parser.add_argument('--layers', type=parse_layer_sizes,
                        help='comma separated layer sizes, e.g. 784,128,64,10')
    parser.add_argument('--learning-rate', type=float)
    parser.add_argument('--epochs', type=int)
    parser.add_argument('--seed', type=int, help='seed for weight initialization')
    parser.add_argument('--dtype', help='floating point element type')
    parser.add_argument('--save', metavar='NETWORK_ID',
                        help='store the trained network under this id')
    parser.add_argument('--model-dir', default='models',
                        help='directory of the network database (default: models)')
    return parser


def _config_from_args(args: argparse.Namespace) -> TrainingConfig:
    overrides = {
        'layer_sizes': args.layers,
        'learning_rate': args.learning_rate,
        'epochs': args.epochs,
        'seed': args.seed,
        'data_dir': args.data_dir,
        'dtype': args.dtype,
    }
    config = replace(
        TrainingConfig.from_env(),
        **{name: value for name, value in overrides.items() if value is not None}
    )
    return config.validate()


def _check_sample_widths(samples: Sequence[Sample], layer_sizes: Sequence[int]) -> Optional[str]:
    """Return a description of the first sample that does not fit the layers."""
    n_in, n_out = layer_sizes[0], layer_sizes[-1]
    for i, (x, y) in enumerate(samples):
        if x.shape != (n_in, 1):
            return (
                f"input layer has {n_in} units but sample {i} has shape "
                f"{x.rows}x{x.cols}"
            )
        if y.shape != (n_out, 1):
            return (
                f"output layer has {n_out} units but label {i} has shape "
                f"{y.rows}x{y.cols}"
            )
    return None


def main(argv: Optional[List[str]] = None) -> int:
    """Run a training job; returns the process exit status."""
    configure_logging()
    args = build_parser().parse_args(argv)

    try:
        config = _config_from_args(args)
        if args.npz:
            training_data, test_data = idx_loader.load_npz(
                args.npz, config.num_classes, dtype=config.dtype
            )
        else:
            training_data, test_data = idx_loader.load_dataset(
                config.data_dir, config.num_classes, dtype=config.dtype
            )
    except (ValueError, OSError) as e:
        logger.error(f"Cannot start training: {e}")
        return 1

    print(f"Loaded Dataset: {len(test_data)} {len(training_data)}")

    for split, samples in (('training', training_data), ('test', test_data)):
        problem = _check_sample_widths(samples, config.layer_sizes)
        if problem:
            logger.error(f"Cannot train on the {split} split: {problem}")
            return 1

    net = Network(config.layer_sizes, seed=config.seed, dtype=config.dtype)

    def report_epoch(data):
        print(f"epoch: {data['epoch'] - 1}\t{data['errors']}")

    net.SGD(training_data, config.epochs, config.learning_rate, callback=report_epoch)

    evaluation = net.evaluate(test_data)
    print(
        f"Final accuracy: {evaluation.correct} correct, "
        f"{evaluation.incorrect} incorrect, {evaluation.percentage:.2f}%"
    )

    if args.save:
        accuracy = evaluation.correct / evaluation.total if evaluation.total else None
        if not save_network(
            net,
            args.save,
            model_dir=args.model_dir,
            epochs=config.epochs,
            learning_rate=config.learning_rate,
            accuracy=accuracy
        ):
            return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
