"""
Command-line interface for inspecting a transformer configuration.

Usage:
    frame-transformer config.yaml [--from FRAME --to FRAME] [--time T] [-v]
"""

import argparse
import logging
import sys
from typing import List, Optional

import numpy as np

from .config import Configuration, TransformationNotFound
from .transformer import Transformer


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description='Inspect frames, transformations and transformation chains of a configuration',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
    # Summary of the configuration
    frame-transformer transforms.yaml

    # Chain between two frames
    frame-transformer transforms.yaml --from world --to laser

    # Verbose output
    frame-transformer transforms.yaml --from world --to laser -v
'''
    )

    parser.add_argument(
        'config',
        type=str,
        help='Path to YAML configuration file'
    )

    parser.add_argument(
        '--from',
        dest='from_frame',
        type=str,
        default=None,
        help='Source frame of the chain to resolve'
    )

    parser.add_argument(
        '--to',
        dest='to_frame',
        type=str,
        default=None,
        help='Target frame of the chain to resolve'
    )

    parser.add_argument(
        '--time', '-t',
        type=float,
        default=0.0,
        help='Time at which static chains are composed (default: 0)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args(argv)

    if (args.from_frame is None) != (args.to_frame is None):
        parser.error('--from and --to must be given together')

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        config = Configuration.from_yaml(args.config)
        print(config.describe())

        if args.from_frame is None:
            return 0

        plan = config.transformation_chain(args.from_frame, args.to_frame)
        print()
        print(plan.describe())

        if not plan.is_static():
            print(f"\nChain depends on producers: {', '.join(plan.producers())}")
            return 0

        transformer = Transformer.from_config(config)
        maker = transformer.register_transformation(args.from_frame, args.to_frame)
        result = maker.get(args.time)
        if result is None:
            logger.error(f"Could not compose {args.from_frame} -> {args.to_frame}")
            return 1

        with np.printoptions(precision=6, suppress=True):
            print(f"\nComposed transformation {args.from_frame} -> {args.to_frame}:")
            print(result.transform.as_matrix())
        return 0

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except TransformationNotFound as e:
        logger.error(f"Chain error: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
