from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import numba

from ._distance import iter_distance_rows
from ._exceptions import EmptyTreeError, NewickParseError
from ._output import atomic_output, write_tsv
from ._tree import Tree

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="distree",
        description="Extract a pairwise leaf-distance matrix from a phylogeny.",
    )
    parser.add_argument("phylogeny", help="Path to the tree file in Newick format")
    parser.add_argument(
        "--format",
        choices=["newick"],
        default="newick",
        help="Tree file format (only 'newick' is supported)",
    )
    parser.add_argument(
        "--midpoint",
        action="store_true",
        help="Midpoint-root the tree before computing distances",
    )
    metric = parser.add_mutually_exclusive_group()
    metric.add_argument(
        "--lmm",
        action="store_true",
        help="Produce the var-covar matrix C (depth of the MRCA in branch lengths)",
    )
    metric.add_argument(
        "--topology",
        action="store_true",
        help="Ignore branch lengths; use purely topological distances",
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        metavar="FILE",
        help="Path to write the TSV output file (defaults to stdout)",
    )
    parser.add_argument(
        "--backend",
        choices=["best", "python", "cpu-parallel"],
        default="best",
        help="Row computation backend",
    )
    parser.add_argument(
        "--threads",
        type=int,
        default=None,
        help="Number of numba worker threads for the cpu-parallel backend",
    )
    parser.add_argument(
        "--print-tree",
        action="store_true",
        help="Write the (optionally midpoint-rooted) tree as Newick instead of the matrix",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v", "--verbose", action="count", default=0, help="-v for INFO, -vv for DEBUG"
    )
    verbosity.add_argument(
        "-q", "--quiet", action="store_true", help="Only report errors"
    )
    return parser


def configure_logging(verbose: int, quiet: bool) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _metric_from_args(args: argparse.Namespace) -> str:
    if args.lmm:
        return "lmm"
    if args.topology:
        return "topological"
    return "patristic"


def _set_threads(threads: int | None) -> None:
    if threads is None:
        return
    if threads < 1:
        raise ValueError("--threads must be a positive integer")
    numba.set_num_threads(min(threads, numba.config.NUMBA_NUM_THREADS))


def run(args: argparse.Namespace) -> int:
    try:
        text = Path(args.phylogeny).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Cannot read tree file %s: %s", args.phylogeny, e)
        return 1

    try:
        _set_threads(args.threads)
        tree = Tree(text)
        if args.print_tree:
            if args.midpoint:
                tree.midpoint_root()
            payload = tree.to_newick() + "\n"
            if args.output is None:
                sys.stdout.write(payload)
            else:
                with atomic_output(args.output) as handle:
                    handle.write(payload)
            return 0

        labels, rows = iter_distance_rows(
            tree,
            metric=_metric_from_args(args),
            midpoint=args.midpoint,
            backend=args.backend,
        )
    except NewickParseError as e:
        logger.error("Failed to parse Newick tree: %s", e)
        return 1
    except EmptyTreeError as e:
        logger.error("%s Exiting.", e)
        return 1
    except ValueError as e:
        logger.error("%s", e)
        return 1

    try:
        if args.output is None:
            n_rows = write_tsv(sys.stdout, labels, rows)
            sys.stdout.flush()
        else:
            with atomic_output(args.output) as handle:
                n_rows = write_tsv(handle, labels, rows)
    except OSError as e:
        logger.error("Failed to write output: %s", e)
        return 1

    logger.info("Wrote %d rows", n_rows)
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.quiet)
    raise SystemExit(run(args))


if __name__ == "__main__":
    main()
