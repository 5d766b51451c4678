"""CLI entry point for posetmsa."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from posetmsa.energy import EnergyModel
from posetmsa.io import format_fasta, merge_fasta_chunks, read_fasta, write_fasta
from posetmsa.msa import DEFAULT_GAP_GAMMA, DEFAULT_MAX_PAIRS_TO_CONSIDER, align_sequences
from posetmsa.pairwise import PairwiseAlignmentParameters

LOGGER = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    """INFO logging when *verbose*, WARNING otherwise."""
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", force=True)


def _add_alignment_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("fasta", help="Input FASTA file")
    p.add_argument("--threshold", type=float, default=0.0,
                   help="Minimum posterior of an aligned pair")
    p.add_argument("--gap-gamma", type=float, default=DEFAULT_GAP_GAMMA)
    p.add_argument("--spanning-trees", type=int, default=None,
                   help="Sample pairs with this many spanning trees (default: all pairs)")
    p.add_argument("--max-pairs", type=int, default=DEFAULT_MAX_PAIRS_TO_CONSIDER,
                   help="Cap on pair observations for the distance matrix")
    p.add_argument("--seed", type=int, default=0)
    p.add_argument("--threads", type=int, default=None)
    p.add_argument("--bandwidth", type=int, default=100)
    p.add_argument("--temperature", type=float, default=1.0)
    p.add_argument("--match-energy", type=float, default=-2.0)
    p.add_argument("--mismatch-energy", type=float, default=3.0)
    p.add_argument("--gap-open", type=float, default=5.0)
    p.add_argument("--gap-extend", type=float, default=1.0)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="posetmsa",
        description="posetmsa: multiple sequence alignment from pairwise posteriors",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command")

    align_p = sub.add_parser("align", help="Align the sequences of a FASTA file")
    _add_alignment_options(align_p)
    align_p.add_argument("--output", "-o", help="Output FASTA (default: stdout)")
    align_p.add_argument("--line-width", type=int, default=80)

    dist_p = sub.add_parser("distances", help="Substitutions per site between sequences")
    _add_alignment_options(dist_p)
    dist_p.add_argument("--json", action="store_true", help="Output as JSON")

    viz_p = sub.add_parser("viz", help="Write a distance heatmap as HTML")
    _add_alignment_options(viz_p)
    viz_p.add_argument("--output", "-o", required=True, help="Output HTML file")

    merge_p = sub.add_parser("merge-chunks", help="Merge FASTA chunks into whole sequences")
    merge_p.add_argument("paths", nargs="*", help="OUTPUT followed by the chunk files")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "merge-chunks":
        _cmd_merge_chunks(args)
        return

    try:
        if args.command == "align":
            _cmd_align(args)
        elif args.command == "distances":
            _cmd_distances(args)
        elif args.command == "viz":
            _cmd_viz(args)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _run(args):
    records = list(read_fasta(args.fasta))
    names = [name for name, _ in records]
    em = EnergyModel(
        match_energy=args.match_energy,
        mismatch_energy=args.mismatch_energy,
        gap_open_energy=args.gap_open,
        gap_extend_energy=args.gap_extend,
    )
    with PairwiseAlignmentParameters(
        energy_model=em,
        bandwidth=args.bandwidth,
        temperature=args.temperature,
        threads=args.threads,
    ) as params:
        result = align_sequences(
            [seq for _, seq in records],
            params,
            threshold=args.threshold,
            gap_gamma=args.gap_gamma,
            spanning_tree_count=args.spanning_trees,
            max_pairs_to_consider=args.max_pairs,
            seed=args.seed,
        )
    LOGGER.info("Aligned %d sequences into %d columns", len(names), len(result.columns))
    return names, result


def _cmd_align(args) -> None:
    names, result = _run(args)
    records = list(zip(names, result.rows))
    if args.output:
        write_fasta(args.output, records, line_width=args.line_width)
    else:
        for name, row in records:
            sys.stdout.write(format_fasta(name, row, args.line_width))


def _cmd_distances(args) -> None:
    names, result = _run(args)
    subs = result.distances.to_array()
    if args.json:
        print(json.dumps({"names": names, "subs_per_site": subs.tolist()}, indent=2))
        return
    print("\t" + "\t".join(names))
    for i, name in enumerate(names):
        print(name + "\t" + "\t".join(f"{subs[i, j]:.4f}" for j in range(len(names))))


def _cmd_viz(args) -> None:
    try:
        from posetmsa.viz.heatmap import create_distance_heatmap
    except ImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Install visualization dependencies with: pip install posetmsa[viz]", file=sys.stderr)
        sys.exit(1)
    names, result = _run(args)
    try:
        fig = create_distance_heatmap(result.distances, names)
    except ImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Install visualization dependencies with: pip install posetmsa[viz]", file=sys.stderr)
        sys.exit(1)
    fig.write_html(args.output)
    print(f"Heatmap saved to: {args.output}")


def _cmd_merge_chunks(args) -> None:
    if len(args.paths) < 1:
        print("USAGE: posetmsa merge-chunks <output> <input>xN", file=sys.stderr)
        sys.exit(-1)
    output, chunks = args.paths[0], args.paths[1:]
    try:
        with open(output, "w"):
            pass
    except OSError:
        print(f"ERROR: cannot open {output} for writing", file=sys.stderr)
        sys.exit(-1)
    try:
        merge_fasta_chunks([Path(c) for c in chunks], output)
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
