import argparse
import sys

from .errors import MonomerpyError
from .monomers import find_monomers
from .motifs import filter_motifs
from .regions import find_regions

DEFAULT_SIZES = [170, 340, 42]


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        # Tag assembly regions with monomers from alignments to srf motifs
        if args.cmd == "monomers":
            return find_monomers(
                paf_path=args.paf,
                monomers_path=args.monomers,
                out_path=args.outfile,
                sizes=args.sizes,
                diff=args.diff,
                max_aln_len_diff=args.max_aln_len_diff,
                max_divergence=args.max_divergence,
                min_aln_len=args.min_aln_len,
                aln_type=None if args.all_alignments else args.alignment_type,
                merge_dst=args.merge_dst,
                min_len=args.min_len,
                log_level=args.log_level,
            )

        # Subset srf motifs to those with monomers of the given periods
        elif args.cmd == "motifs":
            return filter_motifs(
                fasta_path=args.fasta,
                monomers_path=args.monomers,
                out_path=args.outfile,
                sizes=args.sizes,
                diff=args.diff,
                log_level=args.log_level,
            )

        # Merge monomer regions
        elif args.cmd == "regions":
            return find_regions(
                in_path=args.infile,
                out_path=args.outfile,
                sizes=args.sizes,
                diff=args.diff,
                dst=args.dst,
                min_len=args.min_len,
                log_level=args.log_level,
            )
        else:
            parser.error("Unknown command")

    except (MonomerpyError, OSError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    return 2


def _add_period_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-s", "--sizes",
        nargs="+",
        type=int,
        default=DEFAULT_SIZES,
        help="Monomer periods in base pairs to search for (default: 170 340 42).",
    )
    p.add_argument(
        "-d", "--diff",
        type=float,
        default=0.02,
        help="Fraction difference in monomer period allowed. "
             "ex. 0.02 results in valid periods for 170 of 166-173 (default: 0.02).",
    )


def _add_log_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--log-level",
        default="INFO",
        choices=["ERROR", "WARNING", "INFO", "DEBUG"],
        help="Logging verbosity (default: INFO).",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="monomerpy",
        description="Find assembly regions made of tandem repeat monomers of given periods from srf and trf output."
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    m = sub.add_parser(
        "monomers",
        help="Tag assembly regions with trf monomers via alignments to srf motifs. Outputs BED9."
    )
    m.add_argument(
        "-p", "--paf",
        required=True,
        help="PAF of the assembly (query) aligned to srf enlonged motifs (target). "
             "Requires the 'cg' extended cigar tag; with minimap2 use --eqx.",
    )
    m.add_argument(
        "-m", "--monomers",
        required=True,
        help="trf monomers TSV on srf motifs with columns: "
             "[chrom], motif, st, end, period, copyNum, fracMatch, fracGap, score, entropy, pattern",
    )
    m.add_argument(
        "-o", "--outfile",
        default=None,
        help="Output BED9 with columns: chrom, st, end, comma-delimited monomers, 0, strand, st, end, '0,0,0'. "
             "Defaults to stdout.",
    )
    _add_period_args(m)
    m.add_argument(
        "--max-aln-len-diff",
        type=float,
        default=0.02,
        help="Alignments whose block length is within this fraction of the motif length "
             "are tagged as a whole (default: 0.02).",
    )
    m.add_argument(
        "--max-divergence",
        type=float,
        default=0.05,
        help="Maximum divergence (dv tag) for tagging an alignment as a whole (default: 0.05).",
    )
    m.add_argument(
        "--min-aln-len",
        type=int,
        default=None,
        help="Cigar ops must be longer than this on both query and target to be tagged "
             "(default: smallest of --sizes).",
    )
    tp = m.add_mutually_exclusive_group()
    tp.add_argument(
        "--alignment-type",
        default="P",
        help="Only use alignments with this 'tp' tag (default: P, primary).",
    )
    tp.add_argument(
        "--all-alignments",
        action="store_true",
        help="Use all alignments regardless of 'tp' tag.",
    )
    m.add_argument(
        "--merge-dst",
        type=int,
        default=None,
        help="Merge tagged regions within this distance before writing (same as piping to 'regions').",
    )
    m.add_argument(
        "--min-len",
        type=int,
        default=30_000,
        help="With --merge-dst, minimum merged region length (default: 30000).",
    )
    _add_log_args(m)

    f = sub.add_parser(
        "motifs",
        help="Keep srf motifs with at least one trf monomer of the given periods. Outputs FASTA."
    )
    f.add_argument(
        "-f", "--fasta",
        required=True,
        help="srf motifs FASTA.",
    )
    f.add_argument(
        "-m", "--monomers",
        required=True,
        help="trf monomers TSV on srf motifs.",
    )
    f.add_argument(
        "-o", "--outfile",
        default=None,
        help="Output FASTA. Defaults to stdout.",
    )
    _add_period_args(f)
    _add_log_args(f)

    r = sub.add_parser(
        "regions",
        help="Merge BED9 monomer regions from 'monomers' into larger regions."
    )
    r.add_argument(
        "-i", "--infile",
        default="-",
        help="BED9 from 'monomers'. Defaults to stdin.",
    )
    r.add_argument(
        "-o", "--outfile",
        default=None,
        help="Output BED9. Defaults to stdout.",
    )
    _add_period_args(r)
    r.add_argument(
        "--dst",
        type=int,
        default=100_000,
        help="Merge regions within this distance in base pairs (default: 100000).",
    )
    r.add_argument(
        "--min-len",
        type=int,
        default=30_000,
        help="Minimum merged region length (default: 30000).",
    )
    _add_log_args(r)
    return p

if __name__ == "__main__":
    raise SystemExit(main())
