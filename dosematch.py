#!/usr/bin/env python3
"""dosematch: turn a SIG and a package catalog into a dispensing recommendation."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from dosematch_fallback import FallbackParser, resolve_sig
from dosematch_pack import DEFAULT_MAX_PACKS, recommend_packs
from dosematch_quantity import compute_total_units
from dosematch_sig import MIN_CONFIDENCE, parse_sig
from dosematch_types import (
    PACKAGE_STATUSES,
    STATUS_UNKNOWN,
    DosematchError,
    DosingInstruction,
    PackageRecord,
)
from dosematch_units import normalize_unit
from dosematch_warnings import generate_warnings


def log(message: str) -> None:
    print(message, file=sys.stderr)


def elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000.0, 3)


def package_record_from_dict(entry: Mapping[str, object], index: int = 0) -> PackageRecord:
    package_id = entry.get("package_id", entry.get("packageId", entry.get("ndc11", entry.get("id"))))
    if package_id is None or str(package_id).strip() == "":
        raise ValueError(f"Catalog entry {index} has no package id")

    raw_size = entry.get("package_size", entry.get("packageSize"))
    try:
        package_size = float(raw_size)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValueError(f"Catalog entry {index} has invalid package size: {raw_size!r}") from None
    if not package_size > 0:
        raise ValueError(f"Catalog entry {index} has non-positive package size: {raw_size!r}")

    status = str(entry.get("status") or STATUS_UNKNOWN).strip().upper()
    if status not in PACKAGE_STATUSES:
        status = STATUS_UNKNOWN

    labeler = entry.get("labeler")
    product_name = entry.get("product_name", entry.get("productName"))
    return PackageRecord(
        package_id=str(package_id),
        package_size=package_size,
        unit=normalize_unit(str(entry.get("unit") or "")),
        status=status,
        labeler=str(labeler) if labeler is not None else None,
        product_name=str(product_name) if product_name is not None else None,
    )


def load_catalog(path: Path) -> List[PackageRecord]:
    if not path.exists():
        raise FileNotFoundError(f"Missing catalog file: {path}")
    with path.open("r", encoding="utf-8") as handle:
        raw = json.load(handle)
    if isinstance(raw, dict):
        raw = raw.get("packages", [])
    if not isinstance(raw, list):
        raise ValueError(f"Catalog must be a JSON list of package records: {path}")
    return [package_record_from_dict(entry, i) for i, entry in enumerate(raw)]


def recommend_for_sig(
    sig_text: str,
    days_supply: int,
    catalog: Sequence[PackageRecord],
    fallback: Optional[FallbackParser] = None,
    max_packs: int = DEFAULT_MAX_PACKS,
) -> Dict[str, object]:
    started = time.perf_counter()

    sig_start = time.perf_counter()
    dosing = resolve_sig(sig_text, days_supply, fallback=fallback)
    sig_parsing_ms = elapsed_ms(sig_start)

    total_units = compute_total_units(dosing)
    recommendation = recommend_packs(total_units, dosing.unit, catalog, max_packs=max_packs)
    warnings = generate_warnings(recommendation, catalog)

    return {
        "input": {"sig_text": sig_text, "days_supply": days_supply},
        "dosing": dosing.to_dict(),
        "target_quantity": {"unit": dosing.unit, "total_units": total_units},
        "recommendation": recommendation.to_dict(),
        "warnings": [asdict(w) for w in warnings],
        "metrics": {
            "total_ms": elapsed_ms(started),
            "sig_parsing_ms": sig_parsing_ms,
            "catalog_size": len(catalog),
        },
    }


def read_sig(args: argparse.Namespace) -> str:
    if args.sig is not None:
        return args.sig
    return Path(args.sig_file).read_text(encoding="utf-8")


def cmd_parse(args: argparse.Namespace) -> int:
    sig_text = read_sig(args)
    dosing = parse_sig(sig_text, args.days_supply, min_confidence=args.min_confidence)
    output = {
        "sig_text": sig_text,
        "abstained": dosing is None,
        "dosing": dosing.to_dict() if dosing is not None else None,
    }
    print(json.dumps(output, indent=2))
    return 0


def cmd_quantity(args: argparse.Namespace) -> int:
    dosing = DosingInstruction(
        amount_per_dose=args.amount,
        unit=normalize_unit(args.unit),
        frequency_per_day=args.frequency,
        days_supply=args.days_supply,
    )
    output = {"unit": dosing.unit, "total_units": compute_total_units(dosing)}
    print(json.dumps(output, indent=2))
    return 0


def cmd_recommend(args: argparse.Namespace) -> int:
    catalog = load_catalog(Path(args.catalog).expanduser().resolve())
    recommendation = recommend_packs(args.target, args.unit, catalog, max_packs=args.max_packs)
    output = {
        "recommendation": recommendation.to_dict(),
        "warnings": [asdict(w) for w in generate_warnings(recommendation, catalog)],
    }
    print(json.dumps(output, indent=2))
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    catalog = load_catalog(Path(args.catalog).expanduser().resolve())
    output = recommend_for_sig(
        sig_text=read_sig(args),
        days_supply=args.days_supply,
        catalog=catalog,
        max_packs=args.max_packs,
    )
    print(json.dumps(output, indent=2))
    return 0


def add_sig_arguments(cmd: argparse.ArgumentParser) -> None:
    sig_group = cmd.add_mutually_exclusive_group(required=True)
    sig_group.add_argument("--sig", help="SIG text to parse.")
    sig_group.add_argument("--sig-file", help="Read SIG text from file path.")
    cmd.add_argument(
        "--days-supply",
        type=int,
        required=True,
        help="Days the prescription must cover.",
    )


def add_catalog_arguments(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument(
        "--catalog",
        required=True,
        help="JSON file with a list of package records.",
    )
    cmd.add_argument(
        "--max-packs",
        type=int,
        default=DEFAULT_MAX_PACKS,
        help="Max packs of one package in a multi-pack recommendation.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SIG parsing, quantity calculation and package recommendation."
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log parser and engine decisions to stderr.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_cmd = subparsers.add_parser("parse", help="Parse a SIG with the rule parser.")
    add_sig_arguments(parse_cmd)
    parse_cmd.add_argument(
        "--min-confidence",
        type=float,
        default=MIN_CONFIDENCE,
        help="Abstain below this confidence.",
    )
    parse_cmd.set_defaults(func=cmd_parse)

    quantity_cmd = subparsers.add_parser(
        "quantity", help="Compute the total units for explicit dosing values."
    )
    quantity_cmd.add_argument("--amount", type=float, required=True, help="Amount per dose.")
    quantity_cmd.add_argument("--frequency", type=int, required=True, help="Doses per day.")
    quantity_cmd.add_argument("--days-supply", type=int, required=True, help="Days supply.")
    quantity_cmd.add_argument("--unit", default="EA", help="Dose unit (any alias).")
    quantity_cmd.set_defaults(func=cmd_quantity)

    recommend_cmd = subparsers.add_parser(
        "recommend", help="Recommend packages for a target quantity."
    )
    recommend_cmd.add_argument("--target", type=float, required=True, help="Target quantity.")
    recommend_cmd.add_argument("--unit", required=True, help="Target unit (any alias).")
    add_catalog_arguments(recommend_cmd)
    recommend_cmd.set_defaults(func=cmd_recommend)

    run_cmd = subparsers.add_parser(
        "run", help="Parse a SIG, compute the quantity and recommend packages."
    )
    add_sig_arguments(run_cmd)
    add_catalog_arguments(run_cmd)
    run_cmd.set_defaults(func=cmd_run)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(name)s %(levelname)s %(message)s",
        )
    try:
        return int(args.func(args))
    except DosematchError as exc:
        log(f"Rejected input: {exc}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
