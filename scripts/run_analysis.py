#!/usr/bin/env python3
"""Run a land-cover change analysis over directories of annual GeoTIFFs.

Each index band is read from its own directory of annual composites
(one GeoTIFF per year, year taken from the TIME_START tag or the file
name). Writes the difference and trend exports as GeoTIFFs and the
regional series as CSV.

Usage:
    python run_analysis.py --archive NDVI=data/ndvi --output exports

Example:
    python run_analysis.py --config myitsone.json \
        --archive NDVI=data/ndvi --archive NBR=data/nbr --archive NDWI=data/ndwi \
        --reflectance data/sr --output exports
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Check imports before running
try:
    from pydantic import ValidationError

    import landchange as lc
except ImportError:
    print("Error: landchange not installed. Run: pip install landchange")
    sys.exit(1)


def _parse_archive(value: str) -> tuple[str, Path]:
    band, sep, directory = value.partition("=")
    if not sep or not band or not directory:
        msg = f"expected BAND=DIRECTORY, got {value!r}"
        raise argparse.ArgumentTypeError(msg)
    return band, Path(directory)


def run(
    config: lc.AnalysisConfig,
    archives: dict[str, Path],
    reflectance: Path | None,
    output_dir: Path,
) -> lc.ChangeAnalysisResult:
    """Build the archive catalog, run the analysis and write its outputs.

    Args:
        config: Base analysis configuration.
        archives: Directory of annual GeoTIFFs per index band.
        reflectance: Directory of reflectance composites, or ``None``.
        output_dir: Directory for GeoTIFF exports and series CSV files.

    Returns:
        The analysis result.
    """
    index_archives = {
        band: config.index_archives.get(band, band) for band in archives
    }
    reflectance_archive = config.reflectance_archive if reflectance is not None else None
    settings = config.model_dump()
    settings.update(index_archives=index_archives, reflectance_archive=reflectance_archive)
    if config.trend_band not in index_archives:
        settings["trend_band"] = next(iter(index_archives))
    config = lc.AnalysisConfig(**settings)

    catalog = lc.ArchiveCatalog(
        [
            lc.build_archive("geotiff", index_archives[band], root=directory, bands=[band])
            for band, directory in archives.items()
        ]
    )
    if reflectance is not None and reflectance_archive is not None:
        catalog = catalog.with_archive(
            lc.build_archive("geotiff", reflectance_archive, root=reflectance)
        )

    print(f"Running change analysis {config.baseline_period} vs {config.compare_period}...")
    result = lc.run_change_analysis(catalog, config)
    print(result)

    output_dir.mkdir(parents=True, exist_ok=True)
    for request in result.exports:
        path = request.write(output_dir)
        print(f"  Wrote {path}")
    for band, ts in result.series.items():
        path = ts.to_csv(output_dir / f"{config.description_prefix}_{band}_series.csv")
        print(f"  Wrote {path}")
    return result


def main() -> None:
    """Parse arguments and run analysis."""
    parser = argparse.ArgumentParser(
        description="Run a land-cover change analysis over annual GeoTIFF composites.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_analysis.py --archive NDVI=data/ndvi --output exports
  python run_analysis.py --config myitsone.json --archive NDVI=data/ndvi --fallback masked
        """,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON analysis configuration (default: built-in Myitsone settings)",
    )
    parser.add_argument(
        "--archive",
        type=_parse_archive,
        action="append",
        required=True,
        metavar="BAND=DIR",
        help="Directory of annual GeoTIFFs for an index band (repeatable)",
    )
    parser.add_argument(
        "--reflectance",
        type=Path,
        default=None,
        help="Directory of annual surface reflectance composites (optional)",
    )
    parser.add_argument(
        "--fallback",
        choices=["zero", "masked"],
        default=None,
        help="Fill for empty periods (default: from configuration)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("exports"),
        help="Output directory (default: exports)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = lc.load_config(args.config) if args.config else lc.AnalysisConfig()
        if args.fallback is not None:
            config = lc.AnalysisConfig(**{**config.model_dump(), "fallback": args.fallback})
        run(config, dict(args.archive), args.reflectance, args.output)
    except (lc.LandChangeError, ValidationError) as e:
        print(f"\nError running analysis: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
