import argparse
import sys
import time

from kuwahara_filter import FilterError, KuwaharaFilter
from kuwahara_filter.config import Config, setup_logging


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Apply a Kuwahara filter to an image and show the result")
    parser.add_argument("image", help="Path to the image to filter")
    parser.add_argument("--radius", type=int, help="Sector reach in pixels")
    parser.add_argument("--sectors", dest="sector_count", type=int, help="Number of angular sectors")
    parser.add_argument("--policy", choices=["hard", "weighted"], help="Sector selection policy")
    parser.add_argument("--sharpness", type=float, help="Weighting exponent for the weighted policy")
    parser.add_argument("--workers", dest="max_workers", type=int, help="Worker thread count")
    parser.add_argument("--resize", dest="resize_factor", type=float, help="Shrink the image by this factor first")
    parser.add_argument("--log-level", dest="log_level", help="Logging level (DEBUG, INFO, ...)")
    parser.add_argument("--no-display", action="store_true", help="Filter without opening a window")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    cfg = Config.from_namespace(args)
    setup_logging(cfg.log_level)

    print(f"Loading {args.image}...")
    try:
        kf = KuwaharaFilter(args.image)
        start_time = time.perf_counter()
        (
            kf.reset()
            .resize(cfg.resize_factor)
            .filter(cfg.to_parameters(), **cfg.engine_options())
        )
    except (FileNotFoundError, ValueError, FilterError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    end_time = time.perf_counter()
    print(f"Done in {end_time - start_time:.2f} seconds ({kf.width}x{kf.height}).")

    if not args.no_display:
        kf.display_results()
    return 0


if __name__ == "__main__":
    sys.exit(main())
