"""Command-line interface for bikefit.

Provides subcommands for offline bike-fit analysis of recorded
landmark streams:

    bikefit replay frames.json --output session.json
    bikefit analyze session.json --config rider.yaml
    bikefit info session.json
"""

import argparse
import logging
import sys
from pathlib import Path
from importlib.metadata import version as pkg_version, PackageNotFoundError


def _get_version() -> str:
    """Return package version without importing the full bikefit package."""
    try:
        return pkg_version("bikefit")
    except PackageNotFoundError:
        # Fallback for editable/local runs where metadata may be unavailable.
        return "0.0.0+local"


def _setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_config(args):
    from .config import load_config, merge_config

    if getattr(args, "config", None):
        return load_config(args.config)
    return merge_config()


def _print_results(summary: dict):
    labels = {"green": "In range", "yellow": "Slightly out of range", "red": "Out of range"}
    cad = summary.get("cadence", {})
    print(f"Cycles analyzed: {summary['n_cycles']} ({summary['n_trimmed']} trimmed)")
    if cad.get("n_cycles"):
        print(f"Cadence: {cad['mean']} RPM (SD {cad['std']}, CV {cad['cv']}%)")
    for r in summary["results"]:
        print(f"\n{r['name']}: {r['avg']} deg  [{labels[r['status']]}]")
        print(f"  Target {r['target_min']}-{r['target_max']} deg, "
              f"range {r['min']}-{r['max']}, SD {r['std']}")
        if r["status"] != "green":
            print(f"  Category: {r['category']}")
        print(f"  {r['suggestion']}")


def cmd_replay(args):
    """Run a recorded landmark stream through a fit session."""
    from .session import COMPLETE, FitSession
    from .schema import load_frames, create_session_record, save_json

    cfg = _load_config(args)
    recording = load_frames(args.frames_file)
    aspect = args.aspect_ratio or recording.get("aspect_ratio")

    session = FitSession(cfg, aspect_ratio=aspect)
    last_t = None
    for frame in recording["frames"]:
        last_t = frame["timestamp"]
        session.process_frame(frame.get("landmarks"), last_t)
        if session.state == COMPLETE:
            break
    session.stop(last_t)

    print(f"Frames: {session.n_frames}, side: {session.side or '?'}, "
          f"cycles captured: {len(session.cycles)}")

    summary = session.summarize()
    _print_results(summary)

    output = args.output or str(Path(args.frames_file).with_suffix(".session.json"))
    record = create_session_record(session.cycles, session.side, session.aspect_ratio,
                                   session.n_frames, summary)
    save_json(record, output)
    print(f"\nSaved to {output}")


def cmd_analyze(args):
    """Re-analyze the cycles stored in a session record."""
    from .analysis import analyze_session, cadence_summary, trim_cycles
    from .config import get_target_ranges
    from .schema import load_json

    cfg = _load_config(args)
    data = load_json(args.json_file)
    cycles = data["cycles"]

    kept = trim_cycles(cycles, cfg["analysis"]["trim_end_ms"])
    results = analyze_session(kept, target_ranges=get_target_ranges(cfg),
                              red_margin=cfg["analysis"]["red_margin_deg"])
    _print_results({
        "n_cycles": len(kept),
        "n_trimmed": len(cycles) - len(kept),
        "cadence": cadence_summary(kept),
        "results": results,
    })


def cmd_info(args):
    """Display info about a session record."""
    from .schema import load_json

    data = load_json(args.json_file)
    meta = data.get("meta", {})
    cycles = data["cycles"]
    print(f"bikefit v{data.get('bikefit_version', '?')}")
    print(f"Side: {meta.get('side', '?')}, aspect ratio: {meta.get('aspect_ratio', '?')}")
    print(f"Frames: {meta.get('n_frames', '?')}, cycles: {len(cycles)}")
    if cycles:
        span = (cycles[-1]["timestamp"] - cycles[0]["timestamp"]) / 1000.0
        print(f"Span: {span:.1f}s")
    analysis = data.get("analysis")
    if analysis:
        statuses = ", ".join(f"{r['key']}={r['status']}" for r in analysis.get("results", []))
        print(f"Analysis: {statuses}")
    else:
        print("Analysis: none")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="bikefit",
        description="Side-view bike-fit analysis from pose landmarks",
    )
    parser.add_argument("--version", action="version", version=f"bikefit {_get_version()}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")

    sub = parser.add_subparsers(dest="command", help="Available commands")

    # replay
    p_replay = sub.add_parser("replay", help="Run a recorded landmark stream through a session")
    p_replay.add_argument("frames_file", help="Path to landmark recording JSON")
    p_replay.add_argument("-o", "--output", help="Output session JSON (default: <frames>.session.json)")
    p_replay.add_argument("--config", help="Config file (JSON/YAML)")
    p_replay.add_argument("--aspect-ratio", type=float, help="Frame width / height override")
    p_replay.set_defaults(func=cmd_replay)

    # analyze
    p_analyze = sub.add_parser("analyze", help="Re-analyze a saved session")
    p_analyze.add_argument("json_file", help="Path to session JSON")
    p_analyze.add_argument("--config", help="Config file (JSON/YAML) with target ranges")
    p_analyze.set_defaults(func=cmd_analyze)

    # info
    p_info = sub.add_parser("info", help="Show info about a session JSON")
    p_info.add_argument("json_file", help="Path to session JSON")
    p_info.set_defaults(func=cmd_info)

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ImportError as e:
        print(f"Missing dependency: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
