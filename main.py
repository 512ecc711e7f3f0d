#!/usr/bin/env python3
"""
mixlab - Main Entry Point

Usage:
    mixlab analyze path/to/track.wav [more.wav ...]
    mixlab analyze path/to/folder --json
    mixlab suggest track_a.wav track_b.wav --tempo-a 126 --key-b 8A
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from mixlab.common.logging import (
    setup_logging,
    get_logger,
    get_config,
    format_time,
    format_time_range,
    format_bpm,
    format_confidence,
)
from mixlab.common.primitives.transition_scoring import compatible_keys
from mixlab.core.adapters import AudioLoader, find_audio_files
from mixlab.core.config.settings import get_settings
from mixlab.core.errors import MixlabError
from mixlab.modules.analysis.config import AnalysisConfig, Resolution
from mixlab.modules.analysis.pipelines import TrackAnalysisPipeline, TrackAnalysisResult
from mixlab.modules.analysis.tasks import TransitionSuggestionTask

logger = get_logger(__name__)


def build_config(args: argparse.Namespace) -> AnalysisConfig:
    """Analysis config from --config (or ANALYSIS_CONFIG) plus CLI overrides."""
    settings = get_settings()
    config_path = args.config or settings.analysis_config

    if config_path:
        config = AnalysisConfig.from_config(get_config(config_path))
    else:
        config = AnalysisConfig(max_workers=settings.max_workers)

    if args.resolution:
        config.spectral = config.spectral.for_resolution(
            Resolution(args.resolution),
            sample_rate=config.spectral.sample_rate,
            window_type=config.spectral.window_type,
        )
    return config


def analyze_file(
    pipeline: TrackAnalysisPipeline,
    loader: AudioLoader,
    path: Path,
    tempo: Optional[float] = None,
    key: Optional[str] = None,
) -> TrackAnalysisResult:
    y, sr = loader.load(str(path))
    metadata = {k: v for k, v in (("tempo", tempo), ("key", key)) if v}
    return pipeline.analyze(y, sr, track_id=path.stem, **metadata)


def print_summary(result: TrackAnalysisResult):
    """Human-readable mix-point summary of one track."""
    analysis = result.mix_points
    basic = result.basic

    print("=" * 50)
    print(f"{result.track_id}  ({format_time(result.duration_sec)})")
    print("=" * 50)
    if basic.tempo:
        print(f"Tempo: {format_bpm(basic.tempo)}")
    if basic.key:
        mixes_with = compatible_keys(basic.key)
        suffix = f"  (mixes with {', '.join(mixes_with[1:])})" if mixes_with else ""
        print(f"Key: {basic.key}{suffix}")
    if result.mood is not None:
        mood = result.mood.mood
        print(f"Mood: {mood.primary_mood.value} ({format_confidence(mood.confidence)})")
    if result.failures:
        print(f"Failed extractors: {', '.join(sorted(result.failures))}")
    print()

    structure = analysis.structure
    if structure.intro:
        print(f"Intro:  {format_time_range(structure.intro.start, structure.intro.end)}")
    if structure.outro:
        print(f"Outro:  {format_time_range(structure.outro.start, structure.outro.end)}")
    print(f"Breakdowns: {len(structure.breakdowns)}  Drops: {len(structure.drops)}")
    print()

    print(f"Mix points: {len(analysis.mix_points)}")
    for point in analysis.mix_points:
        print(f"  {format_time(point.timestamp)} {point.type.value:<12} "
              f"suit: {point.transition_suitability:.2f}  energy: {point.energy:.2f}")
    print()

    if analysis.optimal_in_points:
        print("Best in-points:  " + ", ".join(format_time(p.timestamp) for p in analysis.optimal_in_points))
    if analysis.optimal_out_points:
        print("Best out-points: " + ", ".join(format_time(p.timestamp) for p in analysis.optimal_out_points))
    print()


def cmd_analyze(args: argparse.Namespace) -> int:
    paths: List[Path] = []
    for target in args.tracks:
        found = find_audio_files(target)
        if not found:
            logger.warning("No supported audio found", data={"path": target})
        paths.extend(found)

    if not paths:
        print("Error: no audio files to analyze")
        return 1

    config = build_config(args)
    pipeline = TrackAnalysisPipeline(config)
    loader = AudioLoader(sample_rate=config.spectral.sample_rate)

    results = []
    failed = 0
    for path in tqdm(paths, desc="Analyzing", unit="track", disable=args.json or len(paths) == 1):
        try:
            result = analyze_file(pipeline, loader, path, tempo=args.tempo, key=args.key)
        except MixlabError as e:
            failed += 1
            if args.json:
                results.append(e.to_dict())
            else:
                print(f"Error: {path.name}: {e.message}")
            continue

        if args.json:
            results.append(result.to_dict())
        else:
            print_summary(result)

    if args.json:
        print(json.dumps(results, indent=2))
    return 1 if failed == len(paths) else 0


def cmd_suggest(args: argparse.Namespace) -> int:
    config = build_config(args)
    pipeline = TrackAnalysisPipeline(config)
    loader = AudioLoader(sample_rate=config.spectral.sample_rate)

    try:
        track_a = analyze_file(pipeline, loader, Path(args.track_a), tempo=args.tempo_a, key=args.key_a)
        track_b = analyze_file(pipeline, loader, Path(args.track_b), tempo=args.tempo_b, key=args.key_b)
    except MixlabError as e:
        print(json.dumps(e.to_dict(), indent=2))
        return 1

    engine = TransitionSuggestionTask(config.transitions)
    suggestions = engine.suggest_batch(track_a.to_track_analysis(), track_b.to_track_analysis())

    print(json.dumps([s.to_dict() for s in suggestions[:args.top]], indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mixlab",
        description="DJ track structure analysis and transition suggestions",
    )
    parser.add_argument("--config", help="YAML analysis config (default: ANALYSIS_CONFIG)")
    parser.add_argument("--resolution", choices=[r.value for r in Resolution],
                        help="Spectral resolution preset")
    parser.add_argument("--log-level", help="Override log level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Detect structure and mix points")
    analyze.add_argument("tracks", nargs="+", help="Audio files or folders")
    analyze.add_argument("--tempo", type=float, help="Known tempo (BPM) for all tracks")
    analyze.add_argument("--key", help="Known key (Camelot or standard) for all tracks")
    analyze.add_argument("--json", action="store_true", help="Print results as JSON")
    analyze.set_defaults(func=cmd_analyze)

    suggest = subparsers.add_parser("suggest", help="Suggest transitions from track A into track B")
    suggest.add_argument("track_a")
    suggest.add_argument("track_b")
    suggest.add_argument("--tempo-a", type=float)
    suggest.add_argument("--tempo-b", type=float)
    suggest.add_argument("--key-a")
    suggest.add_argument("--key-b")
    suggest.add_argument("--top", type=int, default=4, help="Number of suggestions to print")
    suggest.set_defaults(func=cmd_suggest)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()

    setup_logging(
        level=args.log_level or None,
        log_file=settings.log_file,
        component="cli",
    )

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
