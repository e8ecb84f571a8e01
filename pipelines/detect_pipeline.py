import argparse
import json
import logging
from typing import List, Optional

from configs import RuntimeConfig
from core.errors import DetectionError
from core.runner import AnalysisRequest, FrameResult, MediaKind, analyze
from core.video_processor import FrameSampler
from models import load_model_asset
from utils.io import load_config_json, write_frame_results_csv, write_results_json
from utils.labels import aggregate_verdict, format_frame_result
from utils.paths import build_results_out_path, resolve_asset_dir, resolve_config_path

logger = logging.getLogger(__name__)


def run_analysis(*, media_path: str, kind: MediaKind, runtime: RuntimeConfig, asset_dir: str, save: bool = True) -> List[FrameResult]:
    """
    Load the bundled model, analyze one media file and export the results.

    Args:
        media_path: Image or video file to analyze.
        kind: MediaKind of the file.
        runtime: Runtime configuration.
        asset_dir: Directory holding the bundled model asset.
        save: Write CSV/JSON exports under runtime.results_dir.

    Returns:
        Ordered FrameResults.
    """
    model = load_model_asset(asset_dir, input_size=runtime.input_size)
    sampler = FrameSampler(max_frames=runtime.max_frames, mode=runtime.sampling_mode, seed=runtime.seed)

    def on_progress(fraction: float, status: str):
        logger.info(f"[{fraction * 100:3.0f}%] {status}")

    results = analyze(
        AnalysisRequest(source=media_path, kind=kind),
        on_progress,
        model=model,
        sampler=sampler,
        input_size=runtime.input_size,
    )
    verdict = aggregate_verdict(r.probabilities for r in results)

    for r in results:
        print(format_frame_result(r.label, r.probabilities))
        print()
    if verdict is None:
        print("Verdict: no prediction")
    else:
        print(f"Verdict: {verdict.label} ({verdict.confidence * 100:.1f}% over {verdict.frames_used} unit(s))")

    if save:
        out_csv = build_results_out_path(media_path=media_path, kind=kind.value, ext="csv", results_dir=runtime.results_dir)
        out_json = build_results_out_path(media_path=media_path, kind=kind.value, ext="json", results_dir=runtime.results_dir)
        write_frame_results_csv(out_csv=out_csv, results=results)
        write_results_json(out_path=out_json, results=results, verdict=verdict)
    return results


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Deepfake detector - classify an image or sampled video frames")
    parser.add_argument("--config_path", type=str, default=None, help="Path to config.json (defaults to the bundled one).")
    parser.add_argument("--no_save", action="store_true", help="Do not write CSV/JSON exports.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_image = sub.add_parser("image", help="Classify a single image")
    p_image.add_argument("media_path", type=str)

    p_video = sub.add_parser("video", help="Classify frames sampled once per second from a video")
    p_video.add_argument("media_path", type=str)
    p_video.add_argument("--max_frames", type=int, default=None, help="Upper bound on sampled frames.")
    p_video.add_argument("--sampling_mode", type=str, default=None, choices=["random", "stride"], help="How to down-sample long videos.")
    p_video.add_argument("--seed", type=int, default=None, help="Seed for random down-sampling.")

    sub.add_parser("config", help="Print active config path and contents")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    args = build_parser().parse_args(argv)

    cfg_path = resolve_config_path(args.config_path)
    try:
        cfg = load_config_json(cfg_path)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Could not read config {cfg_path}: {e}")
        return 1

    if args.cmd == "config":
        print(cfg_path)
        print(json.dumps(cfg, indent=2))
        return 0

    try:
        runtime = RuntimeConfig.from_config(cfg)
    except (TypeError, ValueError) as e:
        logger.error(f"Invalid runtime config in {cfg_path}: {e}")
        return 1
    if args.cmd == "video":
        if args.max_frames is not None:
            runtime.max_frames = args.max_frames
        if args.sampling_mode is not None:
            runtime.sampling_mode = args.sampling_mode
        if args.seed is not None:
            runtime.seed = args.seed
    logger.info(
        f"[CONFIG] assets={runtime.asset_dir} size={runtime.input_size} "
        f"max_frames={runtime.max_frames} mode={runtime.sampling_mode} seed={runtime.seed}"
    )

    try:
        run_analysis(
            media_path=args.media_path,
            kind=MediaKind(args.cmd),
            runtime=runtime,
            asset_dir=resolve_asset_dir(runtime.asset_dir, cfg_path),
            save=not args.no_save,
        )
    except (DetectionError, ValueError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
