"""CLI argument parsing and main entry point."""

import argparse
import sys
from pathlib import Path

import lbfgs_style_transfer.config as lst_config
import lbfgs_style_transfer.main as lst_main
from lbfgs_style_transfer.config_defaults import (
    DEFAULT_CONTENT_LAYER,
    DEFAULT_GIF_FPS,
    DEFAULT_ITERATIONS,
    DEFAULT_MAX_ITER,
    DEFAULT_SAVE_EVERY,
    DEFAULT_STYLE_LAYERS,
    DEFAULT_TARGET_HEIGHT,
    DEFAULT_TV_POWER,
)
from lbfgs_style_transfer.logging_utils import logger, set_verbosity
from lbfgs_style_transfer.runtime import resolve_project_version
from lbfgs_style_transfer.type_defs import InputPaths


def build_arg_parser() -> argparse.ArgumentParser:
    """Construct the argument parser for the command-line interface."""
    p = argparse.ArgumentParser(
        description="Neural Style Transfer with VGG19 and L-BFGS-B",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            f"Examples:\n"
            f"python {Path(__file__).name} --content cat.jpg "
            f"--style starry_night.jpg\n"
            f"python {Path(__file__).name} --content cat.jpg "
            f"--style starry_night.jpg --iterations 10 --gif\n"
            f"python {Path(__file__).name} --config config.toml "
            f"--content cat.jpg --style starry_night.jpg\n"
        ),
    )
    p.add_argument(
        "--version", action="version",
        version=f"%(prog)s {resolve_project_version()}")
    p.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log per-evaluation loss values")

    required = p.add_argument_group("required arguments")
    required.add_argument(
        "--content", type=str, help="Path to content image")
    required.add_argument(
        "--style", type=str, help="Path to style image")

    output = p.add_argument_group("output")
    output.add_argument(
        "--output", type=str, help="Output directory",
        default=argparse.SUPPRESS)
    output.add_argument(
        "--save-every", type=int,
        help=("Save the candidate every N iterations, 0 to disable "
              f"(default: {DEFAULT_SAVE_EVERY})"),
        default=argparse.SUPPRESS)
    output.add_argument(
        "--gif", action="store_true",
        help="Write an animated GIF of the saved iterations")
    output.add_argument(
        "--fps", type=int,
        help=f"Frames per second for the GIF (default: {DEFAULT_GIF_FPS})",
        default=argparse.SUPPRESS)
    output.add_argument(
        "--no-plot", action="store_true",
        help="Disable loss plotting")
    output.add_argument(
        "--log-loss", type=str,
        help="Path to CSV file for per-iteration loss metrics",
        default=argparse.SUPPRESS)

    opt = p.add_argument_group("optimization")
    opt.add_argument(
        "--iterations", type=int,
        help=f"Outer L-BFGS-B iterations (default: {DEFAULT_ITERATIONS})",
        default=argparse.SUPPRESS)
    opt.add_argument(
        "--max-iter", type=int,
        help=("L-BFGS-B steps per outer iteration "
              f"(default: {DEFAULT_MAX_ITER})"),
        default=argparse.SUPPRESS)
    opt.add_argument(
        "--max-fun", type=int,
        help="Optional cap on loss evaluations per outer iteration",
        default=argparse.SUPPRESS)
    opt.add_argument(
        "--init-method", choices=["content", "random", "white"],
        help="Initialization method", default=argparse.SUPPRESS)
    opt.add_argument(
        "--seed", type=int, help="Random seed",
        default=argparse.SUPPRESS)
    opt.add_argument(
        "--fused-callbacks", action="store_true",
        help="Pass a single loss-and-gradient callback to L-BFGS-B")

    loss = p.add_argument_group("loss")
    loss.add_argument(
        "--content-w", type=float, help="Content weight",
        default=argparse.SUPPRESS)
    loss.add_argument(
        "--style-w", type=float, help="Style weight",
        default=argparse.SUPPRESS)
    loss.add_argument(
        "--tv-w", type=float, help="Total variation weight",
        default=argparse.SUPPRESS)
    loss.add_argument(
        "--tv-power", type=float,
        help=f"Total variation exponent (default: {DEFAULT_TV_POWER})",
        default=argparse.SUPPRESS)
    loss.add_argument(
        "--content-layer", type=str,
        help=f"VGG19 layer for content loss (default: {DEFAULT_CONTENT_LAYER})",
        default=argparse.SUPPRESS)
    loss.add_argument(
        "--style-layers", type=str,
        help=("Comma-separated VGG19 layers for style loss (default: "
              f"{','.join(DEFAULT_STYLE_LAYERS)})"))

    image = p.add_argument_group("image")
    image.add_argument(
        "--height", type=int,
        help=f"Working image height in pixels (default: {DEFAULT_TARGET_HEIGHT})",
        default=argparse.SUPPRESS)

    hw = p.add_argument_group("hardware")
    hw.add_argument(
        "--device", type=str,
        help="Device to run on (e.g., 'cuda' or 'cpu')",
        default=argparse.SUPPRESS)

    cfg = p.add_argument_group("config")
    cfg.add_argument(
        "--config", type=str,
        help="Path to config.toml file")
    cfg.add_argument(
        "--validate-config-only", action="store_true",
        help="Validate config file and exit without running style transfer")

    return p


def log_parameters(
    paths: InputPaths,
    cfg: lst_config.StyleTransferConfig,
    args: argparse.Namespace,
) -> None:
    """Log the effective run configuration."""
    logger.info("Content image: %s", paths.content_path)
    logger.info("Style image: %s", paths.style_path)
    if getattr(args, "config", None):
        logger.info("Loaded config from: %s", args.config)
    logger.info("Output Directory: %s", cfg.output.output)
    logger.info("Target Height: %d", cfg.image.target_height)
    logger.info("Iterations: %d", cfg.optimization.iterations)
    logger.info("Steps per Iteration: %d", cfg.optimization.max_iter)
    if cfg.optimization.max_fun is not None:
        logger.info("Evaluation Cap per Iteration: %d",
                    cfg.optimization.max_fun)
    logger.info("Content Weight: %g", cfg.loss.content_w)
    logger.info("Style Weight: %g", cfg.loss.style_w)
    logger.info("Total Variation Weight: %g", cfg.loss.tv_w)
    logger.info("Total Variation Power: %g", cfg.loss.tv_power)
    logger.info("Content Layer: %s", cfg.loss.content_layer)
    logger.info("Style Layers: %s", ", ".join(cfg.loss.style_layers))
    logger.info("Initialization Method: %s", cfg.optimization.init_method)
    logger.info("Fused Callbacks: %s",
                "Enabled" if cfg.optimization.fused_callbacks else "Disabled")
    logger.info("Save Every: %d", cfg.output.save_every)
    logger.info("GIF Creation: %s",
                "Enabled" if cfg.output.create_gif else "Disabled")
    logger.info("Loss Plotting: %s",
                "Enabled" if cfg.output.plot_losses else "Disabled")
    logger.info("Random Seed: %d", cfg.optimization.seed)


def run_from_args(args: argparse.Namespace) -> None:
    """Run style transfer from command-line arguments."""
    set_verbosity(verbose=getattr(args, "verbose", False))

    base_cfg: lst_config.StyleTransferConfig | None = None
    if args.config:
        base_cfg = lst_config.ConfigLoader.load(args.config)
        if args.validate_config_only:
            logger.info("Config %s validated successfully.", args.config)
            sys.exit(0)

    cfg = lst_config.build_config_from_cli(vars(args), base_config=base_cfg)

    paths = InputPaths(content_path=args.content, style_path=args.style)
    log_parameters(paths, cfg, args)

    lst_main.style_transfer(paths, cfg)


def main() -> None:
    """Run the command-line interface for style transfer execution."""
    arg_parser = build_arg_parser()
    args = arg_parser.parse_args()
    if args.validate_config_only and not args.config:
        arg_parser.error("--validate-config-only requires --config")
    if not args.validate_config_only and (not args.content or not args.style):
        arg_parser.error("the following arguments are required: --content,"
                         " --style")

    run_from_args(args)


if __name__ == "__main__":  # pragma: no cover
    main()
