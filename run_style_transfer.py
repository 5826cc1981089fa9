"""
run_style_transfer.py: CLI Entry Point

Forwards execution to the CLI defined in
`src/lbfgs_style_transfer/cli.py`.

Usage:
    python run_style_transfer.py --content path/to/content.jpg --style path/to/style.jpg [options]

This wrapper allows you to run the tool directly without needing to
modify PYTHONPATH or install the project as a package.

For help on available options, run:
    python run_style_transfer.py --help
"""
import sys
from pathlib import Path

# Source code in src/ subdirectory
sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

import lbfgs_style_transfer.cli as lst_cli

if __name__ == "__main__":
    lst_cli.main()
