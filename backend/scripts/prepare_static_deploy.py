#!/usr/bin/env python3
"""Prepare the built frontend in dist/ for static hosting.

Copies the host's routing files (_headers, _redirects) into dist/ and makes
sure the brand assets referenced by absolute URL are present there.
"""

from __future__ import annotations

import argparse
import logging
import shutil
from pathlib import Path
from typing import Dict, List

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

ROUTING_FILES = ("_headers", "_redirects")
STATIC_ASSETS = ("logo.png", "dome-2.png", "favicon.ico")


def prepare_static_deploy(project_root: Path, dist_dir: Path | None = None) -> Dict[str, List[str]]:
    dist = dist_dir or project_root / "dist"
    public = project_root / "public"
    dist.mkdir(parents=True, exist_ok=True)
    summary: Dict[str, List[str]] = {"copied": [], "skipped": [], "missing": []}

    for name in ROUTING_FILES:
        source = project_root / name
        if source.exists():
            shutil.copyfile(source, dist / name)
            summary["copied"].append(name)
            logger.info("Copied %s to %s", name, dist)

    for name in STATIC_ASSETS:
        source = public / name
        target = dist / name
        if not source.exists():
            summary["missing"].append(name)
            logger.warning("%s not found in %s", name, public)
            continue
        if target.exists():
            summary["skipped"].append(name)
            continue
        shutil.copyfile(source, target)
        summary["copied"].append(name)
        logger.info("Copied %s to %s", name, dist)

    return summary


def main() -> int:
    parser = argparse.ArgumentParser(description="Prepare dist/ for static deployment")
    parser.add_argument("--root", default=".", help="Frontend project root holding public/ and dist/")
    parser.add_argument("--dist", default=None, help="Build output directory (defaults to <root>/dist)")
    args = parser.parse_args()

    root = Path(args.root).resolve()
    summary = prepare_static_deploy(root, Path(args.dist).resolve() if args.dist else None)
    print("Static deploy summary")
    for key, values in summary.items():
        print(f"- {key}: {', '.join(values) if values else '-'}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
