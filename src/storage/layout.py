# src/storage/layout.py - v1
"""Run directory structure.

    runs/{run_id}/
        run_manifest.json
        00_input/sources.json
        01_pages/resolved_pages.json      Resolved Pages marker
        02_transcode/jobs.json
        03_windows/index.json             written once all windows exist
        03_windows/window_000.json ...
        04_merge/merge_result.json
        05_resolution/resolution.json
        06_output/final_groups.json
"""

from __future__ import annotations

RUNS_DIR = "runs"

INPUT_DIR = "00_input"
PAGES_DIR = "01_pages"
TRANSCODE_DIR = "02_transcode"
WINDOWS_DIR = "03_windows"
MERGE_DIR = "04_merge"
RESOLUTION_DIR = "05_resolution"
OUTPUT_DIR = "06_output"


def run_dir(run_id: str) -> str:
    """Return a specific run directory (relative to the store root)."""
    return f"{RUNS_DIR}/{run_id}"


def run_manifest_path(run_id: str) -> str:
    return f"{run_dir(run_id)}/run_manifest.json"


def sources_path(run_id: str) -> str:
    return f"{run_dir(run_id)}/{INPUT_DIR}/sources.json"


def resolved_pages_path(run_id: str) -> str:
    return f"{run_dir(run_id)}/{PAGES_DIR}/resolved_pages.json"


def transcode_jobs_path(run_id: str) -> str:
    return f"{run_dir(run_id)}/{TRANSCODE_DIR}/jobs.json"


def windows_dir(run_id: str) -> str:
    return f"{run_dir(run_id)}/{WINDOWS_DIR}"


def windows_index_path(run_id: str) -> str:
    return f"{windows_dir(run_id)}/index.json"


def window_path(run_id: str, window_index: int) -> str:
    return f"{windows_dir(run_id)}/window_{window_index:03d}.json"


def merge_result_path(run_id: str) -> str:
    return f"{run_dir(run_id)}/{MERGE_DIR}/merge_result.json"


def resolution_path(run_id: str) -> str:
    return f"{run_dir(run_id)}/{RESOLUTION_DIR}/resolution.json"


def final_groups_path(run_id: str) -> str:
    return f"{run_dir(run_id)}/{OUTPUT_DIR}/final_groups.json"
