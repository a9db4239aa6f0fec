"""
Batch script resolution.

Search order, first hit wins:
1. Explicit override from the request (must exist; no fallback)
2. Bundle directory
3. Bundle resources/ subfolder
4. cwd resources/ subfolder
5. cwd
6. ../scripts relative to cwd
7. cwd scripts/ subfolder
"""

from pathlib import Path
from typing import List, Optional

from .errors import ScriptNotFoundError


def candidate_script_paths(
    script_name: str,
    bundle_dir: Optional[Path] = None,
    cwd: Optional[Path] = None,
) -> List[Path]:
    """Ordered fallback locations for the batch script."""
    candidates: List[Path] = []

    if bundle_dir is not None:
        candidates.append(bundle_dir / script_name)
        candidates.append(bundle_dir / "resources" / script_name)

    cwd = cwd if cwd is not None else Path.cwd()
    candidates.append(cwd / "resources" / script_name)
    candidates.append(cwd / script_name)
    candidates.append(cwd / ".." / "scripts" / script_name)
    candidates.append(cwd / "scripts" / script_name)

    return candidates


def resolve_script_path(
    requested: Optional[str],
    script_name: str,
    bundle_dir: Optional[Path] = None,
    cwd: Optional[Path] = None,
) -> Path:
    """
    Locate the batch script.

    Args:
        requested: Override path from the run request (blank means unset)
        script_name: Expected script file name
        bundle_dir: Bundled resource directory
        cwd: Working directory (defaults to the process cwd)

    Returns:
        Path to an existing script

    Raises:
        ScriptNotFoundError: Override missing, or no candidate exists
    """
    if requested is not None and requested.strip():
        override = Path(requested.strip())
        if override.exists():
            return override
        raise ScriptNotFoundError(f"Script path does not exist: {override}")

    for candidate in candidate_script_paths(script_name, bundle_dir, cwd):
        if candidate.exists():
            return candidate

    raise ScriptNotFoundError(
        f"Could not locate {script_name}. Set Script Path in Advanced settings."
    )
