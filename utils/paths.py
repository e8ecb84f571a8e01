import os
from typing import Optional


__all__ = [
    "build_results_out_path",
    "resolve_config_path",
    "resolve_asset_dir",
    "media_tag_from",
]


def build_results_out_path(
    *,
    media_path: str,
    kind: str,
    ext: str,
    results_dir: str = "results",
) -> str:
    """
    {results_dir}/{kind}/{media_tag}/results.{ext}

    Creates the directory if needed.
    """
    subdir = os.path.join(str(results_dir), str(kind).lower(), media_tag_from(media_path))
    os.makedirs(subdir, exist_ok=True)
    return os.path.join(subdir, f"results.{ext.lstrip('.')}")


def resolve_config_path(config_path: Optional[str] = None) -> str:
    """Return provided config path or default to the repository's config.json.

    The default resolves to .../config.json regardless of CWD.
    """
    if config_path and str(config_path).strip():
        return str(config_path)
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(base_dir, "config.json")


def resolve_asset_dir(asset_dir: str, config_path: str) -> str:
    """Relative asset dirs are taken relative to the config file's directory."""
    if os.path.isabs(asset_dir):
        return asset_dir
    return os.path.join(os.path.dirname(os.path.abspath(config_path)), asset_dir)


def media_tag_from(path: str) -> str:
    """Return media tag derived from a file path (basename without extension)."""
    base = os.path.basename(str(path))
    name, _ext = os.path.splitext(base)
    return name or "default"
