"""Copy bundled read-only assets into writable cache storage."""

import logging
import os
import shutil
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


def load_asset_from_cache(
    asset_directory: Union[str, Path],
    cache_directory: Union[str, Path],
    file_name: str,
) -> Path:
    """
    Return the cached copy of a bundled asset, creating it on first use.

    An existing cached file is reused as-is.

    Raises:
        FileNotFoundError: If the asset is neither cached nor bundled
    """
    cache_dir = Path(cache_directory)
    cached = cache_dir / file_name
    if cached.exists():
        return cached

    source = Path(asset_directory) / file_name
    if not source.exists():
        raise FileNotFoundError(f"Bundled asset not found: {source}")

    cache_dir.mkdir(parents=True, exist_ok=True)
    # Write-then-rename: the cached path only ever holds a complete file
    partial = cached.with_name(cached.name + ".partial")
    shutil.copyfile(source, partial)
    os.replace(partial, cached)
    logger.info(f"Cached asset {file_name} at {cached}")
    return cached
