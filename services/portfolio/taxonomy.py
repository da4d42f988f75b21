"""
Loading of the asset-class taxonomy.

The taxonomy is plain configuration (config/taxonomy.json by default) loaded
into an immutable schemas.taxonomy.Taxonomy; callers that need a different
universe (tests, a newer version) build or load their own and pass it in
explicitly.
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from config.settings import get_settings
from schemas.taxonomy import Taxonomy
from services.errors import TaxonomyError

logger = logging.getLogger(__name__)


def load_taxonomy(path: Optional[Path | str] = None) -> Taxonomy:
    """Load and validate a taxonomy file. Raises TaxonomyError on any problem."""
    src = Path(path) if path is not None else get_settings().taxonomy_path
    try:
        raw = json.loads(src.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise TaxonomyError(f"Could not read taxonomy from {src}: {e}") from e
    try:
        taxonomy = Taxonomy.model_validate(raw)
    except ValidationError as e:
        raise TaxonomyError(f"Invalid taxonomy in {src}: {e}") from e
    logger.info(
        "Taxonomy loaded: version=%s classes=%d symbol_sets=%d",
        taxonomy.version, len(taxonomy.asset_classes), len(taxonomy.symbol_sets),
    )
    return taxonomy


@lru_cache(maxsize=1)
def get_default_taxonomy() -> Taxonomy:
    return load_taxonomy()
