from __future__ import annotations

import importlib
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from apiforge.aat.builder import build
from apiforge.aat.tree import AAT
from apiforge.aat.validation import validate
from apiforge.errors import SpecLoadError
from apiforge.generate.typescript import GeneratorOptions, generate_typescript
from apiforge.spec.model import Spec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    spec_name: str
    aat: AAT
    validated: bool
    source: Optional[str]  # generated TypeScript, None when generation was skipped


def load_spec(target: str, search_path: Optional[Path] = None) -> Spec:
    """
    Resolve "package.module:attr" to a Spec.
    `attr` may be a Spec or a zero-argument callable returning one.
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise SpecLoadError(f"Target must look like 'module:attr', got {target!r}")

    if search_path is not None and str(search_path) not in sys.path:
        sys.path.insert(0, str(search_path))

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise SpecLoadError(f"Cannot import module {module_name!r}: {exc}") from exc

    obj = module
    for part in attr.split("."):
        if not hasattr(obj, part):
            raise SpecLoadError(f"Module {module_name!r} has no attribute {attr!r}")
        obj = getattr(obj, part)

    if callable(obj) and not isinstance(obj, Spec):
        obj = obj()

    if not isinstance(obj, Spec):
        raise SpecLoadError(f"{target!r} is a {type(obj).__name__}, not a Spec")
    return obj


def run_pipeline(
    spec: Spec,
    validate_aat: bool = True,
    generate: bool = False,
    options: Optional[GeneratorOptions] = None,
) -> PipelineResult:
    """spec -> AAT -> (validate) -> (TypeScript)."""
    aat = build(spec)
    logger.info("built %s: %d types, %d services", spec.name, len(aat.types), len(aat.services))

    if validate_aat:
        validate(aat)
        logger.info("validated %s", spec.name)

    source = None
    if generate:
        if not validate_aat:
            # the generator assumes every reference resolves
            validate(aat)
        source = generate_typescript(aat, options)

    return PipelineResult(
        spec_name=spec.name,
        aat=aat,
        validated=validate_aat or generate,
        source=source,
    )
