"""
Blend compatibility policy.

Pure function over the recipe attributes of the batches being blended.
The default policy:

    - different yeast strains      -> error (blend refused)
    - different styles             -> warning
    - different recipes            -> warning

Missing attributes are ignored: a batch with no recorded yeast never causes
a yeast mismatch on its own.  Warnings are advisory and never block.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from cellar_kernel.domain.results import CompatibilityResult


@dataclass(frozen=True)
class BlendCandidate:
    """Recipe attributes of one batch, as seen by the policy."""

    batch_number: str
    recipe_name: str | None = None
    style: str | None = None
    yeast_strain: str | None = None


def _distinct(values: Iterable[str | None]) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def evaluate_blend(
    candidates: Iterable[BlendCandidate],
    require_matching_yeast: bool = True,
) -> CompatibilityResult:
    """Apply the blend policy to a set of batches."""
    candidates = list(candidates)
    errors: list[str] = []
    warnings: list[str] = []

    yeasts = _distinct(c.yeast_strain for c in candidates)
    if len(yeasts) > 1:
        message = f"Different yeast strains cannot be blended: {', '.join(yeasts)}"
        if require_matching_yeast:
            errors.append(message)
        else:
            warnings.append(message)

    styles = _distinct(c.style for c in candidates)
    if len(styles) > 1:
        warnings.append(f"Blending different styles: {', '.join(styles)}")

    recipes = _distinct(c.recipe_name for c in candidates)
    if len(recipes) > 1:
        warnings.append(f"Blending different recipes: {', '.join(recipes)}")

    return CompatibilityResult(
        compatible=not errors,
        errors=tuple(errors),
        warnings=tuple(warnings),
    )
