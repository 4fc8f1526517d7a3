"""Storage bucket classification for product images.

A best-effort heuristic: products are sorted into folders by keyword rules
over the product name. It is not a guaranteed-correct classifier (a name
such as "Bat Grip Cone" lands in the bats bucket), it only keeps the image
library browsable. Rules are evaluated top to bottom and the first match
wins; anything unmatched goes to ``uncategorized``.
"""

import re
from dataclasses import dataclass

from catalog_migrator.catalog.keys import slugify

UNCATEGORIZED = "uncategorized"


@dataclass(frozen=True)
class BrandPattern:
    """Brand folder selected when the pattern matches the product name."""

    folder: str
    pattern: re.Pattern[str]


@dataclass(frozen=True)
class ClassificationRule:
    """Ordered bucket rule.

    Fires when the lowercased name contains every term of at least one
    group in ``any_of`` and none of ``none_of``.

    Attributes:
        name: Rule name reported in the classification.
        bucket: Storage bucket selected by the rule.
        any_of: Alternative term groups.
        none_of: Terms that veto the rule.
        brands: Brand patterns evaluated once the rule fires.
    """

    name: str
    bucket: str
    any_of: tuple[tuple[str, ...], ...]
    none_of: tuple[str, ...] = ()
    brands: tuple[BrandPattern, ...] = ()

    def matches(self, name: str) -> bool:
        if any(term in name for term in self.none_of):
            return False
        return any(all(term in name for term in group) for group in self.any_of)

    def brand_for(self, name: str) -> str | None:
        for brand in self.brands:
            if brand.pattern.search(name):
                return brand.folder
        return None


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying a product name."""

    bucket: str
    brand: str | None
    rule: str | None


def _brand(folder: str, pattern: str) -> BrandPattern:
    return BrandPattern(folder, re.compile(pattern, re.IGNORECASE))


BAT_BRANDS: tuple[BrandPattern, ...] = (
    _brand("a2", r"^a2\s"),
    _brand("bas", r"^bas\s"),
    _brand("bdm", r"^bdm\s"),
    _brand("ceat", r"^ceat\s"),
    _brand("dsc", r"^dsc\s"),
    _brand("gm", r"^gm\s|gunn\s*&\s*moore|gray.?nicolls"),
    _brand("kg", r"^kg\s"),
    _brand("kookaburra", r"kookaburra"),
    _brand("mrf", r"^mrf\s"),
    _brand("nb", r"new.?balance|^nb\s"),
    _brand("rns", r"^rns\s"),
    _brand("sf", r"^sf\s"),
    _brand("sg", r"^sg\s"),
    _brand("ss", r"^ss\s|single\s*s"),
)

CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        "bats",
        "cricket-bats",
        any_of=(("bat",),),
        none_of=("batting",),
        brands=BAT_BRANDS,
    ),
    ClassificationRule("balls", "cricket-balls", any_of=(("ball",),), none_of=("football",)),
    ClassificationRule("kit-bags", "cricket-kit-bags", any_of=(("bag",), ("duffle",))),
    ClassificationRule(
        "wicket-keeping",
        "cricket-wicket-keeping",
        any_of=(("wicket", "keeping"), ("wicket", "keeper")),
    ),
    ClassificationRule(
        "protection",
        "cricket-protection",
        any_of=(
            ("helmet",),
            ("batting", "glove"),
            ("batting", "pad"),
            ("chest", "guard"),
            ("thigh", "pad"),
            ("elbow", "guard"),
            ("abdomen", "guard"),
        ),
    ),
    ClassificationRule(
        "junior",
        "cricket-junior-stock",
        any_of=(("junior",), ("youth",), ("boys",), ("harrow",), ("size 5",), ("size 6",)),
    ),
    ClassificationRule(
        "training",
        "cricket-training-equipment",
        any_of=(("stump",), ("training",), ("practice",)),
    ),
    ClassificationRule(
        "clothing-accessories",
        "cricket-clothing-accessories",
        any_of=(("grip",), ("cover",), ("clothing",), ("shirt",), ("trouser",)),
    ),
)


def classify_product(
    product_name: str,
    rules: tuple[ClassificationRule, ...] = CLASSIFICATION_RULES,
) -> Classification:
    """Pick the storage bucket (and brand, for bats) of a product.

    Args:
        product_name: Product name.
        rules: Ordered rules to evaluate.

    Returns:
        Classification; bucket is ``uncategorized`` if no rule fires.
    """
    name = product_name.lower()
    for rule in rules:
        if rule.matches(name):
            return Classification(bucket=rule.bucket, brand=rule.brand_for(name), rule=rule.name)
    return Classification(bucket=UNCATEGORIZED, brand=None, rule=None)


def product_folder(product_name: str) -> str:
    """Relative folder for a product's images: ``{bucket}/{brand?}/{product}``."""
    classification = classify_product(product_name)
    parts = [classification.bucket, classification.brand, slugify(product_name) or "product"]
    return "/".join(part for part in parts if part)
