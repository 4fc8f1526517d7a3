"""Keyword and exclusion filters for selecting source products.

Two selection modes are supported:

- Broad: a category is selected when its name or slug contains the keyword.
- Exhaustive: when the keyword names a registered ``KeywordProfile``, every
  synonym of the logical category is searched, and the products found are
  then kept only if an inclusion rule fires and no exclusion rule does.

An ``ExclusionProfile`` works the other way round: it drops every product on
which one of its rules fires.

Every decision is logged with the rule name and the term that matched.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Protocol

import structlog

from catalog_migrator.catalog.source_models import RemoteCategory, RemoteProduct

logger = structlog.get_logger()


# ============================================================================
# Rules
# ============================================================================


class Rule(Protocol):
    """A named predicate over a product that reports the term it matched."""

    name: str

    def match(self, product: RemoteProduct) -> str | None:
        """Return the matched term, or None if the rule does not fire."""
        ...


@dataclass(frozen=True)
class TermRule:
    """Fires when any term appears in any of the inspected text fields."""

    name: str
    terms: tuple[str, ...]
    fields: tuple[str, ...] = ("name",)

    def match(self, product: RemoteProduct) -> str | None:
        for field_name in self.fields:
            value = (getattr(product, field_name, "") or "").lower()
            for term in self.terms:
                if term in value:
                    return term
        return None


@dataclass(frozen=True)
class ComboRule:
    """Fires when the product name contains ``required`` and one of ``any_of``."""

    name: str
    required: str
    any_of: tuple[str, ...]

    def match(self, product: RemoteProduct) -> str | None:
        name = product.name.lower()
        if self.required not in name:
            return None
        for term in self.any_of:
            if term in name:
                return f"{self.required}+{term}"
        return None


@dataclass(frozen=True)
class CategoryRule:
    """Fires when one of the product's categories has a term in its name or slug."""

    name: str
    terms: tuple[str, ...]

    def match(self, product: RemoteProduct) -> str | None:
        for category in product.categories:
            haystacks = (category.name.lower(), category.slug.lower())
            for term in self.terms:
                if any(term in haystack for haystack in haystacks):
                    return f"{category.name}:{term}"
        return None


@dataclass(frozen=True)
class RuleMatch:
    """The first rule that fired and the term it matched."""

    rule: str
    term: str


def first_match(rules: tuple[Rule, ...], product: RemoteProduct) -> RuleMatch | None:
    """Evaluate rules in order and return the first that fires.

    Args:
        rules: Rules to evaluate.
        product: Product to test.

    Returns:
        RuleMatch for the first firing rule, or None.
    """
    for rule in rules:
        term = rule.match(product)
        if term is not None:
            return RuleMatch(rule=rule.name, term=term)
    return None


# ============================================================================
# Profiles
# ============================================================================


@dataclass(frozen=True)
class KeywordProfile:
    """Exhaustive lookup for a logical category spread over many remote ones.

    Attributes:
        keyword: Keyword that activates the profile.
        category_terms: Synonyms searched in remote category names and slugs.
        include_rules: A product must fire at least one of these.
        exclude_rules: A product must fire none of these.
    """

    keyword: str
    category_terms: tuple[str, ...]
    include_rules: tuple[Rule, ...]
    exclude_rules: tuple[Rule, ...] = ()

    def match_category(self, category: RemoteCategory) -> str | None:
        """Return the synonym found in the category name or slug."""
        name = category.name.lower()
        slug = category.slug.lower()
        for term in self.category_terms:
            if term in name or term in slug:
                return term
        return None

    def select(self, products: list[RemoteProduct]) -> list[RemoteProduct]:
        """Keep products that fire an inclusion rule and no exclusion rule.

        Args:
            products: Candidate products.

        Returns:
            Selected products, in input order.
        """
        selected = []
        for product in products:
            included = first_match(self.include_rules, product)
            if included is None:
                logger.info(
                    "Product not included",
                    profile=self.keyword,
                    product=product.name,
                )
                continue

            excluded = first_match(self.exclude_rules, product)
            if excluded is not None:
                logger.info(
                    "Product excluded",
                    profile=self.keyword,
                    product=product.name,
                    rule=excluded.rule,
                    term=excluded.term,
                )
                continue

            logger.info(
                "Product included",
                profile=self.keyword,
                product=product.name,
                rule=included.rule,
                term=included.term,
            )
            selected.append(product)

        junior = sum(1 for p in selected if "junior" in p.name.lower())
        logger.info(
            "Keyword profile applied",
            profile=self.keyword,
            candidates=len(products),
            selected=len(selected),
            junior=junior,
            mens=len(selected) - junior,
        )
        return selected


@dataclass(frozen=True)
class ExclusionProfile:
    """Drops every product on which one of its rules fires."""

    name: str
    rules: tuple[Rule, ...]

    def apply(self, products: list[RemoteProduct]) -> list[RemoteProduct]:
        """Filter products through the exclusion rules.

        Args:
            products: Candidate products.

        Returns:
            Products on which no rule fired, in input order.
        """
        kept = []
        for product in products:
            excluded = first_match(self.rules, product)
            if excluded is not None:
                logger.info(
                    "Product excluded",
                    profile=self.name,
                    product=product.name,
                    rule=excluded.rule,
                    term=excluded.term,
                )
                continue
            kept.append(product)

        breakdown = Counter(c.name for p in kept for c in p.categories)
        logger.info(
            "Exclusion profile applied",
            profile=self.name,
            kept=len(kept),
            excluded=len(products) - len(kept),
            categories=dict(breakdown.most_common()),
        )
        return kept


# ============================================================================
# Built-in profiles
# ============================================================================


WICKET_KEEPING_TERMS = (
    "wicket keeping",
    "wicket-keeping",
    "wicketkeeping",
    "wk ",
    "keeper",
    "keeping",
    "wicket glove",
    "wicket pad",
)

CRICKET_BALL_TERMS = (
    "cricket ball",
    "cricket-ball",
    "ball cricket",
    "ball, cricket",
    "leather ball",
    "match ball",
    "test ball",
    "red ball",
    "white ball",
)

WICKET_KEEPING_COMBOS: tuple[Rule, ...] = (
    ComboRule("wk-glove", "glove", ("keeping", "wicket", "wk")),
    ComboRule("wk-pad", "pad", ("keeping", "wicket", "wk")),
    ComboRule("inner-glove", "inner", ("glove",)),
)

WICKET_KEEPING_PROFILE = KeywordProfile(
    keyword="wicket keeping",
    category_terms=(
        "wicket keeping",
        "wicket-keeping",
        "wicket_keeping",
        "wicketkeeping",
        "keeper",
        "wk",
    ),
    include_rules=(TermRule("wk-terms", WICKET_KEEPING_TERMS),) + WICKET_KEEPING_COMBOS,
    exclude_rules=(
        TermRule("non-wk-gear", ("bat", "helmet", "thigh", "elbow", "chest", "abdomen")),
    ),
)

EXCLUDE_WK_AND_BALLS = ExclusionProfile(
    name="exclude-wk-balls",
    rules=(
        TermRule(
            "wk-terms",
            WICKET_KEEPING_TERMS,
            fields=("name", "description", "short_description"),
        ),
        *WICKET_KEEPING_COMBOS,
        TermRule(
            "cricket-ball-terms",
            CRICKET_BALL_TERMS,
            fields=("name", "description", "short_description"),
        ),
        CategoryRule(
            "excluded-category",
            (
                "wicket keeping",
                "wicket-keeping",
                "wicket_keeping",
                "keeper",
                "cricket ball",
                "cricket-ball",
                "ball",
            ),
        ),
    ),
)

KEYWORD_PROFILES: dict[str, KeywordProfile] = {
    WICKET_KEEPING_PROFILE.keyword: WICKET_KEEPING_PROFILE,
}

EXCLUSION_PROFILES: dict[str, ExclusionProfile] = {
    EXCLUDE_WK_AND_BALLS.name: EXCLUDE_WK_AND_BALLS,
}


def get_keyword_profile(keyword: str) -> KeywordProfile | None:
    """Get the exhaustive profile registered for a keyword, if any."""
    return KEYWORD_PROFILES.get(keyword.strip().lower())


def select_categories(
    categories: list[RemoteCategory],
    keyword: str,
) -> list[RemoteCategory]:
    """Select the remote categories a keyword refers to.

    Uses the keyword's exhaustive profile when one is registered, otherwise
    broad name/slug containment.

    Args:
        categories: All remote categories.
        keyword: Category keyword.

    Returns:
        Matching categories, in input order.
    """
    profile = get_keyword_profile(keyword)
    query = keyword.strip().lower()
    selected = []

    for category in categories:
        if profile is not None:
            term = profile.match_category(category)
            rule = f"profile:{profile.keyword}"
        elif query in category.name.lower():
            term, rule = query, "broad:name"
        elif query in category.slug.lower():
            term, rule = query, "broad:slug"
        else:
            term, rule = None, None

        if term is not None:
            logger.info(
                "Category matched",
                keyword=keyword,
                category=category.name,
                rule=rule,
                term=term,
            )
            selected.append(category)

    return selected
