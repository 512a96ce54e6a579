"""Scraper utilities for normalization, de-duplication and retries."""

from .normalizer import (
    CONDITION_NOT_SPECIFIED,
    PRICE_NOT_LISTED,
    SEE_LISTING_FOR_PRICE,
    SEE_POST_FOR_PRICE,
    ConditionClassifier,
    PriceNormalizer,
    clean_title,
    contains_any,
    dedupe_by_link,
    make_absolute_url,
    query_terms,
)
from .retry import auth_retry, scrape_retry


__all__ = [
    # Normalization
    "PriceNormalizer",
    "ConditionClassifier",
    "clean_title",
    "contains_any",
    "dedupe_by_link",
    "make_absolute_url",
    "query_terms",
    # Sentinels
    "CONDITION_NOT_SPECIFIED",
    "PRICE_NOT_LISTED",
    "SEE_LISTING_FOR_PRICE",
    "SEE_POST_FOR_PRICE",
    # Retry decorators
    "scrape_retry",
    "auth_retry",
]
