"""
Navigation Intelligence Package.

Provides the candidate locator registry used to find elements on unknown markup:
- Built-in locator lists for sections, create buttons, submit buttons and outcome indicators
- Locators derived from observed links and buttons
- Per-locator usage tracking with JSON persistence
"""

from .locator_library import (
    LocatorLibrary,
    LocatorStats,
    item_locators,
    section_locators,
    create_form_locators,
    section_intent,
    create_form_intent,
    is_dynamic_value,
    BREADCRUMB_LOCATORS,
    SUBMIT_LOCATORS,
    SUCCESS_INDICATOR_LOCATORS,
    ERROR_INDICATOR_LOCATORS,
    DYNAMIC_PATTERNS,
)

__all__ = [
    "LocatorLibrary",
    "LocatorStats",
    # Locator builders
    "item_locators",
    "section_locators",
    "create_form_locators",
    "section_intent",
    "create_form_intent",
    "is_dynamic_value",
    # Built-in locator lists
    "BREADCRUMB_LOCATORS",
    "SUBMIT_LOCATORS",
    "SUCCESS_INDICATOR_LOCATORS",
    "ERROR_INDICATOR_LOCATORS",
    "DYNAMIC_PATTERNS",
]
