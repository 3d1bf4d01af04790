"""
Form journeys: open a section's create form, fill it with generated test
data and submit it.

Every value carries a run-unique ``AUTO_QA_<date>_<uuid>`` prefix so records
created during a run can be found and cleaned up afterwards. Each step is
written to the action ledger (CLICK, FILL, SUBMIT, or ERROR on failure).
"""

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from faker import Faker

from navcrawl.document import Document, bounded, capture_screenshot
from navcrawl.exceptions import ExplorerError, SessionExpired
from navcrawl.intelligence.locator_library import (
    SUBMIT_LOCATORS,
    create_form_intent,
    create_form_locators,
)
from navcrawl.ledger import ActionLedger
from navcrawl.models import ActionKind, CandidateLocator
from navcrawl.resolver import ElementResolver
from navcrawl.session import SessionGuard
from navcrawl.success import Outcome, SuccessSignal

logger = logging.getLogger(__name__)


# Field classification patterns
FIELD_PATTERNS = {
    "first_name": [
        r"first.?name", r"fname", r"given.?name", r"forename",
    ],
    "last_name": [
        r"last.?name", r"lname", r"surname", r"family.?name",
    ],
    "email": [
        r"email", r"e-mail", r"mail",
    ],
    "phone": [
        r"phone", r"tel", r"mobile", r"cell", r"contact.?number",
    ],
    "address": [
        r"address", r"street", r"addr1",
    ],
    "city": [
        r"city", r"town",
    ],
    "zip": [
        r"zip", r"postal", r"postcode",
    ],
    "country": [
        r"country", r"nation",
    ],
    "company": [
        r"company", r"organi[sz]ation", r"business", r"client",
    ],
    "website": [
        r"website", r"url", r"web.?address",
    ],
    "date": [
        r"date", r"due", r"deadline",
    ],
    "message": [
        r"message", r"comment", r"note", r"description", r"details",
    ],
    "full_name": [
        r"full.?name", r"name", r"title", r"subject",
    ],
    "search": [
        r"search", r"query", r"q$",
    ],
}

# Never filled: searching changes the list, not the record
SKIPPED_CLASSIFICATIONS = {"search", "password"}

TEXT_FIELD_TYPES = {"text", "email", "tel", "url", "date", "textarea", "search", "input"}


def make_run_prefix(now: Optional[datetime] = None) -> str:
    """Prefix marking entities created by this run, e.g. AUTO_QA_20260105_<uuid>."""
    now = now or datetime.now()
    return f"AUTO_QA_{now:%Y%m%d}_{uuid.uuid4()}"


def classify_field(name: str, id: str, placeholder: str, label: str, field_type: str) -> str:
    """
    Classify a form field based on its attributes.

    Returns classification string like 'email', 'phone', 'company', etc.
    """
    text = f"{name} {id} {placeholder} {label}".lower()

    # Check field type hints first
    if field_type == "email":
        return "email"
    if field_type == "tel":
        return "phone"
    if field_type == "password":
        return "password"
    if field_type == "date":
        return "date"
    if field_type == "url":
        return "website"

    for classification, patterns in FIELD_PATTERNS.items():
        for pattern in patterns:
            if re.search(pattern, text, re.IGNORECASE):
                return classification

    if field_type == "textarea":
        return "message"
    return "unknown"


def generate_test_data(prefix: str, entity: str = "Entity", locale: str = "en_US") -> dict[str, str]:
    """
    Generate randomized, prefix-tagged test data using Faker.

    Args:
        prefix: Run prefix from ``make_run_prefix``
        entity: Kind of record being created (e.g. the section name)
        locale: Faker locale

    Returns:
        Dict of classification -> value
    """
    fake = Faker(locale)
    first = fake.first_name()
    last = fake.last_name()

    return {
        "first_name": f"{prefix}_{first}",
        "last_name": last,
        "full_name": f"{prefix}_{entity}",
        "email": f"{prefix.lower().replace('_', '.')}@test.com",
        "phone": fake.numerify("##########"),
        "address": fake.street_address(),
        "city": fake.city(),
        "zip": fake.postcode(),
        "country": fake.country(),
        "company": f"{prefix}_{fake.company()}",
        "website": fake.url(),
        "date": fake.date(pattern="%Y-%m-%d"),
        "message": f"{prefix} {fake.sentence()}",
        "unknown": f"{prefix}_{entity}",
    }


@dataclass
class FormField:
    """Represents a detected form field."""
    selector: str
    field_type: str
    name: str
    id: str
    placeholder: str
    label: str
    required: bool
    classification: str

    @classmethod
    def from_dict(cls, data: dict) -> "FormField":
        field_type = (data.get("field_type") or "text").lower()
        name = data.get("name") or ""
        id = data.get("id") or ""
        placeholder = data.get("placeholder") or ""
        label = data.get("label") or ""
        return cls(
            selector=data["selector"],
            field_type=field_type,
            name=name,
            id=id,
            placeholder=placeholder,
            label=label,
            required=bool(data.get("required", False)),
            classification=classify_field(name, id, placeholder, label, field_type),
        )


@dataclass
class JourneyResult:
    """Outcome of one create-form journey."""
    section: str
    opened: bool = False
    filled: list[str] = field(default_factory=list)
    submitted: bool = False
    outcome: Outcome = Outcome.UNKNOWN
    evidence: str = ""
    entity_name: str = ""
    screenshots: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "section": self.section,
            "opened": self.opened,
            "filled": self.filled,
            "submitted": self.submitted,
            "outcome": self.outcome.value,
            "evidence": self.evidence,
            "entity_name": self.entity_name,
            "screenshots": self.screenshots,
        }


class FormJourney:
    """Creates a test record in a section through its create form."""

    def __init__(
        self,
        document: Document,
        ledger: ActionLedger,
        resolver: Optional[ElementResolver] = None,
        signal: Optional[SuccessSignal] = None,
        guard: Optional[SessionGuard] = None,
        prefix: Optional[str] = None,
        timeout_ms: int = 30000,
        screenshot_dir: Optional[str] = None,
    ):
        self.document = document
        self.ledger = ledger
        self.resolver = resolver or ElementResolver(document, timeout_ms)
        self.signal = signal or SuccessSignal(self.resolver.library, timeout_ms=timeout_ms)
        self.guard = guard
        self.prefix = prefix or make_run_prefix()
        self.timeout_ms = timeout_ms
        self.screenshot_dir = screenshot_dir

    async def analyze_fields(self) -> list[FormField]:
        """Fields of the currently open form, classified."""
        raw = await bounded(self.document.enumerate_form_fields(), self.timeout_ms, "form fields")
        return [FormField.from_dict(f) for f in raw if f.get("selector")]

    async def run(self, section: str, locators: Optional[list[CandidateLocator]] = None) -> JourneyResult:
        """
        Open, fill and submit the create form of a section.

        The document should already show the section. Failures are recorded
        in the ledger and reflected in the result; only SessionExpired raises.

        Args:
            section: Section name, e.g. "Clients"
            locators: Locators for the control that opens the form

        Returns:
            JourneyResult
        """
        result = JourneyResult(section=section)
        intent = create_form_intent(section)
        form_location = await self.document.current_location()

        # Open the form
        if not await self._activate(locators or create_form_locators(section), intent, result):
            return result
        result.opened = True

        # Fill it
        data = generate_test_data(self.prefix, section or "Entity")
        result.entity_name = data["full_name"]
        try:
            fields = await self.analyze_fields()
        except Exception as e:
            logger.warning(f"Could not read create form for {section}: {e}")
            fields = []
        for form_field in fields:
            if await self._fill(form_field, data):
                result.filled.append(form_field.classification)

        if not result.filled:
            logger.warning(f"No fillable fields found in create form for {section}")

        # Submit it
        await self._screenshot(f"{section}_before_submit", result)
        if not await self._activate(SUBMIT_LOCATORS, "submit form", result, kind=ActionKind.SUBMIT):
            return result
        result.submitted = True
        await self._screenshot(f"{section}_after_submit", result)

        result.outcome, result.evidence = await self.signal.evaluate(self.document, form_location)
        location = await self.document.current_location()
        self.ledger.append(
            ActionKind.SUBMIT,
            f"outcome of {intent}",
            location,
            result.outcome == Outcome.SUCCESS,
            f"{result.outcome.value}: {result.evidence}".rstrip(": "),
        )
        logger.info(f"Create {section}: {result.outcome.value}")
        return result

    async def _screenshot(self, step: str, result: JourneyResult) -> None:
        path = await capture_screenshot(self.document, self.screenshot_dir, f"journey_{step}", self.timeout_ms)
        if path:
            result.screenshots.append(path)

    async def _activate(
        self,
        locators: list[CandidateLocator],
        intent: str,
        result: JourneyResult,
        kind: ActionKind = ActionKind.CLICK,
    ) -> bool:
        resolved = await self.resolver.resolve(locators, intent)
        location = await self.document.current_location()
        if resolved is None:
            self.ledger.append(ActionKind.ERROR, intent, location, False, "ResolutionFailure: no candidate locator matched")
            await self._screenshot(f"{result.section}_error", result)
            return False

        try:
            await bounded(self.document.click(resolved.element), self.timeout_ms, intent)
            await self.document.wait_for_settled(self.timeout_ms)
        except SessionExpired:
            raise
        except Exception as e:
            name = type(e).__name__ if isinstance(e, ExplorerError) else f"ActivationError ({type(e).__name__})"
            logger.warning(f"Journey step '{intent}' failed: {e}")
            self.ledger.append(ActionKind.ERROR, intent, location, False, f"{name}: {e}")
            await self._screenshot(f"{result.section}_error", result)
            return False

        location = await self.document.current_location()
        self.ledger.append(kind, intent, location, True, resolved.description)
        if self.guard:
            await self.guard.check(self.document)
        return True

    async def _fill(self, form_field: FormField, data: dict[str, str]) -> bool:
        if form_field.classification in SKIPPED_CLASSIFICATIONS:
            return False
        if form_field.field_type not in TEXT_FIELD_TYPES:
            return False
        value = data.get(form_field.classification)
        if not value:
            return False

        target = f"{form_field.classification}: {form_field.selector}"
        location = await self.document.current_location()
        try:
            elements = await bounded(self.document.query(form_field.selector), self.timeout_ms, target)
            element = next(iter(elements or []), None)
            if element is None:
                return False
            await bounded(self.document.fill(element, value), self.timeout_ms, target)
        except Exception as e:
            logger.debug(f"Could not fill {form_field.selector}: {e}")
            self.ledger.append(ActionKind.FILL, target, location, False, str(e))
            return False

        self.ledger.append(ActionKind.FILL, target, location, True, value)
        return True
