"""
Proposal document rendering for JobTalk.

This module provides deterministic templates that render a client-facing
proposal from the finalized job fields, budget line items, payment split and
terms, as either HTML or plain text. Rendering is a pure function of its
inputs plus the date stamp.
"""

import base64
import html
import re
from datetime import date
from typing import Dict, List, Literal, Mapping, NamedTuple, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .config import config
from .store import FieldStore
from .types import NOT_PROVIDED, SENTINEL, CategorizedFields, ContactInformation, ImageAttachment, LineItem

DocumentFormat = Literal["html", "text"]

# "$" optional, digits with optional thousands separators, optional cents
AMOUNT_PATTERN = re.compile(r"\$?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{2})?")

DEFAULT_DOWN_PAYMENT = "50"
DEFAULT_TERMS = "Standard contractor terms apply."


class BudgetLine(NamedTuple):
    """One line of free-text budget together with the amounts found on it."""

    text: str
    amounts: List[float]


class PaymentSummary(NamedTuple):
    total: float
    down_payment: float
    remainder: float


def format_money(amount: float) -> str:
    """Format an amount as ``$1,234.56``."""
    return f"${amount:,.2f}"


def parse_amount(token: str) -> float:
    return float(token.replace("$", "").replace(",", ""))


def parse_budget_text(budget: str) -> List[BudgetLine]:
    """
    Scan free-text budget line by line for monetary amounts.

    Any number on a line counts, so quantities, dates or phone numbers written
    into the budget are picked up as prices as well.
    """
    lines = []
    for raw in (budget or "").splitlines():
        text = raw.strip()
        if not text:
            continue
        amounts = [parse_amount(match.group(0)) for match in AMOUNT_PATTERN.finditer(text)]
        lines.append(BudgetLine(text=text, amounts=amounts))
    return lines


def compute_payment(total: float, down_payment_percent: float) -> PaymentSummary:
    """Split a total into down payment and remainder."""
    down = total * (down_payment_percent / 100)
    return PaymentSummary(total=total, down_payment=down, remainder=total - down)


def _display(value: Optional[str], fallback: str = NOT_PROVIDED) -> str:
    if value is None:
        return fallback
    text = str(value).strip()
    return text or fallback


def _percent_label(percent: float) -> str:
    return f"{percent:g}%"


class DocumentParams(BaseModel):
    """
    Flat named-parameter view of a proposal.

    Each parameter is defaulted on its own when missing or blank.
    """

    scope: str = NOT_PROVIDED
    name: str = NOT_PROVIDED
    address: str = NOT_PROVIDED
    phone: str = NOT_PROVIDED
    email: str = NOT_PROVIDED
    timeline: str = NOT_PROVIDED
    budget: str = NOT_PROVIDED
    down_payment: str = Field(default=DEFAULT_DOWN_PAYMENT, alias="downPayment")
    terms: str = DEFAULT_TERMS

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_query(cls, params: Mapping[str, Optional[str]]) -> "DocumentParams":
        """Build from a mapping of flat parameters, defaulting missing or blank values."""
        defaults = cls()
        values: Dict[str, str] = {}
        for field_name, field in cls.model_fields.items():
            key = field.alias or field_name
            raw = params.get(key, params.get(field_name))
            values[field_name] = _display(raw, getattr(defaults, field_name))
        return cls(**values)

    @classmethod
    def from_store(cls, store: FieldStore) -> "DocumentParams":
        fields = store.fields
        contact = fields.contact_information
        return cls.from_query(
            {
                "scope": fields.scope_of_work,
                "name": contact.name,
                "address": contact.address,
                "phone": contact.phone,
                "email": contact.email,
                "timeline": fields.timeline,
                "budget": fields.budget,
                "downPayment": f"{store.down_payment_percent:g}",
                "terms": store.terms,
            }
        )

    def to_query(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True)

    def to_fields(self) -> CategorizedFields:
        return CategorizedFields(
            scope_of_work=self.scope,
            contact_information=ContactInformation(name=self.name, address=self.address, phone=self.phone, email=self.email),
            timeline=self.timeline,
            budget=self.budget,
        )

    @property
    def down_payment_percent(self) -> float:
        try:
            value = float(self.down_payment.rstrip("%"))
        except ValueError:
            return float(DEFAULT_DOWN_PAYMENT)
        return min(max(value, 0.0), 100.0)


class DocumentRenderer:
    """
    Renders a proposal from finalized job fields.

    Supports two formats:
    - html: A standalone HTML document with escaped user text and embedded images
    - text: Plain text suitable for email or the clipboard
    """

    def __init__(self, company_title: str = "Job Proposal"):
        self.company_title = company_title
        self.formats = {"html": self._render_html, "text": self._render_text}

    def render(
        self,
        fields: CategorizedFields,
        line_items: Sequence[LineItem] = (),
        down_payment_percent: Optional[float] = None,
        terms: Optional[str] = None,
        images: Sequence[ImageAttachment] = (),
        today: Optional[date] = None,
        fmt: str = "html",
    ) -> str:
        """
        Render a proposal document.

        Args:
            fields: Categorized (and possibly edited) job fields
            line_items: Budget line items; when empty the budget text is parsed instead
            down_payment_percent: Share of the total due up front
            terms: Free-text payment terms
            images: Reference images with descriptions
            today: Date stamp for the document (defaults to the current date)
            fmt: Output format (html, text)

        Returns:
            Rendered document as string

        Raises:
            ValueError: If the format is not supported
        """
        if fmt not in self.formats:
            raise ValueError(f"Unsupported format: {fmt}. Available: {list(self.formats.keys())}")

        percent = config.default_down_payment if down_payment_percent is None else down_payment_percent
        context = {
            "fields": fields,
            "line_items": list(line_items),
            "percent": percent,
            "terms": _display(terms if terms is not None else config.default_terms),
            "images": list(images),
            "today": (today or date.today()).strftime("%B %d, %Y"),
        }
        return self.formats[fmt](**context)

    def render_store(self, store: FieldStore, today: Optional[date] = None, fmt: str = "html") -> str:
        """Render everything held by a field store."""
        return self.render(
            store.fields,
            store.line_items,
            store.down_payment_percent,
            store.terms,
            images=store.images,
            today=today,
            fmt=fmt,
        )

    def render_params(self, params: DocumentParams, today: Optional[date] = None, fmt: str = "html") -> str:
        """Render from the flat named-parameter form."""
        return self.render(params.to_fields(), (), params.down_payment_percent, params.terms, today=today, fmt=fmt)

    def _budget_rows(self, fields: CategorizedFields, line_items: List[LineItem]) -> Tuple[Optional[List[BudgetLine]], float]:
        """Return the scanned budget lines and the total; lines are None when line items drive the total."""
        if line_items:
            total = sum(item.subtotal for item in line_items)
            return None, total
        if _display(fields.budget) in (SENTINEL, NOT_PROVIDED):
            return [], 0.0
        lines = parse_budget_text(fields.budget)
        total = sum(amount for line in lines for amount in line.amounts)
        return lines, total

    def _render_text(self, fields, line_items, percent, terms, images, today) -> str:
        contact = fields.contact_information
        sections = [f"{self.company_title.upper()}\nDate: {today}"]

        sections.append(
            "CONTACT INFORMATION\n"
            f"Name: {_display(contact.name)}\n"
            f"Address: {_display(contact.address)}\n"
            f"Phone: {_display(contact.phone)}\n"
            f"Email: {_display(contact.email)}"
        )
        sections.append(f"SCOPE OF WORK\n{_display(fields.scope_of_work)}")

        if images:
            rows = [f"- {image.filename}: {_display(image.description, 'No description')}" for image in images]
            sections.append("REFERENCE IMAGES\n" + "\n".join(rows))

        sections.append(f"TIMELINE\n{_display(fields.timeline)}")

        budget_lines, total = self._budget_rows(fields, line_items)
        budget = ["BUDGET"]
        if budget_lines is None:
            budget.append(_display(fields.budget))
            for item in line_items:
                budget.append(f"{item.quantity:g} x {item.item_name} @ {format_money(item.price)} = {format_money(item.subtotal)}")
        elif budget_lines:
            for line in budget_lines:
                amounts = ", ".join(format_money(a) for a in line.amounts) if line.amounts else "no amount found"
                budget.append(f"{line.text} [{amounts}]")
        else:
            budget.append(_display(fields.budget))
        sections.append("\n".join(budget))

        payment = compute_payment(total, percent)
        sections.append(
            "PAYMENT\n"
            f"Total: {format_money(payment.total)}\n"
            f"Down payment ({_percent_label(percent)}): {format_money(payment.down_payment)}\n"
            f"Due on completion: {format_money(payment.remainder)}"
        )
        sections.append(f"TERMS\n{terms}")

        return "\n\n".join(sections) + "\n"

    def _render_html(self, fields, line_items, percent, terms, images, today) -> str:
        esc = html.escape
        contact = fields.contact_information
        parts = [
            "<!DOCTYPE html>",
            '<html lang="en">',
            "<head>",
            '<meta charset="utf-8">',
            f"<title>{esc(self.company_title)}</title>",
            "</head>",
            "<body>",
            f"<h1>{esc(self.company_title)}</h1>",
            f'<p class="date">{esc(today)}</p>',
            "<h2>Contact Information</h2>",
            "<ul>",
            f"<li><strong>Name:</strong> {esc(_display(contact.name))}</li>",
            f"<li><strong>Address:</strong> {esc(_display(contact.address))}</li>",
            f"<li><strong>Phone:</strong> {esc(_display(contact.phone))}</li>",
            f"<li><strong>Email:</strong> {esc(_display(contact.email))}</li>",
            "</ul>",
            "<h2>Scope of Work</h2>",
        ]
        parts.extend(self._html_paragraphs(fields.scope_of_work))

        if images:
            parts.append('<div class="images">')
            for image in images:
                encoded = base64.b64encode(image.data).decode("ascii")
                parts.append("<figure>")
                parts.append(f'<img src="data:{esc(image.content_type)};base64,{encoded}" alt="{esc(image.filename)}">')
                parts.append(f"<figcaption>{esc(_display(image.description, 'No description'))}</figcaption>")
                parts.append("</figure>")
            parts.append("</div>")

        parts.append("<h2>Timeline</h2>")
        parts.extend(self._html_paragraphs(fields.timeline))

        parts.append("<h2>Budget</h2>")
        budget_lines, total = self._budget_rows(fields, line_items)
        if budget_lines is None:
            parts.extend(self._html_paragraphs(fields.budget))
            parts.append("<table>")
            parts.append("<tr><th>Qty</th><th>Item</th><th>Unit Price</th><th>Subtotal</th></tr>")
            for item in line_items:
                parts.append(
                    f"<tr><td>{item.quantity:g}</td><td>{esc(item.item_name)}</td>"
                    f"<td>{format_money(item.price)}</td><td>{format_money(item.subtotal)}</td></tr>"
                )
            parts.append("</table>")
        elif budget_lines:
            parts.append("<ul>")
            for line in budget_lines:
                amounts = ", ".join(format_money(a) for a in line.amounts) if line.amounts else "no amount found"
                parts.append(f"<li>{esc(line.text)} <em>({amounts})</em></li>")
            parts.append("</ul>")
        else:
            parts.extend(self._html_paragraphs(fields.budget))

        payment = compute_payment(total, percent)
        parts.extend(
            [
                "<h2>Payment</h2>",
                "<ul>",
                f"<li><strong>Total:</strong> {format_money(payment.total)}</li>",
                f"<li><strong>Down payment ({_percent_label(percent)}):</strong> {format_money(payment.down_payment)}</li>",
                f"<li><strong>Due on completion:</strong> {format_money(payment.remainder)}</li>",
                "</ul>",
                "<h2>Terms</h2>",
            ]
        )
        parts.extend(self._html_paragraphs(terms))
        parts.extend(["</body>", "</html>"])
        return "\n".join(parts) + "\n"

    def _html_paragraphs(self, text: Optional[str]) -> List[str]:
        paragraphs = []
        for block in _display(text).split("\n\n"):
            if block.strip():
                escaped = html.escape(block.strip()).replace("\n", "<br>")
                paragraphs.append(f"<p>{escaped}</p>")
        return paragraphs


def render_document(
    fields: CategorizedFields,
    line_items: Sequence[LineItem] = (),
    down_payment_percent: Optional[float] = None,
    terms: Optional[str] = None,
    fmt: str = "html",
    today: Optional[date] = None,
) -> str:
    """Convenience function rendering a proposal with the default renderer."""
    return DocumentRenderer().render(fields, line_items, down_payment_percent, terms, today=today, fmt=fmt)
