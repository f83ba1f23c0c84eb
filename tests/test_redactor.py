"""Tests for the redaction rules and the Redactor."""

import sys, os, time
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from secure_inquiry import Redactor, redact, scan, Category
from secure_inquiry.patterns import RULES


# ── Rule set ─────────────────────────────────────────────────────────

def test_rule_order_is_email_ssn_credit_card():
    assert [r.category for r in RULES] == [Category.EMAIL, Category.SSN, Category.CREDIT_CARD]


def test_tags_are_distinct_per_category():
    tags = {r.replacement_tag for r in RULES}
    assert tags == {"<REDACTED: EMAIL>", "<REDACTED: SSN>", "<REDACTED: CREDIT_CARD>"}


# ── Email ────────────────────────────────────────────────────────────

def test_redact_email():
    assert redact("Contact me at test@example.com immediately.") == \
        "Contact me at <REDACTED: EMAIL> immediately."


def test_redact_every_email_occurrence():
    out = redact("a@x.com, b.c+tag@mail.example.co.uk and a@x.com")
    assert out == "<REDACTED: EMAIL>, <REDACTED: EMAIL> and <REDACTED: EMAIL>"


def test_email_with_trailing_period():
    assert redact("Write to bob@example.org.") == "Write to <REDACTED: EMAIL>."


# ── SSN ──────────────────────────────────────────────────────────────

def test_redact_ssn_both_forms():
    assert redact("My SSN is 123-45-6789 or 123456789.") == \
        "My SSN is <REDACTED: SSN> or <REDACTED: SSN>."


def test_eight_digit_number_is_not_ssn():
    assert redact("Order 12345678 shipped") == "Order 12345678 shipped"


def test_ten_digit_number_is_not_ssn():
    assert redact("Ref 1234567890") == "Ref 1234567890"


def test_ip_address_unchanged():
    assert redact("My IP is 127.0.0.1") == "My IP is 127.0.0.1"


# ── Credit card ──────────────────────────────────────────────────────

def test_redact_grouped_card():
    assert redact("Charge my card 4242-4242-4242-4242 now.") == \
        "Charge my card <REDACTED: CREDIT_CARD> now."


def test_redact_space_grouped_and_contiguous_card():
    assert redact("4111 1111 1111 1111") == "<REDACTED: CREDIT_CARD>"
    assert redact("4111111111111111") == "<REDACTED: CREDIT_CARD>"


def test_redact_amex_contiguous():
    assert redact("amex 378282246310005 ok") == "amex <REDACTED: CREDIT_CARD> ok"


def test_twelve_digit_number_is_not_card():
    assert redact("id 123456789012") == "id 123456789012"


def test_contiguous_run_without_brand_prefix_is_not_card():
    assert redact("id 9999999999999") == "id 9999999999999"


# ── Mixed / total ────────────────────────────────────────────────────

def test_mixed_categories():
    out = redact("Me: jo@ex.io, SSN 123-45-6789, card 5555 5555 5555 4444.")
    assert out == "Me: <REDACTED: EMAIL>, SSN <REDACTED: SSN>, card <REDACTED: CREDIT_CARD>."


def test_non_pii_text_is_byte_identical():
    text = "The weather is nice today in Melbourne, 22°C, 3 people."
    assert redact(text) == text


def test_empty_and_none_unchanged():
    assert redact("") == ""
    assert redact(None) is None


def test_custom_rule_subset():
    r = Redactor(rule for rule in RULES if rule.category is Category.EMAIL)
    assert r.redact("a@b.com 123-45-6789") == "<REDACTED: EMAIL> 123-45-6789"


def test_scan_reports_spans():
    text = "mail a@b.com ssn 123-45-6789"
    matches = scan(text)
    assert [m.category for m in matches] == [Category.EMAIL, Category.SSN]
    assert all(text[m.start:m.end] == m.text for m in matches)


# ── Adversarial input ────────────────────────────────────────────────

def test_adversarial_input_is_fast():
    nasty = [
        "a" * 50_000 + "@",
        "a@" + "a." * 25_000,
        "1-" * 25_000,
        "a." * 25_000 + "@b",
        "1234 " * 10_000,
    ]
    start = time.perf_counter()
    for text in nasty:
        redact(text)
    assert time.perf_counter() - start < 5.0


def test_long_email_local_part():
    out = redact("mail " + "x" * 70 + "@example.com now")
    assert out == "mail <REDACTED: EMAIL> now"
