# zeroclick/core/etl/transform.py
"""
TRANSFORM MODULE - Coerce the model's loose JSON into the canonical CRM fields

Purpose:
    1. Trim strings, turn "" and "null" into None
    2. Normalize the deal value to a whole, non-negative USD amount
    3. Accept follow-up dates only in strict YYYY-MM-DD form
    4. Accept at_risk only when it is a real boolean

Data Flow:
    model JSON → clean_text() / clean_deal_value() / clean_sentiment()
               → clean_follow_up_date() / clean_at_risk() → CrmFields

Rules:
    - Nothing in here raises on bad input. Each field degrades to None on its
      own, the rest of the record survives.
    - Ambiguity is resolved by rejection, never by guessing.
"""

import math
import re
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Mapping, Optional

from zeroclick.core.schemas import CrmFields, Sentiment


INR_PER_USD = 80
RUPEE_SIGN = "₹"
INR_TAGS = {"INR", "RS", "RS.", RUPEE_SIGN}

# Exact literal only: "None" or "Null" can be a real name
NULL_STRING = "null"

# BIGINT column
MAX_DEAL_VALUE_USD = 2**63 - 1

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

TEXT_FIELDS = ("contact_name", "company_name", "next_step", "full_summary")


# ============================================================================
# STEP 1: STRINGS
# ============================================================================


def clean_text(value: Any) -> Optional[str]:
    """
    Trim a free-text field.

    Examples:
        "  Raj  " → "Raj"
        "" → None
        "null" → None   (the prompt asks for "null" on missing fields)
        42 → None
    """
    if not isinstance(value, str):
        return None

    value = value.strip()
    if not value or value == NULL_STRING:
        return None
    return value


# ============================================================================
# STEP 2: DEAL VALUE
# ============================================================================


def _to_decimal(value: Any) -> Optional[Decimal]:
    # bool is an int subclass, True must not become 1 dollar
    if isinstance(value, bool):
        return None

    if isinstance(value, int):
        return Decimal(value)

    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return Decimal(str(value))

    if isinstance(value, str):
        # "$1,200" / "₹80,000" / "1 200" → "1200"
        cleaned = re.sub(r"[\s,$" + RUPEE_SIGN + r"]", "", value)
        cleaned = re.sub(r"(?i)^(usd|inr|rs\.?)|(usd|inr|rs\.?)$", "", cleaned)
        if not re.fullmatch(r"-?\d+(\.\d+)?", cleaned):
            return None
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return None

    return None


def is_rupee_amount(value: Any, currency: Any = None) -> bool:
    """True when the amount is tagged as Indian rupees."""
    if isinstance(value, str) and (
        RUPEE_SIGN in value or re.search(r"(?i)\b(inr|rs\.?)\b", value)
    ):
        return True
    return isinstance(currency, str) and currency.strip().upper() in INR_TAGS


def clean_deal_value(value: Any, currency: Any = None) -> Optional[int]:
    """
    Normalize a deal value to whole USD.

    Rupee-tagged amounts are divided by INR_PER_USD. The result must be
    finite, >= 0 and fit the column; it is rounded to the nearest dollar.

    Examples:
        1000 → 1000
        "₹80,000" → 1000
        80000 with currency "INR" → 1000
        -5 → None
        "a lot" → None
        True → None
        10**20 → None
    """
    amount = _to_decimal(value)
    if amount is None:
        return None

    if is_rupee_amount(value, currency):
        amount = amount / INR_PER_USD

    if amount < 0 or amount > MAX_DEAL_VALUE_USD:
        return None

    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ============================================================================
# STEP 3: SENTIMENT
# ============================================================================


def clean_sentiment(value: Any) -> Optional[Sentiment]:
    """
    Map onto Positive / Neutral / Negative, case-insensitively.

    Examples:
        "positive" → Sentiment.POSITIVE
        "Mixed" → None
    """
    if isinstance(value, Sentiment):
        return value

    text = clean_text(value)
    if text is None:
        return None

    for sentiment in Sentiment:
        if sentiment.value.lower() == text.lower():
            return sentiment
    return None


# ============================================================================
# STEP 4: FOLLOW-UP DATE
# ============================================================================


def clean_follow_up_date(value: Any) -> Optional[str]:
    """
    Accept only YYYY-MM-DD that is also a real calendar date.

    No lenient parsing on purpose: "03/05/2024" could be March or May.

    Examples:
        "2024-03-05" → "2024-03-05"
        "2024-13-40" → None
        "next Tuesday" → None
    """
    if not isinstance(value, str):
        return None

    value = value.strip()
    if not ISO_DATE_PATTERN.match(value):
        return None

    try:
        date.fromisoformat(value)
    except ValueError:
        return None
    return value


# ============================================================================
# STEP 5: AT RISK FLAG
# ============================================================================


def clean_at_risk(value: Any) -> Optional[bool]:
    """Only a real boolean survives. 1, "true", "yes" → None."""
    if isinstance(value, bool):
        return value
    return None


# ============================================================================
# PUBLIC INTERFACE
# ============================================================================


def normalize(raw: Mapping[str, Any]) -> CrmFields:
    """
    Coerce one parsed model response into CrmFields.

    Never raises: a non-mapping input gives an all-None result.
    """
    if not isinstance(raw, Mapping):
        return CrmFields()

    cleaned: Dict[str, Any] = {field: clean_text(raw.get(field)) for field in TEXT_FIELDS}
    cleaned["deal_value_usd"] = clean_deal_value(
        raw.get("deal_value_usd"), raw.get("deal_currency")
    )
    cleaned["sentiment"] = clean_sentiment(raw.get("sentiment"))
    cleaned["follow_up_date"] = clean_follow_up_date(raw.get("follow_up_date"))
    cleaned["at_risk"] = clean_at_risk(raw.get("at_risk"))

    return CrmFields(**cleaned)


def to_raw(fields: CrmFields) -> Dict[str, Any]:
    """Inverse of normalize: the plain JSON shape the model would have sent."""
    return fields.model_dump(mode="json")
