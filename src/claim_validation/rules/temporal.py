"""Date and filing-window validation.

Checks are skipped for any date the request does not carry:

- incident date must not lie in the future
- incident date must fall inside the policy period
- the claim must be filed within the filing window for its policy type
"""

from datetime import date
from typing import Optional

from claim_validation.config.settings import TemporalConfig
from claim_validation.schemas.claim import ClaimRequest, ValidationResult


def parse_date(value) -> Optional[date]:
    """Parse a date from a date object or an ISO / DD.MM.YYYY / MM/DD/YYYY string."""
    if value is None or isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    for sep in (".", "/"):
        parts = text.split(sep)
        if len(parts) == 3 and all(p.isdigit() for p in parts):
            a, b, year = (int(p) for p in parts)
            # Dots are day-first, slashes month-first
            day, month = (a, b) if sep == "." else (b, a)
            try:
                return date(year, month, day)
            except ValueError:
                return None
    return None


def validate_dates(
    request: ClaimRequest,
    config: Optional[TemporalConfig] = None,
    today: Optional[date] = None,
) -> ValidationResult:
    """Validate the request's dates.

    Args:
        request: Claim request.
        config: Filing windows per policy type.
        today: Reference date; defaults to ``date.today()``.

    Returns:
        ValidationResult; any error forces manual review.
    """
    config = config or TemporalConfig()
    today = today or date.today()
    errors = []
    warnings = []

    incident = request.incident_date
    submitted = request.submission_date or today

    if incident is None:
        warnings.append("Incident date not provided; temporal checks skipped")
        return ValidationResult(valid=True, warnings=warnings)

    if incident > today:
        errors.append(f"Incident date {incident.isoformat()} is in the future")

    start, end = request.policy_start_date, request.policy_end_date
    if start is not None and incident < start:
        errors.append(
            f"Incident date {incident.isoformat()} is before policy start {start.isoformat()}"
        )
    if end is not None and incident > end:
        errors.append(
            f"Incident date {incident.isoformat()} is after policy end {end.isoformat()}"
        )

    if submitted < incident:
        errors.append(
            f"Submission date {submitted.isoformat()} precedes incident date {incident.isoformat()}"
        )
    else:
        window = config.window_for(request.policy_type.value)
        elapsed = (submitted - incident).days
        if elapsed > window:
            errors.append(
                f"Claim filed {elapsed} days after incident, exceeding the "
                f"{window}-day filing window for {request.policy_type.value} policies"
            )

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)
