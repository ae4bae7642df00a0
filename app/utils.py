"""
Utility functions for the membership API.
"""

from datetime import datetime, timezone

from app.schemas import SmsStatus, SubmissionRow


def isoformat_utc(value: datetime) -> str:
    """
    Format a timestamp as ISO-8601 UTC with a Z suffix.

    SQLite hands back naive datetimes; those are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def submission_to_row(submission) -> SubmissionRow:
    """Convert a Submission ORM object into its listing row."""
    return SubmissionRow(
        id=str(submission.id),
        name=submission.name,
        phone=submission.phone,
        businessTitle=submission.business_title,
        address=submission.address or {},
        addressVersion=submission.address_version,
        rating=submission.rating,
        createdAt=isoformat_utc(submission.created_at),
        smsStatus=SmsStatus(**submission.sms_status) if submission.sms_status else None,
    )
