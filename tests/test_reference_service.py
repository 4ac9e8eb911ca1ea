from datetime import datetime, timedelta, timezone

import pytest

from app.features.references.models import ReferenceRequest
from app.features.references.service import (
    ReferenceTokenError,
    get_usable_reference_request,
    submit_reference,
)


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


async def add_request(db, token="tok-1", **overrides) -> ReferenceRequest:
    values = dict(
        application_id="app-1",
        token=token,
        reference_name="Jane Referee",
        reference_email="jane@example.com",
        reference_type="employer",
        applicant_name="Sam Applicant",
        sent_at=NOW - timedelta(days=2),
        expires_at=NOW + timedelta(days=5),
    )
    values.update(overrides)
    reference = ReferenceRequest(**values)
    db.add(reference)
    await db.commit()
    return reference


async def test_missing_token(db):
    with pytest.raises(ReferenceTokenError) as exc:
        await get_usable_reference_request(db, "", now=NOW)
    assert exc.value.status_code == 400


async def test_unknown_token(db):
    with pytest.raises(ReferenceTokenError) as exc:
        await get_usable_reference_request(db, "nope", now=NOW)
    assert exc.value.status_code == 404
    assert not exc.value.expired


async def test_valid_token(db):
    created = await add_request(db)
    reference = await get_usable_reference_request(db, "tok-1", now=NOW)
    assert reference.id == created.id


async def test_past_expiry_is_flagged(db):
    await add_request(db, expires_at=NOW - timedelta(minutes=1))

    with pytest.raises(ReferenceTokenError) as exc:
        await get_usable_reference_request(db, "tok-1", now=NOW)
    assert exc.value.status_code == 410
    assert exc.value.expired

    with pytest.raises(ReferenceTokenError) as again:
        await get_usable_reference_request(db, "tok-1", now=NOW - timedelta(days=1))
    assert again.value.message == "This reference link has already been used or has expired"


async def test_submit_closes_token(db):
    await add_request(db)

    reference = await submit_reference(db, "tok-1", {"relationship": "manager"}, now=NOW)

    assert reference.status == "completed"
    assert reference.form_data == {"relationship": "manager"}
    assert reference.submitted_at is not None
    with pytest.raises(ReferenceTokenError) as exc:
        await submit_reference(db, "tok-1", {"relationship": "again"}, now=NOW)
    assert exc.value.status_code == 410
