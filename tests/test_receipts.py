import base64

import pytest

from clubhub.services import receipts
from clubhub.services import registrations as reg
from clubhub.services import verification
from clubhub.services.errors import NotFoundError, ValidationError


async def _paid_registration(db, make_user, make_event):
    user = await make_user(name="Amal Saleh")
    event = await make_event(title="Eid Gathering", requires_payment=True, payment_amount=50)
    result = await reg.register(db, event.id, user.id, reg.RegistrationForm(matric_number="M9"))
    return user, event, result.receipt


@pytest.mark.anyio
async def test_pdf_requires_verified_status(db, make_user, make_event):
    admin = await make_user(role="admin")
    user, event, receipt = await _paid_registration(db, make_user, make_event)

    with pytest.raises(ValidationError, match="Pending"):
        await receipts.render_receipt(db, event.id, user.id, "pdf")

    await verification.approve(db, receipt.id, admin.id)

    rendered = await receipts.render_receipt(db, event.id, user.id, "pdf")
    assert rendered.media_type == "application/pdf"
    assert rendered.content.startswith(b"%PDF")
    assert rendered.fallback is False


@pytest.mark.anyio
async def test_html_has_no_verification_gate(db, make_user, make_event):
    user, event, receipt = await _paid_registration(db, make_user, make_event)

    rendered = await receipts.render_receipt(db, event.id, user.id, "html")

    assert rendered.media_type == "text/html"
    assert receipt.receipt_number in rendered.content
    assert "Amal Saleh" in rendered.content
    assert "Eid Gathering" in rendered.content
    assert "PENDING" in rendered.content


@pytest.mark.anyio
async def test_pdf_failure_falls_back_to_html(db, make_user, make_event, monkeypatch):
    admin = await make_user(role="admin")
    user, event, receipt = await _paid_registration(db, make_user, make_event)
    await verification.approve(db, receipt.id, admin.id)

    def broken(view):
        raise RuntimeError("font missing")

    monkeypatch.setattr(receipts, "render_receipt_pdf", broken)

    rendered = await receipts.render_receipt(db, event.id, user.id, "pdf")
    assert rendered.fallback is True
    assert rendered.media_type == "text/html"
    assert receipt.receipt_number in rendered.content


@pytest.mark.anyio
async def test_unknown_format_and_missing_receipt(db, make_user, make_event):
    user = await make_user()
    event = await make_event()
    await reg.register(db, event.id, user.id, reg.RegistrationForm())

    with pytest.raises(ValidationError):
        await receipts.render_receipt(db, event.id, user.id, "docx")
    with pytest.raises(NotFoundError):
        await receipts.render_receipt(db, event.id, user.id, "html")


def test_share_token_format():
    token = receipts.encode_share_token(7, 12, "REC-20260101-ABC123")
    assert base64.b64decode(token).decode() == "7:12:REC-20260101-ABC123"
    assert receipts.decode_share_token(token) == (7, 12, "REC-20260101-ABC123")

    urlsafe = token.replace("+", "-").replace("/", "_").rstrip("=")
    assert receipts.decode_share_token(urlsafe) == (7, 12, "REC-20260101-ABC123")

    with pytest.raises(NotFoundError):
        receipts.decode_share_token("not base64!!")
    with pytest.raises(NotFoundError):
        receipts.decode_share_token(base64.b64encode(b"only-one-part").decode())


@pytest.mark.anyio
async def test_shared_view_matches_owner_html_download(async_client, db, make_user, make_event, headers_for):
    user, event, receipt = await _paid_registration(db, make_user, make_event)

    share = await async_client.get(f"/receipts/event/{event.id}/share", headers=headers_for(user))
    assert share.status_code == 200
    body = share.json()
    assert body["share_url"].endswith(f"/receipt/{body['share_token']}")

    shared = await async_client.get(f"/receipts/shared/{body['share_token']}")
    own = await async_client.get(
        f"/receipts/event/{event.id}/download?format=html",
        headers=headers_for(user),
    )

    assert shared.status_code == 200
    assert own.status_code == 200
    assert shared.text == own.text


@pytest.mark.anyio
async def test_shared_token_with_wrong_receipt_number_is_404(async_client, db, make_user, make_event):
    user, event, _ = await _paid_registration(db, make_user, make_event)

    forged = receipts.encode_share_token(event.id, user.id, "REC-20000101-XXXXXX")
    r = await async_client.get(f"/receipts/shared/{forged}")
    assert r.status_code == 404

    r = await async_client.get("/receipts/shared/%25%25%25")
    assert r.status_code == 404


@pytest.mark.anyio
async def test_download_endpoint_gate_and_access(async_client, db, make_user, make_event, headers_for):
    admin = await make_user(role="admin")
    stranger = await make_user()
    user, event, receipt = await _paid_registration(db, make_user, make_event)

    r = await async_client.get(f"/receipts/event/{event.id}/download")
    assert r.status_code == 401

    r = await async_client.get(f"/receipts/event/{event.id}/download", headers=headers_for(user))
    assert r.status_code == 400
    assert "Pending" in r.json()["detail"]

    r = await async_client.get(
        f"/receipts/event/{event.id}/download?format=html&user_id={user.id}",
        headers=headers_for(stranger),
    )
    assert r.status_code == 403

    await async_client.patch(f"/admin/payments/{receipt.id}/approve", headers=headers_for(admin))

    r = await async_client.get(f"/receipts/event/{event.id}/download", headers=headers_for(user))
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert "attachment" in r.headers["content-disposition"]
    assert r.content.startswith(b"%PDF")

    r = await async_client.get(
        f"/receipts/event/{event.id}/download?user_id={user.id}",
        headers=headers_for(admin),
    )
    assert r.status_code == 200


@pytest.mark.anyio
async def test_user_receipt_listing(async_client, db, make_user, make_event, headers_for):
    user, event, receipt = await _paid_registration(db, make_user, make_event)

    r = await async_client.get("/receipts/user/receipts", headers=headers_for(user))
    assert r.status_code == 200
    items = r.json()["receipts"]
    assert len(items) == 1
    assert items[0]["event_title"] == "Eid Gathering"
    assert items[0]["receipt"]["receipt_number"] == receipt.receipt_number

    r = await async_client.get(f"/receipts/event/{event.id}", headers=headers_for(user))
    assert r.status_code == 200
    assert r.json()["receipt"]["user_name"] == "Amal Saleh"


@pytest.mark.anyio
async def test_standalone_receipt_download_needs_paid_payment(async_client, db, make_user, make_event, headers_for):
    admin = await make_user(role="admin")
    stranger = await make_user()
    user, event, receipt = await _paid_registration(db, make_user, make_event)

    listing = await async_client.get("/payments/receipts", headers=headers_for(user))
    assert listing.status_code == 200
    standalone = listing.json()["receipts"][0]
    assert standalone["pdf_generated"] is True

    url = f"/payments/receipts/{standalone['receipt_id']}/download"
    assert (await async_client.get(url, headers=headers_for(user))).status_code == 400
    assert (await async_client.get(url, headers=headers_for(stranger))).status_code == 403

    await async_client.patch(f"/admin/payments/{receipt.id}/approve", headers=headers_for(admin))

    r = await async_client.get(url, headers=headers_for(user))
    assert r.status_code == 200
    assert r.content.startswith(b"%PDF")

    proof = await async_client.get(f"/payments/proof/{receipt.payment_id}", headers=headers_for(user))
    assert proof.status_code == 200
    assert proof.json()["payment"]["status"] == "paid"


@pytest.mark.anyio
async def test_standalone_receipt_from_earlier_registration_is_not_issued(
    async_client, db, make_user, make_event, headers_for
):
    admin = await make_user(role="admin")
    user, event, receipt = await _paid_registration(db, make_user, make_event)
    h = headers_for(user)

    await async_client.patch(f"/admin/payments/{receipt.id}/approve", headers=headers_for(admin))
    old = (await async_client.get("/payments/receipts", headers=h)).json()["receipts"][0]["receipt_id"]
    assert (await async_client.get(f"/payments/receipts/{old}/download", headers=h)).status_code == 200

    await async_client.post(f"/events/{event.id}/unregister", headers=h)
    r = await async_client.post(f"/events/{event.id}/register", data={"name": "Amal"}, headers=h)
    new_number = r.json()["receipt"]["receipt_number"]
    assert r.json()["receipt"]["payment_status"] == "Pending"

    listed = [x["receipt_id"] for x in (await async_client.get("/payments/receipts", headers=h)).json()["receipts"]]
    assert set(listed) == {old, new_number}

    for number in listed:
        r = await async_client.get(f"/payments/receipts/{number}/download", headers=h)
        assert r.status_code == 400
    assert (await async_client.get(f"/receipts/event/{event.id}/download", headers=h)).status_code == 400
