import pytest


@pytest.mark.anyio
async def test_admin_user_management(async_client, make_user, headers_for):
    admin = await make_user(role="admin")
    member = await make_user(name="Sami")
    h = headers_for(admin)

    r = await async_client.get("/admin/users?q=sami", headers=h)
    assert [u["id"] for u in r.json()] == [member.id]

    r = await async_client.patch(f"/admin/users/{member.id}/role", json={"role": "admin"}, headers=h)
    assert r.status_code == 200
    assert r.json()["role"] == "admin"

    r = await async_client.patch(f"/admin/users/{member.id}/role", json={"role": "owner"}, headers=h)
    assert r.status_code == 400

    r = await async_client.patch(f"/admin/users/{member.id}/deactivate", headers=h)
    assert r.json()["is_active"] is False

    # token still decodes, but the account lookup rejects it
    r = await async_client.get("/auth/me", headers=headers_for(member))
    assert r.status_code == 401

    assert (await async_client.delete(f"/admin/users/{admin.id}", headers=h)).status_code == 400
    assert (await async_client.delete(f"/admin/users/{member.id}", headers=h)).status_code == 200
    assert (await async_client.delete(f"/admin/users/{member.id}", headers=h)).status_code == 404


@pytest.mark.anyio
async def test_hod_directory(async_client, make_user, headers_for):
    admin = await make_user(role="admin")
    h = headers_for(admin)

    await async_client.post("/hods", json={"name": "B", "designation": "Treasurer", "photo": "/b.png", "order": 2}, headers=h)
    r = await async_client.post("/hods", json={"name": "A", "designation": "President", "photo": "/a.png", "order": 1}, headers=h)
    assert r.status_code == 201
    hod_id = r.json()["id"]

    r = await async_client.get("/hods")
    assert [x["name"] for x in r.json()] == ["A", "B"]

    r = await async_client.patch(f"/hods/{hod_id}", json={"designation": "Chair"}, headers=h)
    assert r.json()["designation"] == "Chair"

    assert (await async_client.post("/hods", json={"name": "C", "designation": "X", "photo": "/c.png"})).status_code == 401
    assert (await async_client.delete(f"/hods/{hod_id}", headers=h)).status_code == 200
    assert (await async_client.get(f"/hods/{hod_id}")).status_code == 404


@pytest.mark.anyio
async def test_committees_with_ordered_members(async_client, make_user, headers_for):
    admin = await make_user(role="admin")
    h = headers_for(admin)

    r = await async_client.post("/committees", json={"name": "Media", "priority": 2}, headers=h)
    media = r.json()["id"]
    await async_client.post("/committees", json={"name": "Sports", "priority": 1}, headers=h)
    assert (await async_client.post("/committees", json={"name": "Media"}, headers=h)).status_code == 409

    await async_client.post(f"/committees/{media}/members", json={"name": "Second", "photo": "/2.png", "order": 2}, headers=h)
    r = await async_client.post(f"/committees/{media}/members", json={"name": "First", "photo": "/1.png", "order": 1}, headers=h)
    first_id = r.json()["id"]

    r = await async_client.get("/committees")
    committees = r.json()
    assert [c["name"] for c in committees] == ["Sports", "Media"]
    assert [m["name"] for m in committees[1]["members"]] == ["First", "Second"]

    assert (await async_client.delete(f"/committees/{media}/members/{first_id}", headers=h)).status_code == 200
    assert (await async_client.delete(f"/committees/{media}/members/{first_id}", headers=h)).status_code == 404
