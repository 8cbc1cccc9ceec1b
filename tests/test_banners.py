from pathlib import Path


def _create(client, title="Spring in Damascus", cta_link="/offers", image=("banner.png", b"png-bytes", "image/png")):
    data = {}
    if title is not None:
        data["title"] = title
    if cta_link is not None:
        data["cta_link"] = cta_link
    files = {"image": image} if image else None
    return client.post("/banners/", data=data, files=files)


def test_create_banner_stores_upload(client, settings) -> None:
    res = _create(client)
    assert res.status_code == 201
    banner = res.json()["banner"]
    assert banner["title"] == "Spring in Damascus"
    assert banner["is_active"] is True
    assert banner["image"].startswith(settings.upload_dir)
    assert banner["image"].endswith("-banner.png")


def test_create_banner_requires_title_and_image(client) -> None:
    no_title = _create(client, title=None)
    assert no_title.status_code == 400
    assert no_title.json()["detail"] == "Title is required"

    no_image = _create(client, image=None)
    assert no_image.status_code == 400
    assert no_image.json()["detail"] == "Image is required"


def test_list_and_active_banners(client) -> None:
    first = _create(client, title="First").json()["banner"]
    _create(client, title="Second")
    client.patch(f"/banners/{first['_id']}/toggle-status")

    assert len(client.get("/banners/").json()["banners"]) == 2
    active = client.get("/banners/active").json()["banners"]
    assert [b["title"] for b in active] == ["Second"]


def test_toggle_status_message(client) -> None:
    bid = _create(client).json()["banner"]["_id"]
    res = client.patch(f"/banners/{bid}/toggle-status").json()
    assert res == {"success": True, "message": "Banner deactivated successfully", "is_active": False}
    res = client.patch(f"/banners/{bid}/toggle-status").json()
    assert res["message"] == "Banner activated successfully"


def test_update_banner(client) -> None:
    bid = _create(client).json()["banner"]["_id"]

    empty = client.put(f"/banners/{bid}", data={})
    assert empty.status_code == 400
    assert empty.json()["detail"] == "No fields to update"

    res = client.put(f"/banners/{bid}", data={"title": "  Summer  "})
    assert res.json()["banner"]["title"] == "Summer"


def test_banner_id_handling(client) -> None:
    assert client.get("/banners/bad-id").status_code == 400
    assert client.get("/banners/0123456789abcdef01234567").status_code == 404
    assert client.delete("/banners/0123456789abcdef01234567").status_code == 404


def test_delete_banner(client) -> None:
    bid = _create(client).json()["banner"]["_id"]
    assert client.delete(f"/banners/{bid}").json()["message"] == "Banner deleted successfully"
    assert client.get(f"/banners/{bid}").status_code == 404


def test_update_missing_banner_keeps_no_upload(client, settings) -> None:
    res = client.put(
        "/banners/0123456789abcdef01234567",
        data={"title": "Ghost"},
        files={"image": ("ghost.png", b"png-bytes", "image/png")},
    )
    assert res.status_code == 404
    assert not Path(settings.upload_dir).exists()
