import asyncio

import pytest
from fastapi.testclient import TestClient

from photobooth.config.settings import settings
from photobooth.infrastructure.database.repository import InMemoryRecordStore
from photobooth.main import create_app

from conftest import FakeCamera, FakeClock, MemoryUploadStorage, png_bytes, png_data_url

API = settings.API_V1_STR


class Booth:
    def __init__(self, fail_camera=False, sleep=None):
        self.store = InMemoryRecordStore()
        self.uploads = MemoryUploadStorage()
        self.clock = FakeClock()
        self.cameras = []
        self.fail_camera = fail_camera
        self.sleep = sleep or self.clock.sleep

    def camera(self):
        cam = FakeCamera(fail_acquire=self.fail_camera)
        self.cameras.append(cam)
        return cam


def make_client(booth: Booth) -> TestClient:
    app = create_app(
        record_store=booth.store,
        upload_storage=booth.uploads,
        camera_factory=booth.camera,
        sleep=booth.sleep,
        seed_defaults=False,
    )
    return TestClient(app)


FRAME_BODY = {
    "name": "Birthday",
    "image": png_data_url((400, 600), (255, 255, 255, 255)),
    "size": "4x6",
    "areasOnTop": True,
    "areas": [
        {"id": "a1", "type": "portrait", "x": 50, "y": 50, "width": 80, "height": 120, "rotation": 0, "order": 1},
        {"id": "a2", "type": "square", "x": 200, "y": 300, "width": 100, "height": 100, "rotation": 15, "order": 2},
    ],
}


@pytest.fixture
def booth():
    return Booth()


@pytest.fixture
def client(booth):
    with make_client(booth) as c:
        yield c


def create_frame(client) -> dict:
    res = client.post(f"{API}/frames", json=FRAME_BODY)
    assert res.status_code == 201, res.text
    return res.json()


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_upload_frame_accepts_png(client, booth):
    res = client.post(f"{API}/upload-frame", files={"file": ("bg.png", png_bytes(), "image/png")})
    assert res.status_code == 200
    assert res.json()["url"] in booth.uploads.files


def test_upload_frame_rejects_gif(client, booth):
    res = client.post(f"{API}/upload-frame", files={"file": ("bg.gif", b"GIF89a", "image/gif")})
    assert res.status_code == 400
    assert "PNG" in res.json()["detail"]
    assert booth.uploads.files == {}


def test_initial_crop_box(client):
    res = client.get(f"{API}/crop-box/initial", params={"size": "2x4", "container_width": 1000, "container_height": 1000})
    box = res.json()
    assert box["aspect"] == pytest.approx(0.5)
    assert box["h"] == pytest.approx(0.8)
    assert box["w"] == pytest.approx(0.4)


def test_crop_frame_extracts_pixels(client, booth):
    res = client.post(
        f"{API}/crop-frame",
        files={"file": ("big.png", png_bytes((300, 450)), "image/png")},
        data={"size": "4x6", "x": "0.1", "y": "0.2", "w": "0.5", "h": "0.5"},
    )
    assert res.status_code == 200, res.text
    body = res.json()
    assert (body["width"], body["height"]) == (150, 225)
    assert body["url"].endswith("big.png")


def test_crop_frame_rejects_box_outside_image(client):
    res = client.post(
        f"{API}/crop-frame",
        files={"file": ("big.png", png_bytes((300, 450)), "image/png")},
        data={"x": "0.8", "y": "0", "w": "0.5", "h": "0.5"},
    )
    assert res.status_code == 400


def test_frame_crud(client):
    frame = create_frame(client)
    assert frame["areasOnTop"] is True
    assert [a["order"] for a in frame["areas"]] == [1, 2]

    assert client.get(f"{API}/frames/{frame['id']}").json()["name"] == "Birthday"
    assert [f["id"] for f in client.get(f"{API}/frames").json()] == [frame["id"]]

    updated = client.put(f"{API}/frames/{frame['id']}", json={**FRAME_BODY, "name": "Renamed"}).json()
    assert updated["id"] == frame["id"]
    assert updated["createdAt"] == frame["createdAt"]

    res = client.delete(f"{API}/frames/{frame['id']}")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"
    assert client.get(f"{API}/frames/{frame['id']}").status_code == 404


def test_frame_validation_errors(client):
    assert client.post(f"{API}/frames", json={**FRAME_BODY, "name": "  "}).status_code == 400
    assert client.post(f"{API}/frames", json={**FRAME_BODY, "image": ""}).status_code == 400


def test_missing_frame_is_404(client):
    res = client.get(f"{API}/frames/nope")
    assert res.status_code == 404
    assert res.json()["detail"] == "Frame tidak ditemukan"


def test_frame_layout_for_thumbnail(client):
    frame = create_frame(client)
    layout = client.get(f"{API}/frames/{frame['id']}/layout", params={"width": 200}).json()
    assert (layout["width"], layout["height"]) == (200, 300)
    first = layout["areas"][0]
    assert (first["x"], first["y"], first["width"], first["height"]) == pytest.approx((25, 25, 40, 60))
    assert layout["layers"] == [{"name": "background", "zIndex": 0}, {"name": "areas", "zIndex": 10}]
    assert layout["allFilled"] is False


def test_capture_preview_retake_export(client, booth):
    frame = create_frame(client)

    res = client.post(f"{API}/frames/{frame['id']}/capture")
    assert res.status_code == 200, res.text
    captured = res.json()
    session = captured["session"]
    assert captured["allFilled"] is True
    assert captured["failedAreaIds"] == []
    assert sorted(p["areaId"] for p in session["photos"]) == ["a1", "a2"]
    assert booth.cameras[0].released == 1

    preview = client.get(f"{API}/sessions/{session['id']}/preview").json()
    assert preview["allFilled"] is True
    assert preview["listing"] == ["a1", "a2"]

    old = {p["areaId"]: p for p in session["photos"]}
    retake = client.post(f"{API}/sessions/{session['id']}/retake/a2").json()
    new = {p["areaId"]: p for p in retake["session"]["photos"]}
    assert new["a2"]["id"] == old["a2"]["id"]
    assert new["a2"]["dataUrl"] != old["a2"]["dataUrl"]
    assert new["a1"] == old["a1"]

    export = client.post(f"{API}/sessions/{session['id']}/export")
    assert export.status_code == 200, export.text
    url = export.json()["url"]
    assert url in booth.uploads.files
    assert client.get(f"{API}/sessions/{session['id']}").json()["finalImage"] == url


def test_export_requires_all_areas(client):
    frame = create_frame(client)
    body = {
        "frameId": frame["id"],
        "photos": [{"areaId": "a1", "dataUrl": png_data_url((80, 120)), "aspectRatio": 0.667}],
    }
    session = client.post(f"{API}/sessions", json=body).json()
    res = client.post(f"{API}/sessions/{session['id']}/export")
    assert res.status_code == 400


def test_session_with_unknown_area_rejected(client):
    frame = create_frame(client)
    body = {"frameId": frame["id"], "photos": [{"areaId": "zz", "dataUrl": "data:image/png;base64,AA"}]}
    assert client.post(f"{API}/sessions", json=body).status_code == 400


def test_camera_unavailable_is_503():
    booth = Booth(fail_camera=True)
    with make_client(booth) as client:
        frame = create_frame(client)
        res = client.post(f"{API}/frames/{frame['id']}/capture")
    assert res.status_code == 503
    assert booth.store.sessions == {}


def test_frame_with_duplicate_orders_rejected(client):
    areas = [dict(a, order=1) for a in FRAME_BODY["areas"]]
    res = client.post(f"{API}/frames", json={**FRAME_BODY, "areas": areas})
    assert res.status_code == 400
    assert client.get(f"{API}/frames").json() == []


def test_frame_with_duplicate_area_ids_rejected(client):
    areas = [dict(a, id="a1") for a in FRAME_BODY["areas"]]
    assert client.post(f"{API}/frames", json={**FRAME_BODY, "areas": areas}).status_code == 400


def test_session_with_undecodable_photo_rejected(client):
    frame = create_frame(client)
    body = {"frameId": frame["id"], "photos": [{"areaId": "a1", "dataUrl": "data:image/jpeg;base64,AA"}]}
    assert client.post(f"{API}/sessions", json=body).status_code == 400


def test_export_with_corrupt_stored_photo_is_400(client, booth):
    frame = create_frame(client)
    photos = [
        {"areaId": "a1", "dataUrl": png_data_url((80, 120))},
        {"areaId": "a2", "dataUrl": png_data_url((100, 100))},
    ]
    session = client.post(f"{API}/sessions", json={"frameId": frame["id"], "photos": photos}).json()
    booth.store.sessions[session["id"]]["photos"][1]["dataUrl"] = "data:image/jpeg;base64,AA"

    assert client.post(f"{API}/sessions/{session['id']}/export").status_code == 400


def test_session_with_repeated_area_rejected(client):
    frame = create_frame(client)
    photo = {"areaId": "a1", "dataUrl": png_data_url((80, 120))}
    body = {"frameId": frame["id"], "photos": [photo, photo, photo]}
    assert client.post(f"{API}/sessions", json=body).status_code == 400


def test_capture_limit_grows_with_the_sequence(monkeypatch):
    async def scaled_sleep(seconds):
        await asyncio.sleep(seconds / 10)

    # Two areas run 10.8s of countdown and pause, scaled to about 1.1s here.
    monkeypatch.setattr(settings, "ENDPOINT_TIMEOUT_SECONDS", 1)
    booth = Booth(sleep=scaled_sleep)
    with make_client(booth) as client:
        frame = create_frame(client)
        res = client.post(f"{API}/frames/{frame['id']}/capture")
    assert res.status_code == 200, res.text
    assert res.json()["allFilled"] is True
    assert len(booth.store.sessions) == 1
