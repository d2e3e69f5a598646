"""Tests for the HTTP inspection API."""

import pytest
from fastapi.testclient import TestClient

from py_geology.api.main import app, created_at, worlds


class TestGeologyAPI:
    """Test world creation, ticking and inspection endpoints."""

    def setup_method(self):
        """Set up test client."""
        self.client = TestClient(app)
        worlds.clear()
        created_at.clear()

    def create_world(self, **overrides):
        payload = {"seed": "api-test", "width": 16, "height": 8, "num_plates": 4}
        payload.update(overrides)
        response = self.client.post("/worlds", json=payload)
        assert response.status_code == 201
        return response.json()

    def test_root_and_health(self):
        assert self.client.get("/").status_code == 200
        response = self.client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_create_world(self):
        world = self.create_world()
        assert world["width"] == 16
        assert world["height"] == 8
        assert world["plates"] == 4
        assert world["year"] == 0
        assert world["land_cells"] + world["water_cells"] == 128
        assert 4 <= world["hotspots"] <= 8
        assert world["created_at"].endswith(("Z", "+00:00"))

        listed = self.client.get("/worlds").json()
        assert [w["id"] for w in listed] == [world["id"]]

    def test_plates_cover_grid(self):
        world = self.create_world()
        plates = self.client.get(f"/worlds/{world['id']}/plates").json()
        assert len(plates) == 4
        assert sum(p["cell_count"] for p in plates) == 128

    def test_tick(self):
        world = self.create_world()
        response = self.client.post(
            f"/worlds/{world['id']}/tick",
            json={"delta_time": 2.0, "years": 3, "multipliers": {"volcanic_activity": 3.0}},
        )
        assert response.status_code == 200
        reports = response.json()
        assert [r["year"] for r in reports] == [1, 2, 3]

        summary = self.client.get(f"/worlds/{world['id']}").json()
        assert summary["year"] == 3

    def test_events(self):
        world = self.create_world()
        self.client.post(f"/worlds/{world['id']}/tick", json={"years": 5})
        events = self.client.get(f"/worlds/{world['id']}/events").json()
        assert set(events) == {"eruptions", "earthquakes", "total_eruptions", "total_earthquakes"}
        assert events["total_eruptions"] >= len(events["eruptions"])

    def test_cell(self):
        world = self.create_world()
        response = self.client.get(f"/worlds/{world['id']}/cells/-1/2")
        assert response.status_code == 200
        cell = response.json()
        assert cell["x"] == 15
        assert cell["y"] == 2
        assert 0 <= cell["plate_id"] < 4

    def test_cell_row_out_of_range(self):
        world = self.create_world()
        response = self.client.get(f"/worlds/{world['id']}/cells/0/8")
        assert response.status_code == 400

    def test_unknown_world(self):
        missing = "550e8400-e29b-41d4-a716-446655440000"
        assert self.client.get(f"/worlds/{missing}").status_code == 404
        assert self.client.get(f"/worlds/{missing}/plates").status_code == 404
        assert self.client.post(f"/worlds/{missing}/tick", json={}).status_code == 404

    def test_delete_world(self):
        world = self.create_world()
        assert self.client.delete(f"/worlds/{world['id']}").status_code == 204
        assert self.client.get(f"/worlds/{world['id']}").status_code == 404

    @pytest.mark.parametrize("payload", [
        {"width": 2},
        {"height": 1},
        {"num_plates": 0},
    ])
    def test_validation(self, payload):
        response = self.client.post("/worlds", json=payload)
        assert response.status_code == 422

    def test_too_many_plates(self):
        response = self.client.post("/worlds", json={"width": 3, "height": 2, "num_plates": 7})
        assert response.status_code == 400

    def test_negative_delta_time_rejected(self):
        world = self.create_world()
        response = self.client.post(f"/worlds/{world['id']}/tick", json={"delta_time": -1.0})
        assert response.status_code == 422

    def test_summary_of_world_removed_mid_request(self):
        world = self.create_world()
        # Creation time already gone while the simulator is still reachable
        created_at.pop(world["id"])
        assert self.client.get(f"/worlds/{world['id']}").status_code == 404
