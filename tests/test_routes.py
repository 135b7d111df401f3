"""
SheetServer — API Route Tests
===============================

What we test:
    ✅ JSON bodies in, shaped Delta JSON out (cells, columnWidths, rowHeights)
    ✅ Error envelope and status codes: 400, 404, 405, 500
    ✅ Label resource, including 204 on delete
    ✅ Geometry and similarities responses
    ✅ Health check and X-Request-ID

Uses the test_client fixture: the in-memory engine and a mocked label store
replace the real dependencies.
"""

import pytest

from sheetserver.exceptions import SpreadsheetEngineError
from sheetserver.models.delta import LabelMapping
from sheetserver.models.reference import CellReference, LabelName

BASE = "/api/spreadsheet/sheet-1"


def cell_body(**cells):
    return {"cells": {reference: {"formula": {"text": text}} for reference, text in cells.items()}}


class TestCells:

    @pytest.mark.asyncio
    async def test_save_and_load(self, test_client):
        saved = await test_client.post(f"{BASE}/cell/A1", json=cell_body(A1="42"))
        assert saved.status_code == 200
        assert saved.json()["cells"]["A1"]["formula"] == {"text": "42", "value": 42}

        loaded = await test_client.get(f"{BASE}/cell/A1")
        assert loaded.status_code == 200
        body = loaded.json()
        assert body["cells"]["A1"]["formula"]["value"] == 42
        assert body["columnWidths"] == {"A": 100}
        assert body["rowHeights"] == {"1": 30}
        assert "window" not in body

    @pytest.mark.asyncio
    async def test_load_missing_cell_is_empty(self, test_client):
        response = await test_client.get(f"{BASE}/cell/Z9")
        assert response.status_code == 200
        assert response.json() == {}

    @pytest.mark.asyncio
    async def test_fill(self, test_client):
        response = await test_client.post(
            f"{BASE}/cell/A1:A3/fill", params={"from": "A1"}, json=cell_body(A1="x")
        )
        assert response.status_code == 200
        assert sorted(response.json()["cells"]) == ["A1", "A2", "A3"]

    @pytest.mark.asyncio
    async def test_save_range_echoes_window(self, test_client):
        body = cell_body(A1="1", B1="2")
        body["window"] = ["A1"]
        response = await test_client.post(f"{BASE}/cell/A1:B1", json=body)
        assert response.status_code == 200
        assert list(response.json()["cells"]) == ["A1"]
        assert response.json()["window"] == ["A1"]

    @pytest.mark.asyncio
    async def test_insert_column_returns_moved_cells(self, test_client):
        await test_client.post(f"{BASE}/cell/B1", json=cell_body(B1="b"))
        response = await test_client.post(f"{BASE}/column/A/after", params={"count": "1"})
        assert response.status_code == 200
        assert list(response.json()["cells"]) == ["C1"]

    @pytest.mark.asyncio
    async def test_insert_without_count_is_400(self, test_client):
        response = await test_client.post(f"{BASE}/column/C/before")
        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Missing parameter count"
        assert body["details"]["parameter"] == "count"

    @pytest.mark.asyncio
    async def test_clear_rows(self, test_client):
        await test_client.post(f"{BASE}/cell/A1:B2", json=cell_body(A1="1", B2="2"))
        response = await test_client.post(f"{BASE}/row/2/clear", json={})
        assert response.status_code == 200
        loaded = await test_client.get(f"{BASE}/cell/A1:B2")
        assert list(loaded.json()["cells"]) == ["A1"]

    @pytest.mark.asyncio
    async def test_selection_is_echoed(self, test_client):
        await test_client.post(f"{BASE}/cell/B2", json=cell_body(B2="2"))
        response = await test_client.post(f"{BASE}/cell/B2", json={**cell_body(B2="3"), "selection": "B2"})
        assert response.json()["selection"] == "B2"


class TestErrors:

    @pytest.mark.asyncio
    async def test_malformed_selection_is_400(self, test_client):
        response = await test_client.get(f"{BASE}/column/1A")
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "invalid_input"
        assert body["details"]["value"] == "1A"

    @pytest.mark.asyncio
    async def test_bad_reference_in_body_is_400(self, test_client):
        response = await test_client.post(f"{BASE}/cell/A1", json=cell_body(**{"1A": "x"}))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_body_of_wrong_shape_is_400(self, test_client):
        response = await test_client.post(f"{BASE}/cell/A1", json={"cells": [1, 2]})
        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid request body")

    @pytest.mark.asyncio
    async def test_body_not_json_is_400(self, test_client):
        response = await test_client.post(
            f"{BASE}/cell/A1", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unsupported_parameter_is_400(self, test_client):
        response = await test_client.get(f"{BASE}/cell/A1", params={"foo": "1"})
        assert response.status_code == 400
        assert response.json()["details"]["parameter"] == "foo"

    @pytest.mark.asyncio
    async def test_unknown_label_is_404(self, test_client):
        response = await test_client.get(f"{BASE}/cell-reference/UnknownLabel123")
        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "unknown_reference"
        assert body["details"]["label"] == "UnknownLabel123"

    @pytest.mark.asyncio
    async def test_unknown_resource_is_404(self, test_client):
        response = await test_client.get(f"{BASE}/sheet/A1")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_unsupported_relation_is_405(self, test_client):
        response = await test_client.post(f"{BASE}/cell/A1/similarities")
        assert response.status_code == 405
        assert response.json()["error"] == "unsupported_operation"

    @pytest.mark.asyncio
    async def test_engine_error_is_500_with_engine_message(self, test_client, memory_engine, monkeypatch):
        def fail(reference, mode):
            raise SpreadsheetEngineError("Circular reference in A1")

        monkeypatch.setattr(memory_engine, "load_cell", fail)
        response = await test_client.get(f"{BASE}/cell/A1")
        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "engine_error"
        assert body["message"] == "Circular reference in A1"
        assert body["details"] is None


class TestReferencesAndGeometry:

    @pytest.mark.asyncio
    async def test_resolve_range(self, test_client):
        response = await test_client.get(f"{BASE}/cell-reference/B1:B2")
        assert response.status_code == 200
        assert response.json() == {"cell-reference": "B1"}

    @pytest.mark.asyncio
    async def test_similarities(self, test_client, mock_label_store):
        mock_label_store.find_similar.return_value = (
            LabelMapping(LabelName("A1Total"), CellReference.parse("C5")),
        )
        response = await test_client.get(
            f"{BASE}/cell-reference/A1/similarities", params={"count": "2"}
        )
        assert response.status_code == 200
        assert response.json() == {
            "cell-reference": "A1",
            "labels": [{"label": "A1Total", "reference": "C5"}],
        }

    @pytest.mark.asyncio
    async def test_similarities_without_count(self, test_client):
        response = await test_client.get(f"{BASE}/cell-reference/A1/similarities")
        assert response.status_code == 400
        assert response.json()["details"]["parameter"] == "count"

    @pytest.mark.asyncio
    async def test_viewport_range(self, test_client):
        response = await test_client.get(f"{BASE}/viewport/B2:0:0:400:300")
        assert response.json() == {"range": "B2:E11"}

    @pytest.mark.asyncio
    async def test_cell_box(self, test_client):
        response = await test_client.get(f"{BASE}/cellbox/150,45")
        assert response.json() == {
            "reference": "B2", "x": 100.0, "y": 30.0, "width": 100.0, "height": 30.0,
        }


class TestLabels:

    @pytest.mark.asyncio
    async def test_save_label(self, test_client, mock_label_store):
        mapping = LabelMapping(LabelName("Total"), CellReference.parse("C5"))
        mock_label_store.save.return_value = mapping
        response = await test_client.post(
            f"{BASE}/label", json={"label": "Total", "reference": "C5"}
        )
        assert response.status_code == 200
        assert response.json() == {"label": "Total", "reference": "C5"}
        mock_label_store.save.assert_awaited_once_with(mapping)

    @pytest.mark.asyncio
    async def test_invalid_label_name(self, test_client):
        response = await test_client.post(
            f"{BASE}/label", json={"label": "B2", "reference": "C5"}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_label_is_404(self, test_client):
        response = await test_client.get(f"{BASE}/label/Total")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_label_is_204(self, test_client, mock_label_store):
        response = await test_client.delete(f"{BASE}/label/Total")
        assert response.status_code == 204
        assert response.content == b""
        mock_label_store.delete.assert_awaited_once_with(LabelName("Total"))


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["label_store"] == "connected"

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client):
        response = await test_client.get("/health", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"
