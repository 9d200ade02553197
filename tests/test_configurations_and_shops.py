"""
Persisted configurations and shop runs, end to end through the API.

Tests:
1-6.  Jobs and stair configurations: create, list, replace, lock, delete
7-12. Cut sheets and shop runs
"""

import pytest


def _configuration_request(job_id, treads=3, **overrides):
    data = {
        "jobId": job_id,
        "configName": "Main stair",
        "floorToFloor": 7.5 * (treads + 1),
        "numRisers": treads + 1,
        "treadMaterialId": 20,
        "riserMaterialId": 11,
        "treads": [
            {"riserNumber": n, "type": "box", "stairWidth": 36} for n in range(1, treads + 1)
        ],
    }
    data.update(overrides)
    return data


def _create_configuration(client, job_id, **kwargs):
    resp = client.post("/api/stair-configurations/", json=_configuration_request(job_id, **kwargs))
    assert resp.status_code == 200, resp.text
    return resp.json()


def _order_with_configuration(client, quote_job, **kwargs):
    configuration = _create_configuration(client, quote_job["id"], **kwargs)
    resp = client.patch(f"/api/jobs/{quote_job['id']}", json={"status": "order"})
    assert resp.json()["status"] == "order"
    return configuration


# ============================================================
# 1-6. Jobs and stair configurations
# ============================================================

def test_job_records_stand_alone(client):
    resp = client.post("/api/jobs/", json={"title": "Cedar Hollow Lot 3", "taxRate": 0.05, "customerId": 44})
    assert resp.status_code == 200
    job = resp.json()
    assert job["status"] == "quote"
    assert job["taxRate"] == 0.05
    assert "customerId" not in job


def test_create_configuration_stores_totals_and_items(client, seeded, quote_job):
    configuration = _create_configuration(client, quote_job["id"])
    assert configuration["riserHeight"] == 7.5
    assert configuration["subtotal"] == pytest.approx(192.6)
    assert configuration["totalAmount"] == pytest.approx(204.16)
    assert configuration["breakdownJson"]["subtotal"] == pytest.approx(192.6)

    item_types = [item["itemType"] for item in configuration["items"]]
    assert item_types.count("tread") == 3
    assert item_types.count("riser") == 3
    risers = [item for item in configuration["items"] if item["itemType"] == "riser"]
    assert [r["riserNumber"] for r in risers] == [1, 2, 3]
    assert risers[0]["unitPrice"] == pytest.approx(16.2)

    listed = client.get(f"/api/stair-configurations/job/{quote_job['id']}").json()
    assert [c["id"] for c in listed] == [configuration["id"]]


def test_replace_reprices_and_rebuilds_items(client, seeded, quote_job):
    configuration = _create_configuration(client, quote_job["id"])
    resp = client.put(
        f"/api/stair-configurations/{configuration['id']}",
        json=_configuration_request(quote_job["id"], treads=4),
    )
    assert resp.status_code == 200
    replaced = resp.json()
    assert replaced["id"] == configuration["id"]
    assert replaced["numRisers"] == 5
    assert len([i for i in replaced["items"] if i["itemType"] == "tread"]) == 4
    assert replaced["subtotal"] == pytest.approx(4 * 48 + 4 * 16.2)


def test_configuration_locked_once_job_is_order(client, seeded, quote_job):
    configuration = _order_with_configuration(client, quote_job)
    resp = client.put(
        f"/api/stair-configurations/{configuration['id']}",
        json=_configuration_request(quote_job["id"], treads=4),
    )
    assert resp.status_code == 409

    resp = client.post("/api/stair-configurations/", json=_configuration_request(quote_job["id"]))
    assert resp.status_code == 409


def test_invalid_configuration_is_not_saved(client, seeded, quote_job):
    resp = client.post(
        "/api/stair-configurations/",
        json=_configuration_request(quote_job["id"], numRisers=9),
    )
    assert resp.status_code == 422
    assert resp.json()["field"] == "numRisers"
    assert client.get(f"/api/stair-configurations/job/{quote_job['id']}").json() == []

    resp = client.post("/api/stair-configurations/", json=_configuration_request(9999))
    assert resp.status_code == 422
    assert resp.json()["field"] == "jobId"


def test_delete_configuration(client, seeded, quote_job):
    configuration = _create_configuration(client, quote_job["id"])
    assert client.delete(f"/api/stair-configurations/{configuration['id']}").status_code == 200
    assert client.get(f"/api/stair-configurations/{configuration['id']}").status_code == 404


# ============================================================
# 7-12. Cut sheets and shop runs
# ============================================================

def test_cut_sheet_for_configurations(client, seeded, quote_job):
    configuration = _create_configuration(client, quote_job["id"])
    resp = client.post("/api/shops/cut-sheet", json={"configurationIds": [configuration["id"]]})
    assert resp.status_code == 200
    items = resp.json()
    assert [i["itemType"] for i in items] == ["tread"] * 3 + ["riser"] * 3 + ["s4s"]
    tread, riser, s4s = items[0], items[3], items[-1]
    assert (tread["cutWidth"], tread["cutLength"]) == (12.25, 34.75)
    assert tread["material"] == "Red Oak"
    assert (riser["cutWidth"], riser["cutLength"]) == (7.5, 34.75)
    assert riser["material"] == "Primed"
    assert (s4s["cutWidth"], s4s["cutLength"]) == (6.5, 34.75)
    assert {i["stairId"] for i in items} == {"Main stair"}
    assert {i["location"] for i in items} == {"Maple Ridge"}


def test_landing_configuration_cuts_one_board_per_riser(client, seeded, quote_job):
    """The landing riser is stored and priced, but the s4s board replaces it on the cut list."""
    configuration = _create_configuration(client, quote_job["id"], includeLandingTread=True)
    stored = [i for i in configuration["items"] if i["itemType"] == "riser"]
    assert [r["riserNumber"] for r in stored] == [1, 2, 3, 4]
    assert stored[-1]["notes"] == "landing"

    resp = client.post("/api/shops/cut-sheet", json={"configurationIds": [configuration["id"]]})
    assert resp.status_code == 200
    boards = [i["itemType"] for i in resp.json() if i["itemType"] in ("riser", "s4s")]
    assert boards == ["riser", "riser", "riser", "s4s"]
    assert len(boards) == configuration["numRisers"]


def test_cut_sheet_unknown_configuration(client, seeded):
    resp = client.post("/api/shops/cut-sheet", json={"configurationIds": [404]})
    assert resp.status_code == 422
    assert resp.json()["field"] == "configurationIds"


def test_generate_shop_marks_jobs_and_numbers_per_day(client, seeded, quote_job):
    configuration = _order_with_configuration(client, quote_job)
    resp = client.post("/api/shops/", json={"jobIds": [quote_job["id"]]})
    assert resp.status_code == 200, resp.text
    shop = resp.json()
    assert shop["shopNumber"].startswith("SHOP-")
    assert shop["shopNumber"].endswith("-001")
    assert shop["status"] == "generated"
    assert shop["jobIds"] == [quote_job["id"]]
    assert len(shop["cutSheets"]) == 7
    assert shop["cutSheets"][0]["configurationId"] == configuration["id"]

    job = client.get(f"/api/jobs/{quote_job['id']}").json()
    assert job["shopsRun"] is True
    assert job["shopsRunDate"] is not None

    second = client.post("/api/shops/", json={"jobIds": [quote_job["id"]]}).json()
    assert second["shopNumber"].endswith("-002")
    assert len(client.get("/api/shops/").json()) == 2

    # Configurations on a shop run can't be deleted
    assert client.delete(f"/api/stair-configurations/{configuration['id']}").status_code == 409


def test_generate_shop_rejects_ineligible_jobs(client, seeded, quote_job):
    _create_configuration(client, quote_job["id"])
    resp = client.post("/api/shops/", json={"jobIds": [quote_job["id"]]})
    assert resp.status_code == 400
    assert "orders" in resp.json()["detail"]

    resp = client.post("/api/shops/", json={"jobIds": [quote_job["id"], 9999]})
    assert resp.status_code == 400
    assert client.get("/api/shops/").json() == []
    assert client.get(f"/api/jobs/{quote_job['id']}").json()["shopsRun"] is False


def test_shop_status_update(client, seeded, quote_job):
    _order_with_configuration(client, quote_job)
    shop = client.post("/api/shops/", json={"jobIds": [quote_job["id"]]}).json()
    resp = client.patch(f"/api/shops/{shop['id']}/status", json={"status": "in_progress"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "in_progress"
    assert client.get(f"/api/shops/{shop['id']}").json()["status"] == "in_progress"

    assert client.patch(f"/api/shops/{shop['id']}/status", json={"status": "lost"}).status_code == 422
    assert client.get("/api/shops/9999").status_code == 404
