"""
HTTP tests against the FastAPI app with an in-memory repository.
"""


EQUITY_BODY = {"kind": "equity", "trade_id": "T1", "trade_date": "2024-03-01",
               "trade_value": 6000000, "confirmation_status": "Failed", "currency": "USD",
               "counterparty": "UBS", "trader_name": "Ann"}


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


class TestCrud:

    def test_create_and_get_equity(self, client):
        body = {"trade_id": "E1", "trade_date": "2024-03-01", "quantity": 5, "price": 10.0}
        r = client.post("/api/trades/equity", json=body)
        assert r.status_code == 201
        assert r.json()["trade_id"] == "E1"

        assert client.get("/api/trades/equity/E1").json()["quantity"] == 5
        assert [t["trade_id"] for t in client.get("/api/trades/equity").json()] == ["E1"]

    def test_duplicate_is_400(self, client):
        body = {"trade_id": "E1", "trade_date": "2024-03-01"}
        client.post("/api/trades/equity", json=body)
        r = client.post("/api/trades/equity", json=body)
        assert r.status_code == 400
        assert "E1" in r.json()["error"]

    def test_missing_is_404(self, client):
        r = client.get("/api/trades/fx/NOPE")
        assert r.status_code == 404
        assert "error" in r.json()

    def test_invalid_body_is_400(self, client):
        r = client.post("/api/trades/fx", json={"trade_id": "F1", "trade_date": "2024-03-01",
                                                 "confirmation_status": "Failed"})
        assert r.status_code == 400
        assert "confirmation_status" in r.json()["error"]

    def test_patch(self, client):
        client.post("/api/trades/fx", json={"trade_id": "F1", "trade_date": "2024-03-01"})
        r = client.patch("/api/trades/fx/F1", json={"confirmation_status": "Confirmed"})
        assert r.status_code == 200
        assert r.json()["confirmation_status"] == "Confirmed"
        assert client.patch("/api/trades/fx/NOPE", json={"confirmation_status": "Confirmed"}).status_code == 404

    def test_workflows_and_stats(self, client):
        wf = client.post("/api/workflows", json={"trade_id": "E1", "priority": "high"}).json()
        r = client.post("/api/workflow-steps", json={"workflow_id": wf["id"], "step_id": "trade-booking",
                                                     "name": "Trade Booking", "order": 1})
        assert r.status_code == 201
        assert len(client.get("/api/workflow-steps").json()) == 1
        assert client.get("/api/stats").json()["totalWorkflows"] == 1


class TestStoreViews:

    def test_manual_add_end_to_end(self, client):
        r = client.post("/api/view/trades", json=EQUITY_BODY)
        assert r.status_code == 201
        assert r.json()["risk_level"] == "Critical"
        assert r.json()["break_type"] in ("Economic", "Non-Economic")

        failures = client.get("/api/failures").json()
        assert [(f["trade_id"], f["impact"], f["status"]) for f in failures] == [("T1", "Critical", "Open")]

        docs = client.get("/api/documents/T1").json()
        assert docs["trade_confirmation"]["qa_status"] == "Rejected"
        assert docs["client_agreement"]["submitted"] is False

        # persisted through the store into the relational copy
        assert client.get("/api/stats").json()["failedTrades"] == 1

    def test_manual_add_duplicate(self, client):
        client.post("/api/view/trades", json=EQUITY_BODY)
        assert client.post("/api/view/trades", json=EQUITY_BODY).status_code == 400

    def test_unknown_kind_is_400(self, client):
        assert client.post("/api/view/trades", json={**EQUITY_BODY, "kind": "bond"}).status_code == 400

    def test_filters(self, client):
        client.post("/api/view/trades", json=EQUITY_BODY)
        client.post("/api/view/trades", json={**EQUITY_BODY, "trade_id": "T2", "currency": "EUR",
                                              "confirmation_status": "Confirmed"})
        client.post("/api/view/trades", json={"kind": "fx", "trade_id": "F1", "trade_date": "2024-03-02",
                                              "base_currency": "EUR", "term_currency": "USD"})
        ids = lambda r: [t["trade_id"] for t in r.json()]
        assert ids(client.get("/api/view/trades")) == ["T1", "T2", "F1"]
        assert ids(client.get("/api/view/trades", params={"currency": "USD"})) == ["T1", "F1"]
        assert ids(client.get("/api/view/trades", params={"trade_type": "equity", "currency": "EUR"})) == ["T2"]
        assert client.get("/api/view/facets").json()["currencies"] == ["EUR", "USD"]

    def test_workflows_actions_and_metrics(self, client):
        client.post("/api/view/trades", json=EQUITY_BODY)
        wfs = client.get("/api/view/workflows").json()
        assert wfs[0]["current_step"] == "trade-break-check"
        assert wfs[0]["priority"] == "high"
        actions = client.get("/api/view/actions").json()
        assert "T1-trade-break-check" in [a["id"] for a in actions]
        metrics = client.get("/api/view/queue-metrics").json()
        assert metrics["drafting"] + metrics["matching"] + metrics["pending_approvals"] + metrics["ccnr"] == 1

    def test_failure_actions(self, client):
        client.post("/api/view/trades", json=EQUITY_BODY)
        assert client.post("/api/failures/T1/escalate").json()["status"] == "Escalated"
        r = client.post("/api/failures/T1/resolve")
        assert r.json()["status"] == "Resolved"
        assert r.json()["resolved_at"] is not None
        assert client.post("/api/failures/T1/resolve").status_code == 400
        assert client.post("/api/failures/NOPE/resolve").status_code == 404

    def test_document_update(self, client):
        client.post("/api/view/trades", json=EQUITY_BODY)
        r = client.patch("/api/documents/T1/client_agreement", json={"client_signed": True})
        assert r.status_code == 400
        r = client.patch("/api/documents/T1/client_agreement", json={"submitted": True})
        assert r.status_code == 200
        assert r.json()["client_agreement"]["version"] == 2

    def test_settlements(self, client):
        client.post("/api/view/trades", json={**EQUITY_BODY, "confirmation_status": "Confirmed"})
        assert [t["trade_id"] for t in client.get("/api/settlements").json()["ready"]] == ["T1"]
        r = client.post("/api/settlements/T1")
        assert r.json()["sent_to_settlements"] is True
        body = client.get("/api/settlements").json()
        assert body["ready"] == []
        assert [t["trade_id"] for t in body["sent"]] == ["T1"]

    def test_import(self, client):
        text = "Trade ID,Trade Value,Confirmation Status,Trade Date\nT1,6000000,Failed,2024-03-01\n"
        r = client.post("/api/import", json={"text": text, "filename": "upload.csv"})
        assert r.status_code == 200
        assert r.json()["imported"] == 1
        trade = client.get("/api/view/trades").json()[0]
        assert trade["risk_level"] == "Critical"
        assert client.get("/api/failures").json()[0]["impact"] == "Critical"

    def test_import_empty_is_400(self, client):
        r = client.post("/api/import", json={"text": "  "})
        assert r.status_code == 400
        assert r.json()["error"] == "File is empty"


def test_websocket_receives_store_events(client):
    with client.websocket_connect("/ws") as ws:
        client.post("/api/view/trades", json=EQUITY_BODY)
        event = ws.receive_json()
        assert event["type"] == "trade"
        assert event["payload"]["trade_id"] == "T1"
