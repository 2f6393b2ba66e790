from __future__ import annotations

from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient
from prometheus_client.parser import text_string_to_metric_families

from tests.factories import make_client


def _read_metric(
    client: TestClient,
    metric: str,
    labels: Optional[Dict[str, str]] = None,
) -> float:
    response = client.get("/metrics")
    response.raise_for_status()
    text = response.text
    for family in text_string_to_metric_families(text):
        for sample in family.samples:
            if sample.name != metric:
                continue
            sample_labels = dict(sample.labels)
            if labels is None and not sample_labels:
                return float(sample.value)
            if labels is not None and sample_labels == labels:
                return float(sample.value)
    return 0.0


@pytest.fixture
def client(monkeypatch):
    with make_client(monkeypatch) as test_client:
        yield test_client


def test_rejection_counters_increment(client: TestClient):
    labels = {"kind": "CSRFTokenError"}
    baseline_rejections = _read_metric(client, "csrf_rejections_total", labels=labels)
    baseline_checks = _read_metric(client, "csrf_checks_total", labels={"outcome": "reject"})

    response = client.post("/things")
    assert response.status_code == 403

    assert _read_metric(client, "csrf_rejections_total", labels=labels) >= baseline_rejections + 1
    assert _read_metric(client, "csrf_checks_total", labels={"outcome": "reject"}) >= baseline_checks + 1


def test_proceed_counter_increments(client: TestClient):
    client.get("/seed")
    baseline = _read_metric(client, "csrf_checks_total", labels={"outcome": "proceed"})

    response = client.post("/things", headers={"X-CSRF-TOKEN": "abc123"})
    assert response.status_code == 200

    assert _read_metric(client, "csrf_checks_total", labels={"outcome": "proceed"}) >= baseline + 1


def test_request_counter_records_rejected_requests(client: TestClient):
    labels = {"method": "POST", "path": "/things", "status": "403"}
    baseline = _read_metric(client, "api_requests_total", labels=labels)

    client.post("/things")

    assert _read_metric(client, "api_requests_total", labels=labels) >= baseline + 1
