"""
API tests for the policy endpoints, backed by the in-memory repository.
"""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.deps import get_evaluation_service, get_policy_service
from app.main import app
from app.services.evaluation_service import PolicyEvaluationService
from app.services.policy_provider import ActivePolicyProvider
from app.services.policy_service import PolicyService

BASE = "/api/v1/policies"

APPROVE_RULE = {
    "name": "Salaried Approval",
    "logicalOperator": "AND",
    "priority": 10,
    "conditions": [
        {"field": "applicant.employmentType", "operator": "IN", "values": ["SALARIED"]},
        {"field": "applicant.cibilScore", "operator": "GREATER_THAN_OR_EQUAL", "value": "650"},
    ],
    "actions": [
        {"type": "APPROVE"},
        {"type": "SET_INTEREST_RATE", "parameters": {"rate": "12.5", "type": "FIXED"}},
    ],
}

APPLICATION = {
    "applicationId": "APP-2001",
    "loanType": "PERSONAL_LOAN",
    "requestedAmount": 500000,
    "tenureMonths": 36,
    "cibilScore": 720,
    "applicantAge": 32,
    "employmentType": "SALARIED",
    "monthlyIncome": 60000,
}


def _policy_body(name="Personal Eligibility", rules=None, **extra):
    body = {
        "name": name,
        "category": "ELIGIBILITY",
        "loanType": "PERSONAL_LOAN",
        "rules": [APPROVE_RULE] if rules is None else rules,
    }
    body.update(extra)
    return body


@pytest.fixture
def client(repository, cache):
    """Test client with services bound to the in-memory repository and cache."""
    app.dependency_overrides[get_policy_service] = lambda: PolicyService(repository, cache)
    app.dependency_overrides[get_evaluation_service] = lambda: PolicyEvaluationService(
        ActivePolicyProvider(repository, cache)
    )
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class TestPolicyEndpoints:
    """Test cases for policy authoring and lifecycle endpoints."""

    def test_create_policy(self, client):
        """Creation returns 201 with a camelCase DRAFT body."""
        response = client.post(f"{BASE}/", json=_policy_body(), headers={"X-User-Id": "alice"})

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "DRAFT"
        assert data["versionNumber"] == 1
        assert data["loanType"] == "PERSONAL_LOAN"
        assert data["ruleCount"] == 1
        assert data["createdBy"] == "alice"
        assert data["policyCode"].startswith("POL-")
        assert data["rules"][0]["logicalOperator"] == "AND"

    def test_default_user_is_system(self, client):
        response = client.post(f"{BASE}/", json=_policy_body())

        assert response.json()["createdBy"] == "system"

    def test_duplicate_name_is_conflict(self, client):
        client.post(f"{BASE}/", json=_policy_body())

        response = client.post(f"{BASE}/", json=_policy_body(name="personal eligibility"))

        assert response.status_code == 409

    def test_invalid_action_is_bad_request(self, client):
        """Malformed action parameters are a 400 with the reason."""
        rule = dict(APPROVE_RULE, actions=[{"type": "SET_MAX_AMOUNT", "parameters": {}}])

        response = client.post(f"{BASE}/", json=_policy_body(rules=[rule]))

        assert response.status_code == 400
        assert "amount" in response.json()["detail"]

    def test_unknown_operator_is_unprocessable(self, client):
        rule = dict(
            APPROVE_RULE,
            conditions=[{"field": "applicant.age", "operator": "ROUGHLY", "value": "30"}],
        )

        response = client.post(f"{BASE}/", json=_policy_body(rules=[rule]))

        assert response.status_code == 422

    def test_get_missing_policy(self, client):
        response = client.get(f"{BASE}/{uuid4()}")

        assert response.status_code == 404

    def test_lifecycle(self, client):
        """Activate, refuse edits, version, and read the version history."""
        created = client.post(f"{BASE}/", json=_policy_body()).json()
        policy_id = created["id"]

        activated = client.patch(f"{BASE}/{policy_id}/activate", headers={"X-User-Id": "bob"})
        assert activated.status_code == 200
        assert activated.json()["status"] == "ACTIVE"
        assert activated.json()["modifiedBy"] == "bob"

        blocked = client.put(f"{BASE}/{policy_id}", json={"priority": 1})
        assert blocked.status_code == 409

        not_deletable = client.delete(f"{BASE}/{policy_id}")
        assert not_deletable.status_code == 409

        version = client.post(f"{BASE}/{policy_id}/versions")
        assert version.status_code == 201
        assert version.json()["versionNumber"] == 2
        assert version.json()["previousVersionId"] == policy_id

        history = client.get(f"{BASE}/code/{created['policyCode']}/versions").json()
        assert [(p["versionNumber"], p["status"]) for p in history] == [
            (2, "DRAFT"),
            (1, "ARCHIVED"),
        ]

        latest = client.get(f"{BASE}/code/{created['policyCode']}").json()
        assert latest["versionNumber"] == 2

        first = client.get(f"{BASE}/code/{created['policyCode']}/versions/1")
        assert first.json()["status"] == "ARCHIVED"
        assert client.get(f"{BASE}/code/{created['policyCode']}/versions/9").status_code == 404

    def test_update_and_delete_draft(self, client):
        created = client.post(f"{BASE}/", json=_policy_body(rules=[])).json()

        updated = client.put(f"{BASE}/{created['id']}", json={"priority": 5, "tags": ["pilot"]})
        assert updated.status_code == 200
        assert updated.json()["priority"] == 5
        assert updated.json()["tags"] == ["pilot"]

        assert client.patch(f"{BASE}/{created['id']}/activate").status_code == 409
        assert client.delete(f"{BASE}/{created['id']}").status_code == 204
        assert client.get(f"{BASE}/{created['id']}").status_code == 404

    def test_list_search_and_stats(self, client):
        first = client.post(f"{BASE}/", json=_policy_body()).json()
        client.post(f"{BASE}/", json=_policy_body(name="Home Pricing", category="PRICING", loanType="HOME_LOAN"))
        client.patch(f"{BASE}/{first['id']}/activate")

        listing = client.get(f"{BASE}/", params={"page": 1, "page_size": 1}).json()
        assert listing["total"] == 2
        assert len(listing["policies"]) == 1
        assert listing["size"] == 1

        found = client.get(f"{BASE}/search", params={"q": "pricing"}).json()
        assert [p["name"] for p in found] == ["Home Pricing"]

        stats = client.get(f"{BASE}/stats").json()
        assert stats == {
            "total": 2,
            "active": 1,
            "draft": 1,
            "inactive": 0,
            "archived": 0,
            "byCategory": {"ELIGIBILITY": 1},
        }

    def test_active_policies_by_loan_type(self, client):
        created = client.post(f"{BASE}/", json=_policy_body()).json()
        client.patch(f"{BASE}/{created['id']}/activate")

        active = client.get(f"{BASE}/active/personal_loan").json()
        assert [p["id"] for p in active] == [created["id"]]
        assert client.get(f"{BASE}/active/HOME_LOAN").json() == []
        assert client.get(f"{BASE}/active/FOO").status_code == 400


class TestEvaluateEndpoint:
    """Test cases for POST /policies/evaluate."""

    def test_approved(self, client):
        created = client.post(f"{BASE}/", json=_policy_body()).json()
        client.patch(f"{BASE}/{created['id']}/activate")

        response = client.post(f"{BASE}/evaluate", json=APPLICATION)

        assert response.status_code == 200
        data = response.json()
        assert data["overallDecision"] == "APPROVED"
        assert data["applicationId"] == "APP-2001"
        assert data["policiesEvaluated"] == 1
        assert data["rulesMatched"] == 1
        assert {a["actionType"] for a in data["triggeredActions"]} == {"APPROVE", "SET_INTEREST_RATE"}
        condition = data["matchedPolicies"][0]["ruleResults"][0]["conditionResults"][1]
        assert condition["actualValue"] == "720"
        assert condition["reason"] == "'720' GREATER_THAN_OR_EQUAL 650 -> PASS"
        assert data["evaluationLog"][0]["level"] == "INFO"

    def test_no_policies(self, client):
        data = client.post(f"{BASE}/evaluate", json=APPLICATION).json()

        assert data["overallDecision"] == "NO_MATCH"
        assert data["policiesEvaluated"] == 0
        assert data["triggeredActions"] == []

    def test_unknown_loan_type_is_error_decision(self, client):
        """An unknown loan type is a 200 with decision ERROR, not an HTTP error."""
        response = client.post(f"{BASE}/evaluate", json=dict(APPLICATION, loanType="FOO"))

        assert response.status_code == 200
        data = response.json()
        assert data["overallDecision"] == "ERROR"
        assert data["evaluationLog"][-1]["level"] == "WARN"

    def test_missing_required_field(self, client):
        body = {k: v for k, v in APPLICATION.items() if k != "requestedAmount"}

        assert client.post(f"{BASE}/evaluate", json=body).status_code == 422


class TestRootEndpoints:
    def test_root(self, client):
        assert client.get("/").json()["message"] == "LoanFlow Policy Engine API"
