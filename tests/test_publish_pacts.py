"""
Tests for publishing batches of pact files.

The broker client is a MagicMock standing in for the real HTTP client.
"""

import json
import threading
from unittest.mock import call

import pytest

from pact_broker_client.core.errors import (
    ConflictError,
    FileReadError,
    PactConfigurationError,
    PactErrorCode,
    PactMergeError,
    PublishError,
)
from pact_broker_client.core.publish import FAILED, PUBLISHED, PactPublisher, PublishCapability


CONSUMER_VERSION = "1.2.3"


def pact_hash(consumer="Consumer", provider="Provider", **streams):
    return {"consumer": {"name": consumer}, "provider": {"name": provider}, **streams}


class RejectingBrokerClient:
    """Fails for pacts whose content mentions a given provider."""

    def __init__(self, rejected_provider):
        self.rejected_provider = rejected_provider
        self.published = []

    def publish(self, pact_json, consumer_version):
        if self.rejected_provider in pact_json:
            raise RuntimeError("500 Internal Server Error")
        self.published.append(json.loads(pact_json))
        return "http://broker/latest"


def test_broker_client_doubles_satisfy_protocol(broker_client):
    assert isinstance(RejectingBrokerClient("x"), PublishCapability)
    assert isinstance(broker_client, PublishCapability)


def test_publishes_the_given_pact(write_pact, broker_client):
    path = write_pact("consumer-provider.json", pact_hash())

    report = PactPublisher(broker_client).publish([path], CONSUMER_VERSION)

    broker_client.publish.assert_called_once_with(
        pact_json=path.read_text(encoding="utf-8"), consumer_version=CONSUMER_VERSION
    )
    assert report.succeeded
    assert report.overall_status == "passed"
    outcome = report.outcomes[0]
    assert outcome.status == PUBLISHED
    assert outcome.location == str(path)
    assert outcome.pact_name == "Consumer/Provider"
    assert outcome.response == "http://broker/pacts/provider/Provider/consumer/Consumer/latest"
    assert outcome.error is None


def test_missing_file_does_not_stop_the_rest(pact_dir, write_pact, broker_client):
    missing = pact_dir / "doesnotexist.json"
    path = write_pact("consumer-provider.json", pact_hash())

    report = PactPublisher(broker_client).publish([missing, path], CONSUMER_VERSION)

    broker_client.publish.assert_called_once_with(
        pact_json=path.read_text(encoding="utf-8"), consumer_version=CONSUMER_VERSION
    )
    assert [o.status for o in report.outcomes] == [FAILED, PUBLISHED]
    assert report.overall_status == "partial"
    assert not report.succeeded

    failure = report.outcomes[0]
    assert failure.location == str(missing)
    assert isinstance(failure.error, FileReadError)
    assert failure.error.code == PactErrorCode.READ_FILE_NOT_FOUND
    assert isinstance(failure.error.cause, FileNotFoundError)


def test_rejected_publish_is_isolated(write_pact):
    paths = [
        write_pact("a.json", pact_hash(provider="Alpha")),
        write_pact("b.json", pact_hash(provider="Bravo")),
        write_pact("c.json", pact_hash(provider="Charlie")),
    ]
    client = RejectingBrokerClient("Bravo")

    report = PactPublisher(client).publish(paths, CONSUMER_VERSION)

    assert [o.status for o in report.outcomes] == [PUBLISHED, FAILED, PUBLISHED]
    assert [p["provider"]["name"] for p in client.published] == ["Alpha", "Charlie"]

    failure = report.failures[0]
    assert failure.location == str(paths[1])
    assert isinstance(failure.error, PublishError)
    assert isinstance(failure.error.cause, RuntimeError)
    assert failure.error.__cause__ is failure.error.cause
    assert "500 Internal Server Error" in str(failure.error)
    assert [o.location for o in report.successes] == [str(paths[0]), str(paths[2])]


def test_invalid_json_is_a_read_failure(write_pact, broker_client):
    bad = write_pact("bad.json", "{not json")
    good = write_pact("good.json", pact_hash())

    report = PactPublisher(broker_client).publish([bad, good], CONSUMER_VERSION)

    assert report.outcomes[0].error.code == PactErrorCode.READ_INVALID_JSON
    assert report.outcomes[1].succeeded
    assert broker_client.publish.call_count == 1


def test_non_pact_json_is_a_read_failure(write_pact, broker_client):
    not_a_pact = write_pact("list.json", [1, 2, 3])
    bad_interactions = write_pact("bad-interactions.json", {"interactions": "nope"})

    report = PactPublisher(broker_client).publish([not_a_pact, bad_interactions], CONSUMER_VERSION)

    assert report.overall_status == "failed"
    assert [o.error.code for o in report.outcomes] == [PactErrorCode.READ_SCHEMA_INVALID] * 2
    broker_client.publish.assert_not_called()


def test_every_file_failing_still_returns_a_report(pact_dir, write_pact, broker_client):
    broker_client.publish.side_effect = ConnectionError("broker unreachable")
    path = write_pact("consumer-provider.json", pact_hash())

    report = PactPublisher(broker_client).publish([pact_dir / "missing.json", path], CONSUMER_VERSION)

    assert report.total_files == 2
    assert report.failed_files == 2
    assert report.overall_status == "failed"
    assert report.outcomes[0].error.code == PactErrorCode.READ_FILE_NOT_FOUND
    assert report.outcomes[1].error.code == PactErrorCode.PUBLISH_FAILED


@pytest.mark.parametrize("consumer_version", ["", "   ", None])
def test_blank_consumer_version_is_rejected(write_pact, broker_client, consumer_version):
    path = write_pact("consumer-provider.json", pact_hash())

    with pytest.raises(PactConfigurationError):
        PactPublisher(broker_client).publish([path], consumer_version)

    broker_client.publish.assert_not_called()


def test_no_files_is_rejected(broker_client):
    with pytest.raises(PactConfigurationError, match="No pact files found"):
        PactPublisher(broker_client).publish([], CONSUMER_VERSION)


def test_max_workers_must_be_positive(broker_client):
    with pytest.raises(PactConfigurationError):
        PactPublisher(broker_client, max_workers=0)


def test_max_workers_defaults_from_settings(monkeypatch, broker_client):
    monkeypatch.setenv("PACT_PUBLISH_MAX_WORKERS", "4")

    assert PactPublisher(broker_client).max_workers == 4


def test_parallel_publishing_keeps_input_order(write_pact):
    paths = [write_pact(f"pact-{i}.json", pact_hash(provider=f"Provider{i}")) for i in range(6)]
    lock = threading.Lock()
    seen = []

    class SlowFirstClient:
        def publish(self, pact_json, consumer_version):
            provider = json.loads(pact_json)["provider"]["name"]
            if provider == "Provider0":
                threading.Event().wait(0.05)
            with lock:
                seen.append(provider)
            if provider == "Provider3":
                raise RuntimeError("rejected")
            return provider

    report = PactPublisher(SlowFirstClient(), max_workers=3).publish(paths, CONSUMER_VERSION)

    assert [o.location for o in report.outcomes] == [str(p) for p in paths]
    assert [o.response for o in report.outcomes] == ["Provider0", "Provider1", "Provider2", None, "Provider4", "Provider5"]
    assert report.outcomes[3].status == FAILED
    assert sorted(seen) == [f"Provider{i}" for i in range(6)]


def test_schema_validation_can_be_disabled(write_pact, broker_client):
    path = write_pact("odd.json", {"interactions": [], "consumer": "not-an-object"})

    report = PactPublisher(broker_client, validate_schema=False).publish([path], CONSUMER_VERSION)

    assert report.succeeded
    assert report.outcomes[0].pact_name is None


def test_report_to_dict(pact_dir, write_pact, broker_client):
    path = write_pact("consumer-provider.json", pact_hash())

    report = PactPublisher(broker_client).publish([pact_dir / "missing.json", path], CONSUMER_VERSION)
    data = report.to_dict()

    assert data["consumer_version"] == CONSUMER_VERSION
    assert data["overall_status"] == "partial"
    assert data["outcomes"][0]["error"]["error_code"] == PactErrorCode.READ_FILE_NOT_FOUND.value
    assert data["outcomes"][0]["error"]["category"] == "READ"
    assert data["outcomes"][1]["status"] == PUBLISHED
    json.dumps(data)


def test_deeply_nested_json_is_a_read_failure(write_pact, broker_client):
    deep = write_pact("deep.json", "[" * 200000 + "]" * 200000)
    good = write_pact("good.json", pact_hash())

    report = PactPublisher(broker_client).publish([deep, good], CONSUMER_VERSION)

    assert [o.status for o in report.outcomes] == [FAILED, PUBLISHED]
    failure = report.outcomes[0]
    assert isinstance(failure.error, FileReadError)
    assert failure.error.code == PactErrorCode.READ_INVALID_JSON
    assert isinstance(failure.error.cause, RecursionError)
    assert broker_client.publish.call_count == 1


class TestPublishMerged:
    def test_files_for_the_same_pact_are_merged(self, write_pact, broker_client):
        first = write_pact("a.json", pact_hash(interactions=[{"providerState": 1, "description": 1, "foo": "bar"}]))
        second = write_pact("b.json", pact_hash(interactions=[
            {"providerState": 2, "description": 2, "foo": "wiffle"},
            {"providerState": 1, "description": 1, "foo": "bar"},
        ]))

        report = PactPublisher(broker_client).publish_merged([first, second], CONSUMER_VERSION)

        broker_client.publish.assert_called_once()
        published = json.loads(broker_client.publish.call_args.kwargs["pact_json"])
        assert published == pact_hash(interactions=[
            {"providerState": 1, "description": 1, "foo": "bar"},
            {"providerState": 2, "description": 2, "foo": "wiffle"},
        ])
        assert [o.status for o in report.outcomes] == [PUBLISHED, PUBLISHED]
        assert [o.location for o in report.outcomes] == [str(first), str(second)]

    def test_conflict_fails_only_its_own_group(self, pact_dir, write_pact, broker_client):
        conflicting_a = write_pact("a1.json", pact_hash(provider="A", interactions=[{"providerState": 1, "description": 1, "foo": "bar"}]))
        other = write_pact("b.json", pact_hash(provider="B"))
        conflicting_b = write_pact("a2.json", pact_hash(provider="A", interactions=[{"providerState": 1, "description": 1, "foo": "different"}]))
        missing = pact_dir / "missing.json"

        report = PactPublisher(broker_client).publish_merged(
            [conflicting_a, other, missing, conflicting_b], CONSUMER_VERSION
        )

        assert [o.status for o in report.outcomes] == [FAILED, PUBLISHED, FAILED, FAILED]
        assert isinstance(report.outcomes[0].error, ConflictError)
        assert report.outcomes[0].error is report.outcomes[3].error
        assert isinstance(report.outcomes[2].error, FileReadError)
        broker_client.publish.assert_called_once()
        assert json.loads(broker_client.publish.call_args.kwargs["pact_json"])["provider"]["name"] == "B"

    def test_single_file_group_publishes_raw_content(self, write_pact, broker_client):
        path = write_pact("a.json", pact_hash())
        raw = path.read_text(encoding="utf-8")

        PactPublisher(broker_client).publish_merged([path], CONSUMER_VERSION)

        assert broker_client.publish.call_args == call(pact_json=raw, consumer_version=CONSUMER_VERSION)

    def test_unnamed_pacts_are_published_separately(self, write_pact, broker_client):
        paths = [
            write_pact("a.json", {"interactions": [{"providerState": 1, "description": 1}]}),
            write_pact("b.json", {"interactions": [{"providerState": 2, "description": 2}]}),
        ]

        report = PactPublisher(broker_client).publish_merged(paths, CONSUMER_VERSION)

        assert broker_client.publish.call_count == 2
        assert report.succeeded

    def test_group_publish_failure_fails_each_member(self, write_pact, broker_client):
        broker_client.publish.side_effect = RuntimeError("409 Conflict")
        paths = [write_pact("a.json", pact_hash()), write_pact("b.json", pact_hash())]

        report = PactPublisher(broker_client).publish_merged(paths, CONSUMER_VERSION)

        assert [o.status for o in report.outcomes] == [FAILED, FAILED]
        assert all(isinstance(o.error, PublishError) for o in report.outcomes)

    def test_deeply_nested_json_fails_only_its_own_file(self, write_pact, broker_client):
        deep = write_pact("deep.json", '{"interactions": ' + "[" * 200000 + "]" * 200000 + "}")
        good = write_pact("good.json", pact_hash())

        report = PactPublisher(broker_client).publish_merged([deep, good], CONSUMER_VERSION)

        assert [o.status for o in report.outcomes] == [FAILED, PUBLISHED]
        assert report.outcomes[0].error.code == PactErrorCode.READ_INVALID_JSON
        broker_client.publish.assert_called_once()

    def test_too_deep_to_merge_fails_only_its_own_group(self, monkeypatch, write_pact, broker_client):
        publisher = PactPublisher(broker_client)
        real_merge = publisher.merger._merge

        def merge(documents):
            if documents[0].provider_name == "A":
                raise RecursionError("maximum recursion depth exceeded")
            return real_merge(documents)

        monkeypatch.setattr(publisher.merger, "_merge", merge)
        paths = [
            write_pact("a1.json", pact_hash(provider="A")),
            write_pact("a2.json", pact_hash(provider="A")),
            write_pact("b1.json", pact_hash(provider="B")),
            write_pact("b2.json", pact_hash(provider="B")),
        ]

        report = publisher.publish_merged(paths, CONSUMER_VERSION)

        assert [o.status for o in report.outcomes] == [FAILED, FAILED, PUBLISHED, PUBLISHED]
        error = report.outcomes[0].error
        assert isinstance(error, PactMergeError)
        assert not isinstance(error, ConflictError)
        assert error.code == PactErrorCode.MERGE_DOCUMENT_TOO_DEEP
        assert isinstance(error.__cause__, RecursionError)
        broker_client.publish.assert_called_once()
