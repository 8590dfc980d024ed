import pytest
import urllib3

from rotator.config.models import WorkloadReference
from rotator.errors import UnsupportedKindError, WorkloadUpdateError
from rotator.workloads.annotator import WorkloadAnnotator, annotation_key
from rotator.workloads.kinds import WorkloadKind

KEY = "secrets.github.com/secret-checksum"


@pytest.mark.parametrize("kind,suffix", [
    ("Deployment", "deployment"),
    ("statefulset", "stateful_set"),
    ("DAEMONSET", "daemon_set"),
    ("ReplicaSet", "replica_set"),
])
def test_each_kind_annotates_pod_template(apps, kind, suffix):
    apps.add(suffix, "apps", "web", annotations={"keep": "me"})
    ident = WorkloadAnnotator(apps).annotate(WorkloadReference(kind=kind, name="web"), "apps", KEY, "abc123")

    assert ident == f"{kind}/web"
    assert apps.replaced == [(suffix, "apps", "web")]
    assert apps.template_annotations(suffix, "apps", "web") == {"keep": "me", KEY: "abc123"}
    # workload's own metadata is untouched
    assert apps.objects[(suffix, "apps", "web")].metadata.annotations is None


def test_template_annotations_are_created_lazily(apps):
    apps.add("deployment", "apps", "web", template_metadata=False)
    WorkloadAnnotator(apps).annotate(WorkloadReference(kind="Deployment", name="web"), "apps", KEY, "f1")
    assert apps.template_annotations("deployment", "apps", "web") == {KEY: "f1"}


def test_reference_namespace_wins_over_default(apps):
    apps.add("deployment", "other", "web")
    ref = WorkloadReference(kind="Deployment", name="web", namespace="other")
    ident = WorkloadAnnotator(apps).annotate(ref, "apps", KEY, "f1")
    assert ident == "other/Deployment/web"
    assert apps.replaced == [("deployment", "other", "web")]


def test_same_namespace_identifier_is_not_qualified(apps):
    apps.add("deployment", "apps", "web")
    ref = WorkloadReference(kind="Deployment", name="web", namespace="apps")
    assert WorkloadAnnotator(apps).annotate(ref, "apps", KEY, "f1") == "Deployment/web"


def test_unsupported_kind_names_the_value(apps):
    with pytest.raises(UnsupportedKindError) as ei:
        WorkloadAnnotator(apps).annotate(WorkloadReference(kind="CronJob", name="x"), "apps", KEY, "f1")
    assert "CronJob" in str(ei.value)
    assert apps.replaced == []


def test_missing_workload_is_an_update_error(apps):
    with pytest.raises(WorkloadUpdateError):
        WorkloadAnnotator(apps).annotate(WorkloadReference(kind="Deployment", name="ghost"), "apps", KEY, "f1")


def test_write_conflict_is_not_retried(apps):
    apps.add("daemon_set", "apps", "agent")
    apps.fail_replace.add(("daemon_set", "apps", "agent"))
    with pytest.raises(WorkloadUpdateError):
        WorkloadAnnotator(apps).annotate(WorkloadReference(kind="DaemonSet", name="agent"), "apps", KEY, "f1")
    assert apps.replaced == []


def test_kind_parse_is_case_insensitive():
    assert WorkloadKind.parse("sTaTeFuLsEt") is WorkloadKind.STATEFULSET
    with pytest.raises(UnsupportedKindError):
        WorkloadKind.parse("")


def test_annotation_key_defaults_prefix():
    assert annotation_key("") == KEY
    assert annotation_key(None) == KEY
    assert annotation_key("example.com/") == "example.com/secret-checksum"


def test_transport_failure_becomes_workload_error(apps):
    apps.add("deployment", "apps", "web")
    apps.read_errors[("deployment", "apps", "web")] = urllib3.exceptions.ProtocolError("Connection aborted.")
    with pytest.raises(WorkloadUpdateError, match="failed to read Deployment apps/web"):
        WorkloadAnnotator(apps).annotate(WorkloadReference(kind="Deployment", name="web"), "apps", KEY, "f1")
    assert apps.replaced == []
