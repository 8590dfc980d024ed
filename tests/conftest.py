import copy
import functools
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest
from kubernetes.client.exceptions import ApiException

from rotator.config.models import GROUP, PLURAL, VERSION
from rotator.k8s.client import KubeApis


def api_error(status: int, reason: str = "") -> ApiException:
    return ApiException(status=status, reason=reason or {404: "Not Found", 409: "Conflict"}.get(status, "Error"))


def _fail(err):
    """Raise *err*: an HTTP status code or a ready exception (transport failures)."""
    raise err if isinstance(err, BaseException) else api_error(err)


# --------- Test doubles ----------

def _stored_secret(body):
    """Plain copy of a V1Secret as the API server would keep it."""
    return SimpleNamespace(
        metadata=SimpleNamespace(name=body.metadata.name, namespace=body.metadata.namespace),
        data=dict(body.data or {}),
        string_data=None,
    )


class FakeCore:
    """CoreV1Api subset: Secrets only. Records every write."""

    def __init__(self):
        self.secrets: Dict[tuple, object] = {}
        self.writes: List[tuple] = []
        self.read_error: Optional[int] = None
        self.write_error: Optional[int] = None

    def read_namespaced_secret(self, name, namespace):
        if self.read_error:
            _fail(self.read_error)
        if (namespace, name) not in self.secrets:
            raise api_error(404)
        return copy.deepcopy(self.secrets[(namespace, name)])

    def create_namespaced_secret(self, namespace, body):
        if self.write_error:
            _fail(self.write_error)
        self.writes.append(("create", namespace, body.metadata.name))
        self.secrets[(namespace, body.metadata.name)] = _stored_secret(body)
        return body

    def replace_namespaced_secret(self, name, namespace, body):
        if self.write_error:
            _fail(self.write_error)
        self.writes.append(("replace", namespace, name))
        self.secrets[(namespace, name)] = _stored_secret(body)
        return body


class FakeApps:
    """AppsV1Api subset: read/replace for the four workload kinds."""

    SUFFIXES = ("deployment", "stateful_set", "daemon_set", "replica_set")

    def __init__(self):
        self.objects: Dict[tuple, SimpleNamespace] = {}
        self.replaced: List[tuple] = []
        self.fail_replace: set = set()
        self.read_errors: Dict[tuple, BaseException] = {}

    def add(self, suffix, namespace, name, annotations=None, template_metadata=True):
        meta = SimpleNamespace(annotations=annotations) if template_metadata else None
        self.objects[(suffix, namespace, name)] = SimpleNamespace(
            metadata=SimpleNamespace(name=name, namespace=namespace, annotations=None, resource_version="1"),
            spec=SimpleNamespace(template=SimpleNamespace(metadata=meta)),
        )

    def template_annotations(self, suffix, namespace, name):
        meta = self.objects[(suffix, namespace, name)].spec.template.metadata
        return meta.annotations if meta else None

    def _read(self, suffix, name, namespace):
        if (suffix, namespace, name) in self.read_errors:
            raise self.read_errors[(suffix, namespace, name)]
        if (suffix, namespace, name) not in self.objects:
            raise api_error(404)
        return copy.deepcopy(self.objects[(suffix, namespace, name)])

    def _replace(self, suffix, name, namespace, body):
        if (suffix, namespace, name) in self.fail_replace:
            raise api_error(409)
        self.replaced.append((suffix, namespace, name))
        meta = body.spec.template.metadata
        body.spec.template.metadata = SimpleNamespace(annotations=dict(meta.annotations or {}))
        self.objects[(suffix, namespace, name)] = body
        return body

    def __getattr__(self, attr):
        for op in ("read", "replace"):
            prefix = f"{op}_namespaced_"
            if attr.startswith(prefix) and attr[len(prefix):] in self.SUFFIXES:
                return functools.partial(getattr(self, f"_{op}"), attr[len(prefix):])
        raise AttributeError(attr)


class FakeCustom:
    """CustomObjectsApi subset for SecretRotation objects."""

    def __init__(self):
        self.objects: Dict[tuple, dict] = {}
        self.status_writes: List[dict] = []
        self.read_error: Optional[int] = None
        self.status_error: Optional[int] = None

    def put(self, namespace, name, spec, status=None, resource_version="7", generation=1):
        self.objects[(namespace, name)] = {
            "apiVersion": f"{GROUP}/{VERSION}",
            "kind": "SecretRotation",
            "metadata": {"namespace": namespace, "name": name,
                         "resourceVersion": resource_version, "generation": generation},
            "spec": spec,
            "status": status or {},
        }

    def status(self, namespace, name):
        return self.objects[(namespace, name)].get("status", {})

    def get_namespaced_custom_object(self, group, version, namespace, plural, name):
        assert (group, version, plural) == (GROUP, VERSION, PLURAL)
        if self.read_error:
            _fail(self.read_error)
        if (namespace, name) not in self.objects:
            raise api_error(404)
        return copy.deepcopy(self.objects[(namespace, name)])

    def replace_namespaced_custom_object_status(self, group, version, namespace, plural, name, body):
        if self.status_error:
            _fail(self.status_error)
        self.status_writes.append(copy.deepcopy(body))
        self.objects[(namespace, name)]["status"] = copy.deepcopy(body["status"])
        return body


class FakeVault:
    """hvac.Client.read stand-in: path -> response, or an exception to raise."""

    def __init__(self):
        self.responses: Dict[str, object] = {}
        self.errors: Dict[str, Exception] = {}
        self.reads: List[str] = []

    def kv2(self, path, data):
        self.responses[path] = {"data": {"data": dict(data), "metadata": {"version": 1}}}

    def read(self, path):
        self.reads.append(path)
        if path in self.errors:
            raise self.errors[path]
        return copy.deepcopy(self.responses.get(path))


@pytest.fixture
def core():
    return FakeCore()


@pytest.fixture
def apps():
    return FakeApps()


@pytest.fixture
def custom():
    return FakeCustom()


@pytest.fixture
def vault():
    return FakeVault()


@pytest.fixture
def apis(core, apps, custom):
    return KubeApis(core=core, apps=apps, custom=custom)
