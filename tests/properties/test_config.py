"""Property-based tests for configuration and derived paths."""

from pathlib import Path
from unittest.mock import patch

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from talos_local.exceptions import ConfigurationError, PreconditionError
from talos_local.models.config import ExecutionContext, PathSet, ProvisionConfig


@st.composite
def valid_dns_label(draw):
    """Generate valid RFC 1123 labels."""
    length = draw(st.integers(min_value=1, max_value=20))
    if length == 1:
        return draw(st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"))
    start = draw(st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"))
    middle = "".join(
        draw(
            st.lists(
                st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789-"),
                min_size=length - 2,
                max_size=length - 2,
            )
        )
    )
    end = draw(st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"))
    return start + middle + end


@given(name=valid_dns_label())
def test_valid_cluster_names_accepted(name):
    assert ProvisionConfig(cluster_name=name).cluster_name == name


@given(
    name=st.one_of(
        st.just(""),
        st.just("-leading"),
        st.just("trailing-"),
        st.just("Upper"),
        st.just("has_underscore"),
        st.just("has.dot"),
        st.just("a" * 64),
    )
)
def test_invalid_cluster_names_rejected(name):
    with pytest.raises(ValidationError):
        ProvisionConfig(cluster_name=name)


@given(duration=st.sampled_from(["10m", "300s", "1h30m", "90s", "1.5h", "500ms"]))
def test_go_durations_accepted(duration):
    assert ProvisionConfig(wait_timeout=duration).wait_timeout == duration


@given(duration=st.sampled_from(["", "10", "ten minutes", "m10", "10 m"]))
def test_malformed_durations_rejected(duration):
    with pytest.raises(ValidationError):
        ProvisionConfig(system_pods_timeout=duration)


@given(vm_name=valid_dns_label(), use_vm=st.booleans())
def test_paths_derive_from_home(vm_name, use_vm):
    home = Path("/home/dev")
    config = ProvisionConfig(home=home, workdir=Path("/src"), use_vm=use_vm, vm_name=vm_name)

    paths = PathSet.from_config(config)

    assert paths.talos_config == home / ".talos" / "config"
    assert paths.kubeconfig == home / ".kube" / "talos-config"
    if use_vm:
        assert paths.vm_definition == Path("/src/talos-docker.yaml")
        assert paths.docker_socket == home / ".lima" / vm_name / "sock" / "docker.sock"
    else:
        assert paths.vm_definition is None
        assert paths.docker_socket is None


@given(use_vm=st.booleans())
def test_step_environments(use_vm):
    context = ExecutionContext.from_config(ProvisionConfig(home=Path("/h"), use_vm=use_vm))

    assert context.kube_env() == {"KUBECONFIG": "/h/.kube/talos-config"}
    assert context.talos_env()["TALOSCONFIG"] == "/h/.talos/config"
    assert ("DOCKER_HOST" in context.talos_env()) is use_vm


def test_unresolvable_home_is_a_precondition_failure():
    with patch("pathlib.Path.home", side_effect=RuntimeError("Could not determine home directory")):
        with pytest.raises(PreconditionError):
            PathSet.from_config(ProvisionConfig())


def test_with_overrides_skips_none_and_validates():
    config = ProvisionConfig()

    updated = config.with_overrides(workers=3, cluster_name=None)
    assert updated.workers == 3
    assert updated.cluster_name == "talos-local"

    with pytest.raises(ConfigurationError):
        config.with_overrides(controlplanes=0)


def test_save_and_load(tmp_path):
    path = tmp_path / "talos-local.yaml"
    original = ProvisionConfig(cluster_name="dev", workers=1, talosctl_bin="/opt/homebrew/bin/talosctl")

    original.save(path)
    loaded = ProvisionConfig.load(path)

    assert loaded == original


def test_load_missing_file(tmp_path):
    with pytest.raises(ConfigurationError) as exc_info:
        ProvisionConfig.load(tmp_path / "missing.yaml")

    assert "not found" in exc_info.value.message


def test_load_unreadable_path(tmp_path):
    with pytest.raises(ConfigurationError) as exc_info:
        ProvisionConfig.load(tmp_path)

    assert "Cannot read" in exc_info.value.message
    assert exc_info.value.details


def test_load_rejects_non_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")

    with pytest.raises(ConfigurationError):
        ProvisionConfig.load(path)


def test_load_rejects_invalid_values(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("cluster_name: Bad_Name\n")

    with pytest.raises(ConfigurationError) as exc_info:
        ProvisionConfig.load(path)

    assert "cluster_name" in exc_info.value.details
