"""Tests for scan job construction."""

from dataclasses import replace

import pytest

from core.exceptions import InvalidJobSpecError
from core.fingerprint import fingerprint, labels
from core.job_builder import ScanJobBuilder
from core.models import Platform, SecretKeyRef
from conftest import UBUNTU_DIGEST


class TestScanJobBuilder:
    """Tests for ScanJobBuilder.build."""

    def test_identity(self, ubuntu_event, linux_amd64):
        spec = ScanJobBuilder("scans").build(ubuntu_event, linux_amd64)

        assert spec.name == fingerprint(ubuntu_event, linux_amd64)
        assert spec.namespace == "scans"
        assert spec.labels == dict(labels(ubuntu_event, linux_amd64))
        assert spec.restart_policy == "OnFailure"

    def test_pure(self, ubuntu_event, linux_amd64):
        builder = ScanJobBuilder("scans")
        assert builder.build(ubuntu_event, linux_amd64) == builder.build(ubuntu_event, linux_amd64)

    def test_container(self, ubuntu_event, linux_amd64):
        container = ScanJobBuilder("scans").build(ubuntu_event, linux_amd64).container

        assert container.name == "scan"
        assert container.image == "snyk/snyk:linux"
        assert container.command == ("snyk",)
        assert container.args == (
            "container",
            "monitor",
            "-d",
            "--org=$(SNYK_ORG)",
            f"--target-reference=latest@{UBUNTU_DIGEST}",
            "--platform=linux/amd64",
            f"docker.io/library/ubuntu@{UBUNTU_DIGEST}",
        )

    def test_insecure_flag(self, ubuntu_event, linux_amd64):
        args = ScanJobBuilder("scans", insecure_registry=True).build(ubuntu_event, linux_amd64).container.args
        assert "--insecure" in args
        assert args[-1] == ubuntu_event.reference()

    def test_variant_in_platform_argument(self, ubuntu_event):
        args = ScanJobBuilder("scans").build(ubuntu_event, Platform("linux", "arm", "v7")).container.args
        assert "--platform=linux/arm/v7" in args

    def test_credentials_bound_by_reference(self, ubuntu_event, linux_amd64):
        """Test that the token comes from the secret and is never inlined."""
        env = {
            binding.name: binding
            for binding in ScanJobBuilder("scans", secret_name="scanner").build(ubuntu_event, linux_amd64).container.env
        }

        assert env["SNYK_TOKEN"].value is None
        assert env["SNYK_TOKEN"].secret_ref == SecretKeyRef("scanner", "SNYK_TOKEN")
        assert env["SNYK_ORG"].secret_ref == SecretKeyRef("scanner", "SNYK_ORG")
        assert env["SNYK_DISABLE_ANALYTICS"].value == "1"

    @pytest.mark.parametrize(
        "changes",
        [
            {"registry": ""},
            {"repository": ""},
            {"tag": "", "digest": ""},
        ],
    )
    def test_invalid_event(self, ubuntu_event, linux_amd64, changes):
        with pytest.raises(InvalidJobSpecError):
            ScanJobBuilder("scans").build(replace(ubuntu_event, **changes), linux_amd64)

    def test_missing_platform(self, ubuntu_event):
        with pytest.raises(InvalidJobSpecError):
            ScanJobBuilder("scans").build(ubuntu_event, None)
