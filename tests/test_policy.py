"""Tests for the certificate acceptance policy."""

from unittest.mock import Mock

import pytest

from appcert.config import ApplicationConfiguration
from appcert.exceptions import HostResolutionError
from appcert.models import ApplicationType
from appcert.policy import CertificatePolicy, evaluate_certificate


@pytest.fixture
def server_config():
    return ApplicationConfiguration(
        application_name="app",
        application_type=ApplicationType.SERVER,
        base_addresses=["opc.tcp://localhost:4840"],
    )


@pytest.fixture
def client_config():
    return ApplicationConfiguration(
        application_name="app",
        application_type=ApplicationType.CLIENT,
        application_uri="urn:configured:app",
    )


def test_missing_certificate_is_rejected_without_prompt(server_config, resolver, gate_factory):
    gate = gate_factory(True)
    policy = CertificatePolicy(resolver=resolver, approval_gate=gate)

    result = policy.evaluate(None, server_config, 2048, silent=False)

    assert not result.accepted
    assert result.reason
    assert gate.prompts == []


def test_server_certificate_accepted(server_config, resolver, cert_factory):
    cert = cert_factory("app", dns_names=["host1"])
    policy = CertificatePolicy(resolver=resolver)

    result = policy.evaluate(cert, server_config, 2048, silent=True)

    assert result.accepted
    assert result.overridden == []
    assert server_config.certificate is cert


def test_small_key_rejected_when_silent(server_config, resolver, cert_factory, gate_factory):
    cert = cert_factory("app", key_size=1024, dns_names=["localhost"])
    gate = gate_factory(True)
    policy = CertificatePolicy(resolver=resolver, approval_gate=gate)

    result = policy.evaluate(cert, server_config, 2048, silent=True)

    assert not result.accepted
    assert "1024" in result.reason
    assert gate.prompts == []
    assert server_config.certificate is None


def test_small_key_accepted_by_operator(server_config, resolver, cert_factory, gate_factory):
    cert = cert_factory("app", key_size=1024, dns_names=["localhost"])
    gate = gate_factory(True)
    policy = CertificatePolicy(resolver=resolver, approval_gate=gate)

    result = policy.evaluate(cert, server_config, 2048, silent=False)

    assert result.accepted
    assert len(result.overridden) == 1
    assert "key size (1024)" in gate.prompts[0]


def test_small_key_declined_by_operator(server_config, resolver, cert_factory, gate_factory):
    cert = cert_factory("app", key_size=1024, dns_names=["localhost"])
    gate = gate_factory(False)
    policy = CertificatePolicy(resolver=resolver, approval_gate=gate)

    result = policy.evaluate(cert, server_config, 2048, silent=False)

    assert not result.accepted
    assert len(gate.prompts) == 1


def test_key_size_equal_to_minimum_passes(server_config, resolver, cert_factory):
    cert = cert_factory("app", dns_names=["localhost"])

    assert CertificatePolicy(resolver=resolver).evaluate(cert, server_config, 2048, silent=True)


def test_server_domain_mismatch_rejected(server_config, resolver, cert_factory):
    cert = cert_factory("app", dns_names=["elsewhere.example"])

    result = CertificatePolicy(resolver=resolver).evaluate(cert, server_config, 2048, silent=True)

    assert not result.accepted
    assert "domains" in result.reason


def test_server_domain_check_short_circuits_after_key_decline(server_config, cert_factory, gate_factory):
    """Test that a declined key size prompt stops before the domain check."""
    cert = cert_factory("app", key_size=1024)
    resolver = Mock()
    gate = gate_factory(False)

    result = CertificatePolicy(resolver=resolver, approval_gate=gate).evaluate(cert, server_config, 2048)

    assert not result.accepted
    resolver.resolve_addresses.assert_not_called()


def test_resolution_failure_propagates(server_config, cert_factory):
    cert = cert_factory("app", dns_names=["localhost"])
    resolver = Mock()
    resolver.host_name.return_value = "host1"
    resolver.resolve_addresses.side_effect = HostResolutionError("lookup failed")

    with pytest.raises(HostResolutionError):
        CertificatePolicy(resolver=resolver).evaluate(cert, server_config, 2048, silent=True)


def test_client_takes_application_uri_from_certificate(client_config, cert_factory):
    cert = cert_factory("app", application_uri="urn:host1:app")
    resolver = Mock()

    result = CertificatePolicy(resolver=resolver).evaluate(cert, client_config, 2048, silent=True)

    assert result.accepted
    assert client_config.application_uri == "urn:host1:app"
    assert client_config.certificate is cert
    resolver.host_name.assert_not_called()


def test_client_without_application_uri_rejected_when_silent(client_config, cert_factory):
    cert = cert_factory("app")

    result = CertificatePolicy(resolver=Mock()).evaluate(cert, client_config, 2048, silent=True)

    assert not result.accepted
    assert "Application URI" in result.reason
    assert client_config.application_uri == "urn:configured:app"


def test_client_without_application_uri_accepted_by_operator(client_config, cert_factory, gate_factory):
    cert = cert_factory("app")
    gate = gate_factory(True)

    result = CertificatePolicy(resolver=Mock(), approval_gate=gate).evaluate(cert, client_config, 2048)

    assert result.accepted
    assert client_config.application_uri is None
    assert client_config.certificate is cert


def test_client_and_server_checks_domains(resolver, cert_factory):
    config = ApplicationConfiguration(
        application_name="app",
        application_type=ApplicationType.CLIENT_AND_SERVER,
        base_addresses=["opc.tcp://plant.example:4840"],
    )
    cert = cert_factory("app")

    assert not CertificatePolicy(resolver=resolver).evaluate(cert, config, 2048, silent=True)


def test_evaluate_certificate_returns_bool(server_config, resolver, cert_factory):
    good = cert_factory("app", dns_names=["10.0.0.5"])
    weak = cert_factory("app", key_size=1024, dns_names=["10.0.0.5"])

    assert evaluate_certificate(good, server_config, 2048, silent=True, resolver=resolver) is True
    assert evaluate_certificate(weak, server_config, 2048, silent=True, resolver=resolver) is False
