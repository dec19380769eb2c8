import pytest

from tenantscope.errors import InvalidTenantIDError
from tenantscope.tenant_id import TenantID, validate_tenant_id


@pytest.mark.parametrize(
    "raw",
    [
        "my-tenant",
        "tenant-123",
        "a",
        "550e8400-e29b-41d4-a716-446655440000",
        "org_123",
        "tenant.prod",
        "this-is-a-very-long-tenant-id-with-dashes-and-numbers-"
        "123456789012345678901234567890",
        "My-Tenant",
    ],
)
def test_valid_ids(raw):
    tid = TenantID(raw)
    assert tid.value == raw.lower()
    assert str(tid) == tid.value


@pytest.mark.parametrize(
    "raw",
    ["", "\x00" * 256, "my tenant", "tenant@123"],
)
def test_invalid_ids(raw):
    with pytest.raises(InvalidTenantIDError):
        TenantID(raw)


def test_uppercase_is_lowered():
    assert TenantID("My-Tenant").value == "my-tenant"


def test_length_boundary():
    assert TenantID("a" * 255).value == "a" * 255
    with pytest.raises(InvalidTenantIDError):
        TenantID("a" * 256)


def test_equality():
    assert TenantID("tenant-1") == TenantID("tenant-1")
    assert TenantID("tenant-1") != TenantID("tenant-2")


def test_equality_is_case_insensitive():
    assert TenantID("ACME") == TenantID("acme")
    assert hash(TenantID("ACME")) == hash(TenantID("acme"))


def test_validate_rejects_non_string():
    with pytest.raises(InvalidTenantIDError):
        validate_tenant_id(123)


def test_validate_rejects_special_characters():
    with pytest.raises(InvalidTenantIDError, match="invalid tenant ID"):
        validate_tenant_id("tenant/../other")


def test_is_immutable():
    tid = TenantID("acme")
    with pytest.raises(AttributeError):
        tid.value = "other"
    assert tid.value == "acme"