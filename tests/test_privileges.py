import pytest

from dal.privileges import make_privilege, decode_privilege, scope_bits, mask_has_capability, role_has_privilege, \
    default_role_documents, ROLE_NAMES, RESOURCES, ACCESS_ALL, ACCESS_CREATE, ACCESS_READ, ACCESS_UPDATE, \
    SCOPE_ALL, SCOPE_ONE, SCOPE_OWN, RESOURCE_NOTICES, RESOURCE_ROLES, ROLE_ADMIN, ROLE_CANVASSER, ROLE_NONE


def test_scopes_are_independent():
    mask = make_privilege(all=["create", "read", "update"], one=["delete"], own=["batch", "read"])
    assert decode_privilege(mask, SCOPE_ALL) == {"create", "read", "update"}
    assert decode_privilege(mask, SCOPE_ONE) == {"delete"}
    assert decode_privilege(mask, SCOPE_OWN) == {"batch", "read"}
    assert scope_bits(mask, SCOPE_ALL) == ACCESS_CREATE | ACCESS_READ | ACCESS_UPDATE


def test_bit_layout():
    assert make_privilege(all=["create"]) == 0x01
    assert make_privilege(one=["create"]) == 0x01 << 5
    assert make_privilege(own=["create"]) == 0x01 << 10
    everything = ["create", "read", "update", "delete", "batch"]
    assert make_privilege(all=everything, one=everything, own=everything) == (1 << 15) - 1
    assert scope_bits((1 << 15) - 1, SCOPE_OWN) == ACCESS_ALL


def test_empty_and_missing_masks():
    assert decode_privilege(0, SCOPE_ALL) == set()
    assert decode_privilege(None, SCOPE_ONE) == set()
    assert not mask_has_capability(None, "read", SCOPE_ALL)
    assert not role_has_privilege(None, RESOURCE_NOTICES, "read")
    assert not role_has_privilege({"name": "x"}, RESOURCE_NOTICES, "read")


def test_unknown_names_are_rejected():
    with pytest.raises(ValueError):
        make_privilege(all=["fly"])
    with pytest.raises(ValueError):
        decode_privilege(1, "everywhere")
    with pytest.raises(ValueError):
        mask_has_capability(1, "fly", SCOPE_ALL)


def test_default_roles():
    docs = { d["level"]: d for d in default_role_documents() }
    assert set(docs.keys()) == set(ROLE_NAMES.keys())
    for level, doc in docs.items():
        assert doc["name"] == ROLE_NAMES[level]
        assert set(RESOURCES) <= set(doc.keys())

    admin = docs[ROLE_ADMIN]
    for resource in RESOURCES:
        for scope in (SCOPE_ALL, SCOPE_ONE, SCOPE_OWN):
            assert decode_privilege(admin[resource], scope) == {"create", "read", "update", "delete", "batch"}

    canvasser = docs[ROLE_CANVASSER]
    assert role_has_privilege(canvasser, RESOURCE_NOTICES, "read")
    assert not role_has_privilege(canvasser, RESOURCE_NOTICES, "create")
    assert not role_has_privilege(canvasser, RESOURCE_ROLES, "read")
    assert role_has_privilege(canvasser, RESOURCE_ROLES, "read", SCOPE_OWN)

    assert decode_privilege(docs[ROLE_NONE][RESOURCE_ROLES], SCOPE_OWN) == set()
