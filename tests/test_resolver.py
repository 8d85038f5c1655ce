from bson import ObjectId
from pydantic import Field
import pytest

import dal.entities as entities
from dal.entity import Entity
from dal.models.common import TimestampedModel
from dal.privileges import ROLE_CANVASSER
from dal.query import decode_query
from dal.resolver import Resolver, resolve, count, get_root_owner, HTTP_OK, HTTP_NO_CONTENT
from services.errors import NotFoundError


class Member(TimestampedModel):
    name: str = Field(min_length=1)
    status: str = ""
    note: str = ""


members = Entity("Member", "members", Member)


def make_person(firstname, lastname, town, email, owner=None):
    fields = {"firstname": firstname, "lastname": lastname}
    if owner is not None:
        fields["owner"] = owner
    person = entities.people.create(fields)
    address = entities.addresses.create({"addr_line1": "742 Evergreen Terrace", "town": town, "owner": person["_id"]})
    contact = entities.contact_details.create({"email": email, "owner": person["_id"]})
    return entities.people.update(person["_id"], {"address": address["_id"], "contact_details": contact["_id"]})


@pytest.fixture
def residents(db):
    return {
        "homer": make_person("Homer", "Simpson", "Springfield", "homer@example.com"),
        "marge": make_person("Marge", "Simpson", "Springfield", "marge@example.com"),
        "ned": make_person("Ned", "Flanders", "Springfield", "ned@church.org"),
        "bob": make_person("Bob", "Terwilliger", "Shelbyville", "bob@example.com"),
        "moe": make_person("Moe", "Szyslak", "Shelbyville", "moe@tavern.org"),
    }


def names(docs):
    return sorted(d["firstname"] for d in docs)


def test_intersection_across_collections(residents):
    descriptor = decode_query({"town": "springfield", "email": "example.com"}, entities.people.tree)
    status, docs = resolve(descriptor)
    assert status == HTTP_OK
    assert names(docs) == ["Homer", "Marge"]
    assert count(descriptor) == 2


def test_disjoint_terms_have_no_content(residents):
    descriptor = decode_query({"town": "shelbyville", "email": "church.org"}, entities.people.tree)
    assert resolve(descriptor) == (HTTP_NO_CONTENT, [])
    assert count(descriptor) == 0


def test_root_and_subtree_terms(residents):
    descriptor = decode_query({"lastname": "simpson", "email": "marge"}, entities.people.tree)
    status, docs = resolve(descriptor)
    assert names(docs) == ["Marge"]


def test_root_only_queries_run_directly(residents):
    descriptor = decode_query({"lastname": "simpson"}, entities.people.tree)
    assert descriptor.is_root_only()
    status, docs = resolve(descriptor, sort=[("firstname", 1)])
    assert status == HTTP_OK
    assert [d["firstname"] for d in docs] == ["Homer", "Marge"]
    assert count(descriptor) == 2

    descriptor = decode_query({}, entities.people.tree)
    assert count(descriptor) == 5


def test_root_only_query_with_no_matches_is_ok(residents):
    descriptor = decode_query({"lastname": "wiggum"}, entities.people.tree)
    assert resolve(descriptor) == (HTTP_OK, [])


def test_union_term(residents):
    descriptor = decode_query({"$or": "firstname=homer,town=shelbyville"}, entities.people.tree)
    status, docs = resolve(descriptor)
    assert names(docs) == ["Bob", "Homer", "Moe"]

    descriptor = decode_query({"$or": "firstname=homer,town=shelbyville", "email": "example.com"}, entities.people.tree)
    status, docs = resolve(descriptor)
    assert names(docs) == ["Bob", "Homer"]


def test_results_are_populated(residents):
    descriptor = decode_query({"town": "shelbyville"}, entities.people.tree)
    status, docs = resolve(descriptor)
    for doc in docs:
        assert doc["address"]["town"] == "Shelbyville"
        assert doc["contact_details"]["owner"] == doc["_id"]


def test_get_by_id(residents):
    homer = residents["homer"]
    descriptor = decode_query({}, entities.people.tree, check_subtree=False)
    status, doc = resolve(descriptor, obj_id=str(homer["_id"]))
    assert status == HTTP_OK
    assert doc["firstname"] == "Homer"
    assert doc["address"]["addr_line1"] == "742 Evergreen Terrace"
    assert doc["contact_details"]["email"] == "homer@example.com"

    with pytest.raises(NotFoundError) as excinfo:
        resolve(descriptor, obj_id=str(ObjectId()))
    assert excinfo.value.status == 404
    with pytest.raises(NotFoundError):
        resolve(descriptor, obj_id="nonesuch")


def test_owner_chain_through_users(roles):
    user = entities.users.create({"username": "lisa", "password_hash": "x", "role": roles[ROLE_CANVASSER]["_id"]})
    person = make_person("Lisa", "Simpson", "Springfield", "lisa@example.com", owner=user["_id"])
    entities.users.update(user["_id"], {"person": person["_id"]})
    make_person("Maggie", "Simpson", "Springfield", "maggie@example.com")

    address_node = entities.users.tree.find_child("person").find_child("address")
    address = entities.addresses.find_one({"_id": person["address"]})
    end_node, end_doc = get_root_owner(address_node, address)
    assert end_node is entities.users.tree
    assert end_doc["_id"] == user["_id"]

    descriptor = decode_query({"town": "springfield"}, entities.users.tree)
    status, docs = resolve(descriptor)
    assert status == HTTP_OK
    assert [d["username"] for d in docs] == ["lisa"]
    assert "password_hash" not in docs[0]
    assert docs[0]["person"]["address"]["town"] == "Springfield"
    assert docs[0]["role"]["level"] == ROLE_CANVASSER


def test_selected_fields(db):
    members.create({"name": "Ann", "status": "Active", "note": "first"})
    members.create({"name": "Ben", "status": "retired", "note": "second"})
    members.create({"name": "Cat", "status": "active", "note": "third"})

    descriptor = decode_query({"status": "^active$", "fields": "name status"}, members.tree)
    status, docs = Resolver(members.tree, max_workers=2).get_docs(descriptor, sort=[("name", 1)])
    assert status == HTTP_OK
    assert [d["name"] for d in docs] == ["Ann", "Cat"]
    for doc in docs:
        assert set(doc.keys()) == {"_id", "name", "status"}


def test_projection_keeps_exclusions(db):
    resolver = Resolver(entities.users.tree)
    assert resolver.get_projection([]) == {"password_hash": 0, "oauth_id": 0, "oauth_token": 0}
    assert resolver.get_projection(["username", "password_hash"]) == {"username": 1}
    assert Resolver(entities.people.tree).get_projection([]) is None
