"""
HTTP tests for the users resource.
Covers every row of the method/status table and the paging, upsert and
patch properties through the Flask test client.
"""

import json
import uuid
import xml.etree.ElementTree as ET

import pytest

from webapi.core.models import UserEntity

API_PREFIX = "/api/users"
JSON_PATCH = "application/json-patch+json"


def _pagination(response) -> dict:
    return json.loads(response.headers["X-Pagination"])


def _seed(repository, count: int):
    for index in range(count):
        repository.insert(UserEntity(login=f"user{index:02d}", first_name="F", last_name="L"))


class TestGetUserById:
    def test_returns_user(self, client, existing_user):
        response = client.get(f"{API_PREFIX}/{existing_user.id}")

        assert response.status_code == 200
        assert response.get_json() == {
            "id": str(existing_user.id),
            "login": "alice",
            "fullName": "Smith Alice",
            "gamesPlayed": 7,
            "currentGameId": None,
        }

    def test_unknown_id_returns_404(self, client):
        response = client.get(f"{API_PREFIX}/{uuid.uuid4()}")
        assert response.status_code == 404

    def test_unparsable_id_returns_404(self, client):
        response = client.get(f"{API_PREFIX}/not-a-guid")
        assert response.status_code == 404

    def test_head_returns_headers_without_body(self, client, existing_user):
        response = client.head(f"{API_PREFIX}/{existing_user.id}")

        assert response.status_code == 200
        assert response.data == b""
        assert response.content_type.startswith("application/json")

    def test_head_unknown_id_returns_404(self, client):
        response = client.head(f"{API_PREFIX}/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.data == b""

    def test_xml_representation(self, client, existing_user):
        response = client.get(f"{API_PREFIX}/{existing_user.id}", headers={"Accept": "application/xml"})

        assert response.status_code == 200
        assert response.content_type.startswith("application/xml")
        root = ET.fromstring(response.data)
        assert root.tag == "User"
        assert root.findtext("login") == "alice"
        assert root.findtext("fullName") == "Smith Alice"
        assert root.findtext("gamesPlayed") == "7"

    def test_unsupported_accept_returns_406(self, client, existing_user):
        response = client.get(f"{API_PREFIX}/{existing_user.id}", headers={"Accept": "text/csv"})
        assert response.status_code == 406


class TestListUsers:
    def test_first_page_with_defaults(self, client, repository):
        _seed(repository, 3)

        response = client.get(API_PREFIX)

        assert response.status_code == 200
        assert [u["login"] for u in response.get_json()] == ["user00", "user01", "user02"]
        assert _pagination(response) == {
            "previousPageLink": None,
            "nextPageLink": None,
            "totalCount": 3,
            "pageSize": 10,
            "currentPage": 1,
            "totalPages": 1,
        }

    def test_out_of_range_parameters_are_clamped(self, client, repository):
        _seed(repository, 25)

        response = client.get(f"{API_PREFIX}?pageNumber=0&pageSize=100")

        assert response.status_code == 200
        header = _pagination(response)
        assert header["currentPage"] == 1
        assert header["pageSize"] == 20
        assert header["totalPages"] == 2
        assert len(response.get_json()) == 20

    @pytest.mark.parametrize("page_size, expected", [(-5, 1), (0, 1), (1, 1), (20, 20), (21, 20)])
    def test_page_size_bounds(self, client, repository, page_size, expected):
        _seed(repository, 25)

        response = client.get(f"{API_PREFIX}?pageNumber=1&pageSize={page_size}")

        assert _pagination(response)["pageSize"] == expected
        assert len(response.get_json()) == expected

    def test_negative_page_number_behaves_as_first_page(self, client, repository):
        _seed(repository, 3)

        response = client.get(f"{API_PREFIX}?pageNumber=-3&pageSize=2")

        assert _pagination(response)["currentPage"] == 1
        assert [u["login"] for u in response.get_json()] == ["user00", "user01"]

    def test_middle_page_has_both_links(self, client, repository):
        _seed(repository, 7)

        response = client.get(f"{API_PREFIX}?pageNumber=2&pageSize=3")

        header = _pagination(response)
        assert header["previousPageLink"] == f"http://localhost{API_PREFIX}?pageNumber=1&pageSize=3"
        assert header["nextPageLink"] == f"http://localhost{API_PREFIX}?pageNumber=3&pageSize=3"
        assert header["totalPages"] == 3
        assert [u["login"] for u in response.get_json()] == ["user03", "user04", "user05"]

    def test_last_page_has_no_next_link(self, client, repository):
        _seed(repository, 7)

        header = _pagination(client.get(f"{API_PREFIX}?pageNumber=3&pageSize=3"))

        assert header["nextPageLink"] is None
        assert header["previousPageLink"].endswith("pageNumber=2&pageSize=3")

    def test_non_numeric_parameters_use_defaults(self, client, repository):
        _seed(repository, 2)

        header = _pagination(client.get(f"{API_PREFIX}?pageNumber=abc&pageSize=xyz"))

        assert header["currentPage"] == 1
        assert header["pageSize"] == 10

    def test_empty_collection(self, client):
        response = client.get(API_PREFIX)

        assert response.get_json() == []
        header = _pagination(response)
        assert header["totalCount"] == 0
        assert header["totalPages"] == 0
        assert header["nextPageLink"] is None

    def test_xml_list(self, client, repository):
        _seed(repository, 2)

        response = client.get(API_PREFIX, headers={"Accept": "text/xml"})

        root = ET.fromstring(response.data)
        assert root.tag == "ArrayOfUser"
        assert [u.findtext("login") for u in root.findall("User")] == ["user00", "user01"]
        assert "X-Pagination" in response.headers


class TestCreateUser:
    def test_creates_user_and_points_location_at_it(self, client, repository):
        response = client.post(API_PREFIX, json={"login": "bob1", "firstName": "Bob", "lastName": "Jones"})

        assert response.status_code == 201
        new_id = uuid.UUID(response.get_json())
        assert response.headers["Location"] == f"http://localhost{API_PREFIX}/{new_id}"
        stored = repository.find_by_id(new_id)
        assert stored.login == "bob1"
        assert stored.first_name == "Bob"

    def test_defaults_names(self, client, repository):
        response = client.post(API_PREFIX, json={"login": "newbie"})

        stored = repository.find_by_id(uuid.UUID(response.get_json()))
        assert (stored.first_name, stored.last_name) == ("John", "Doe")

    def test_missing_body_returns_400(self, client, repository):
        response = client.post(API_PREFIX)

        assert response.status_code == 400
        assert repository.count() == 0

    def test_json_null_body_returns_400(self, client):
        response = client.post(API_PREFIX, data="null", content_type="application/json")
        assert response.status_code == 400

    def test_invalid_json_returns_400(self, client):
        response = client.post(API_PREFIX, data="{not json", content_type="application/json")
        assert response.status_code == 400

    def test_non_object_json_returns_400(self, client):
        response = client.post(API_PREFIX, json=["login"])
        assert response.status_code == 400

    def test_unsupported_content_type_returns_415(self, client):
        response = client.post(API_PREFIX, data="login=bob", content_type="application/x-www-form-urlencoded")
        assert response.status_code == 415

    def test_login_with_symbol_returns_422(self, client, repository):
        response = client.post(API_PREFIX, json={"login": "ab!"})

        assert response.status_code == 422
        assert list(response.get_json()) == ["login"]
        assert response.get_json()["login"]
        assert repository.count() == 0

    @pytest.mark.parametrize("login", ["", "a b", "bob-1", "x.y", "tab\t", None, "a½", "x²", "Ⅻ"])
    def test_invalid_logins_rejected(self, client, login, repository):
        response = client.post(API_PREFIX, json={"login": login})

        assert response.status_code == 422
        assert "login" in response.get_json()
        assert repository.count() == 0

    def test_null_optional_names_fall_back_to_defaults(self, client, repository):
        response = client.post(API_PREFIX, json={"login": "bob1", "firstName": None, "lastName": None})

        assert response.status_code == 201
        fetched = client.get(response.headers["Location"]).get_json()
        assert fetched["fullName"] == "Doe John"

    def test_missing_login_returns_422(self, client):
        response = client.post(API_PREFIX, json={"firstName": "Nobody"})

        assert response.status_code == 422
        assert "login" in response.get_json()

    def test_unicode_letters_are_accepted(self, client):
        response = client.post(API_PREFIX, json={"login": "Jörg42"})
        assert response.status_code == 201

    def test_xml_body_and_response(self, client, repository):
        body = "<CreateUserDto><login>xmluser</login><firstName>X</firstName></CreateUserDto>"

        response = client.post(
            API_PREFIX,
            data=body,
            content_type="application/xml",
            headers={"Accept": "application/xml"},
        )

        assert response.status_code == 201
        root = ET.fromstring(response.data)
        assert root.tag == "Guid"
        assert repository.find_by_id(uuid.UUID(root.text)).login == "xmluser"

    def test_malformed_xml_returns_400(self, client):
        response = client.post(API_PREFIX, data="<User><login>", content_type="application/xml")
        assert response.status_code == 400

    def test_validation_errors_as_xml(self, client):
        response = client.post(API_PREFIX, json={"login": "ab!"}, headers={"Accept": "application/xml"})

        assert response.status_code == 422
        root = ET.fromstring(response.data)
        assert root.tag == "ValidationProblem"
        assert root.find("Error").get("field") == "login"

    def test_payload_too_large_returns_413(self, client):
        response = client.post(API_PREFIX, json={"login": "a", "firstName": "x" * 70000})
        assert response.status_code == 413


class TestUpdateUser:
    def test_put_unknown_id_creates_with_client_identity(self, client, repository):
        fresh_id = uuid.uuid4()

        response = client.put(
            f"{API_PREFIX}/{fresh_id}",
            json={"login": "bob1", "firstName": "Bob", "lastName": "Jones"},
        )

        assert response.status_code == 201
        assert response.get_json() == str(fresh_id)
        assert response.headers["Location"].endswith(f"{API_PREFIX}/{fresh_id}")

        fetched = client.get(f"{API_PREFIX}/{fresh_id}")
        assert fetched.status_code == 200
        assert fetched.get_json()["login"] == "bob1"
        assert fetched.get_json()["fullName"] == "Jones Bob"

    def test_put_existing_id_replaces(self, client, existing_user):
        response = client.put(
            f"{API_PREFIX}/{existing_user.id}",
            json={"login": "alice2", "firstName": "Alicia", "lastName": "Stone"},
        )

        assert response.status_code == 204
        assert response.data == b""
        body = client.get(f"{API_PREFIX}/{existing_user.id}").get_json()
        assert body["login"] == "alice2"
        assert body["fullName"] == "Stone Alicia"

    def test_put_ignores_identity_in_body(self, client, existing_user, repository):
        other_id = uuid.uuid4()

        response = client.put(
            f"{API_PREFIX}/{existing_user.id}",
            json={"id": str(other_id), "login": "alice", "firstName": "A", "lastName": "S"},
        )

        assert response.status_code == 204
        assert repository.find_by_id(other_id) is None
        assert repository.count() == 1

    def test_put_without_body_returns_400(self, client, existing_user):
        response = client.put(f"{API_PREFIX}/{existing_user.id}")
        assert response.status_code == 400

    def test_put_unparsable_id_returns_400(self, client):
        response = client.put(f"{API_PREFIX}/not-a-guid", json={"login": "bob", "firstName": "B", "lastName": "J"})
        assert response.status_code == 400

    def test_put_reports_every_validation_error(self, client, existing_user, repository):
        response = client.put(f"{API_PREFIX}/{existing_user.id}", json={"login": "bad login", "firstName": ""})

        assert response.status_code == 422
        assert set(response.get_json()) == {"login", "firstName", "lastName"}
        assert repository.find_by_id(existing_user.id).login == "alice"

    def test_put_invalid_payload_on_unknown_id_creates_nothing(self, client, repository):
        response = client.put(f"{API_PREFIX}/{uuid.uuid4()}", json={"login": "", "firstName": "A", "lastName": "B"})

        assert response.status_code == 422
        assert repository.count() == 0


class TestPartiallyUpdateUser:
    def test_patch_replaces_fields(self, client, existing_user, repository):
        response = client.patch(
            f"{API_PREFIX}/{existing_user.id}",
            data=json.dumps([
                {"op": "replace", "path": "/login", "value": "alice99"},
                {"op": "replace", "path": "/lastName", "value": "Brown"},
            ]),
            content_type=JSON_PATCH,
        )

        assert response.status_code == 204
        stored = repository.find_by_id(existing_user.id)
        assert stored.login == "alice99"
        assert stored.last_name == "Brown"
        assert stored.first_name == "Alice"
        assert stored.games_played == 7

    def test_patch_accepts_plain_json_content_type(self, client, existing_user):
        response = client.patch(
            f"{API_PREFIX}/{existing_user.id}",
            json=[{"op": "replace", "path": "/firstName", "value": "Al"}],
        )
        assert response.status_code == 204

    def test_patch_invalid_login_leaves_user_unchanged(self, client, existing_user, repository):
        response = client.patch(
            f"{API_PREFIX}/{existing_user.id}",
            data=json.dumps([
                {"op": "replace", "path": "/firstName", "value": "Changed"},
                {"op": "replace", "path": "/login", "value": "bad login!"},
            ]),
            content_type=JSON_PATCH,
        )

        assert response.status_code == 422
        assert "login" in response.get_json()
        stored = repository.find_by_id(existing_user.id)
        assert stored.login == "alice"
        assert stored.first_name == "Alice"

    def test_patch_removing_required_field_returns_422(self, client, existing_user):
        response = client.patch(
            f"{API_PREFIX}/{existing_user.id}",
            data=json.dumps([{"op": "remove", "path": "/lastName"}]),
            content_type=JSON_PATCH,
        )

        assert response.status_code == 422
        assert "lastName" in response.get_json()

    def test_patch_collects_operation_and_validation_errors(self, client, existing_user):
        response = client.patch(
            f"{API_PREFIX}/{existing_user.id}",
            data=json.dumps([
                {"op": "replace", "path": "/unknownField", "value": "x"},
                {"op": "replace", "path": "/login", "value": ""},
            ]),
            content_type=JSON_PATCH,
        )

        assert response.status_code == 422
        assert set(response.get_json()) == {"patch", "login"}

    def test_failed_test_op_with_control_characters_renders_valid_xml(self, client, existing_user):
        response = client.patch(
            f"{API_PREFIX}/{existing_user.id}",
            data=json.dumps([{"op": "test", "path": "/login", "value": "bad\u0000\u001bvalue"}]),
            content_type=JSON_PATCH,
            headers={"Accept": "application/xml"},
        )

        assert response.status_code == 422
        root = ET.fromstring(response.data)
        error = root.find("Error")
        assert error.get("field") == "login"
        assert "badvalue" in error.text

    def test_patch_unknown_id_returns_404(self, client, existing_user, repository):
        response = client.patch(
            f"{API_PREFIX}/{uuid.uuid4()}",
            data=json.dumps([{"op": "replace", "path": "/login", "value": "ghost"}]),
            content_type=JSON_PATCH,
        )

        assert response.status_code == 404
        assert repository.count() == 1
        assert repository.find_by_id(existing_user.id).login == "alice"

    def test_patch_unparsable_id_returns_404(self, client):
        response = client.patch(
            f"{API_PREFIX}/not-a-guid",
            data=json.dumps([{"op": "replace", "path": "/login", "value": "x"}]),
            content_type=JSON_PATCH,
        )
        assert response.status_code == 404

    def test_patch_without_document_returns_400(self, client, existing_user):
        response = client.patch(f"{API_PREFIX}/{existing_user.id}")
        assert response.status_code == 400

    def test_patch_null_document_returns_400(self, client, existing_user):
        response = client.patch(f"{API_PREFIX}/{existing_user.id}", data="null", content_type=JSON_PATCH)
        assert response.status_code == 400

    def test_patch_object_document_returns_400(self, client, existing_user):
        response = client.patch(
            f"{API_PREFIX}/{existing_user.id}",
            data=json.dumps({"op": "replace", "path": "/login", "value": "x"}),
            content_type=JSON_PATCH,
        )
        assert response.status_code == 400

    def test_patch_xml_body_returns_415(self, client, existing_user):
        response = client.patch(f"{API_PREFIX}/{existing_user.id}", data="<ops/>", content_type="application/xml")
        assert response.status_code == 415


class TestDeleteUser:
    def test_delete_existing_user(self, client, existing_user, repository):
        response = client.delete(f"{API_PREFIX}/{existing_user.id}")

        assert response.status_code == 204
        assert repository.find_by_id(existing_user.id) is None
        assert client.get(f"{API_PREFIX}/{existing_user.id}").status_code == 404

    def test_delete_unknown_id_returns_404(self, client):
        response = client.delete(f"{API_PREFIX}/{uuid.uuid4()}")
        assert response.status_code == 404

    def test_delete_unparsable_id_returns_404(self, client):
        response = client.delete(f"{API_PREFIX}/12345")
        assert response.status_code == 404


class TestOptions:
    def test_options_lists_collection_methods(self, client):
        response = client.options(API_PREFIX)

        assert response.status_code == 200
        assert response.headers["Allow"] == "POST, GET, OPTIONS"
        assert response.data == b""


class TestTrailingSlash:
    def test_list_with_trailing_slash(self, client, repository):
        _seed(repository, 3)

        response = client.get(f"{API_PREFIX}/?pageNumber=2&pageSize=2")

        assert response.status_code == 200
        header = _pagination(response)
        assert header["previousPageLink"] == f"http://localhost{API_PREFIX}?pageNumber=1&pageSize=2"
        assert [u["login"] for u in response.get_json()] == ["user02"]

    def test_create_with_trailing_slash(self, client):
        response = client.post(f"{API_PREFIX}/", json={"login": "bob1"})

        assert response.status_code == 201
        assert response.headers["Location"] == f"http://localhost{API_PREFIX}/{response.get_json()}"

    def test_options_with_trailing_slash(self, client):
        response = client.options(f"{API_PREFIX}/")

        assert response.status_code == 200
        assert response.headers["Allow"] == "POST, GET, OPTIONS"


class TestCrossCutting:
    def test_correlation_id_is_echoed(self, client):
        response = client.get(API_PREFIX, headers={"X-Correlation-Id": "abc-123"})
        assert response.headers["X-Correlation-Id"] == "abc-123"

    def test_unsupported_method_returns_405(self, client):
        response = client.delete(API_PREFIX)
        assert response.status_code == 405

    def test_repository_failure_surfaces_as_500(self, client, repository, monkeypatch):
        def _boom(*args, **kwargs):
            raise RuntimeError("storage offline")

        monkeypatch.setattr(repository, "get_page", _boom)

        response = client.get(API_PREFIX)

        assert response.status_code == 500
        assert response.get_json()["error"] == "Internal Server Error"
