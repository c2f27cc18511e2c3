import hashlib

import pytest

from dinner_planner.documents_api import is_compatible


def _upload(client, headers, data, content_type, description=None):
    extra = {"X-Content-Description": description} if description else {}
    return client.post("/documents", data=data, content_type=content_type, headers={**headers, **extra})


def test_upload_and_public_read(client, member):
    _, headers = member
    payload = b"\x89PNG-bytes"
    r = _upload(client, headers, payload, "image/png", "logo")
    assert r.status_code == 201
    doc_id = int(r.get_data(as_text=True))

    # no key, no credentials
    r = client.get(f"/documents/{doc_id}")
    assert r.status_code == 200
    assert r.mimetype == "image/png"
    assert r.get_data() == payload
    assert r.headers["ETag"] == f'"{hashlib.sha256(payload).hexdigest()}"'


def test_metadata_projection_on_json_accept(client, member):
    _, headers = member
    doc_id = int(_upload(client, headers, b"abc", "text/plain", "notes").get_data())
    r = client.get(f"/documents/{doc_id}", headers={"Accept": "application/json"})
    assert r.status_code == 200
    meta = r.get_json()
    assert meta["type"] == "text/plain"
    assert meta["description"] == "notes"
    assert meta["size"] == 3
    assert meta["hash"] == hashlib.sha256(b"abc").hexdigest()


def test_not_acceptable_and_missing(client, member):
    _, headers = member
    doc_id = int(_upload(client, headers, b"abc", "text/plain").get_data())
    assert client.get(f"/documents/{doc_id}", headers={"Accept": "image/*"}).status_code == 406
    assert client.get(f"/documents/{doc_id}", headers={"Accept": "text/*"}).status_code == 200
    assert client.get("/documents/4711").status_code == 404


def test_same_content_is_deduplicated(client, member):
    _, headers = member
    first = _upload(client, headers, b"same", "text/plain", "v1")
    second = _upload(client, headers, b"same", "text/markdown", "v2")
    assert first.status_code == 201
    assert second.status_code == 200
    assert first.get_data() == second.get_data()
    meta = client.get(f"/documents/{int(first.get_data())}", headers={"Accept": "application/json"}).get_json()
    assert meta["type"] == "text/markdown"
    assert meta["description"] == "v2"


@pytest.mark.parametrize("ctype", ["application/json", "application/xml", "application/json; charset=utf-8"])
def test_structured_types_rejected(client, member, ctype):
    _, headers = member
    assert _upload(client, headers, b"{}", ctype).status_code == 415


def test_upload_requires_credentials(client, member):
    _, headers = member
    r = client.post("/documents", data=b"x", content_type="text/plain", headers={"X-Access-Key": headers["X-Access-Key"]})
    assert r.status_code == 401


def test_is_compatible():
    assert is_compatible("image/png", "image/*")
    assert is_compatible("image/png; q=1", "image/png")
    assert is_compatible("text/plain", "*/*")
    assert not is_compatible("text/plain", "image/*")
    assert not is_compatible("image/png", "image/jpeg")


def test_query_documents(client, member):
    _, headers = member
    small = int(_upload(client, headers, b"ab", "text/plain", "short note").get_data())
    large = int(_upload(client, headers, b"\x89PNG" + b"0" * 60, "image/png", "photo").get_data())

    def ids(query):
        r = client.get(f"/documents{query}", headers=headers)
        assert r.status_code == 200, r.get_json()
        return [d["id"] for d in r.get_json()]

    assert ids("") == [small, large]
    assert ids("?type-fragment=image") == [large]
    assert ids("?description-fragment=note") == [small]
    assert ids("?min-size=10") == [large]
    assert ids("?max-size=10") == [small]
    assert ids(f"?hash={hashlib.sha256(b'ab').hexdigest()}") == [small]
    assert ids("?paging-offset=1") == [large]
    assert client.get("/documents?hash=abc", headers=headers).status_code == 400


def test_delete_is_admin_only(client, member, admin):
    _, headers = member
    _, admin_headers = admin
    doc_id = int(_upload(client, headers, b"bye", "text/plain").get_data())
    r = client.delete(f"/documents/{doc_id}", headers=headers)
    assert r.status_code == 403
    assert r.get_json()["detail"] == "admin_required"
    r = client.delete(f"/documents/{doc_id}", headers=admin_headers)
    assert r.status_code == 200
    assert client.get(f"/documents/{doc_id}").status_code == 404
    assert client.delete(f"/documents/{doc_id}", headers=admin_headers).status_code == 404


def test_referenced_document_cannot_be_deleted(client, member, admin):
    _, headers = member
    _, admin_headers = admin
    doc_id = int(_upload(client, headers, b"\x89PNG-avatar", "image/png").get_data())
    r = client.post("/victuals", json={"alias": "Kale", "avatar-reference": doc_id}, headers=headers)
    assert r.status_code == 201
    r = client.delete(f"/documents/{doc_id}", headers=admin_headers)
    assert r.status_code == 409
    assert r.get_json()["detail"] == "document_in_use"
