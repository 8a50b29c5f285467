import pytest

from storefront.db.sqlite import (
    add_doc,
    add_session,
    count_login_failures,
    delete_doc,
    delete_user_sessions,
    find_session,
    get_doc,
    increment_field,
    kv_delete,
    kv_get,
    kv_set,
    prune_expired_sessions,
    prune_login_failures,
    query_docs,
    record_login_failure,
    set_doc,
    update_doc,
)
from storefront.errors import NotFoundError


class TestDocuments:
    def test_add_and_get(self):
        doc_id = add_doc("things", {"name": "a"})

        doc = get_doc("things", doc_id)

        assert doc == {"id": doc_id, "name": "a"}

    def test_set_doc_merge(self):
        set_doc("things", "x", {"a": 1, "b": 2})
        set_doc("things", "x", {"b": 3}, merge=True)
        assert get_doc("things", "x") == {"id": "x", "a": 1, "b": 3}

        set_doc("things", "x", {"c": 4})
        assert get_doc("things", "x") == {"id": "x", "c": 4}

    def test_update_missing_raises(self):
        with pytest.raises(NotFoundError):
            update_doc("things", "ghost", {"a": 1})

    def test_delete_reports_whether_removed(self):
        doc_id = add_doc("things", {"a": 1})
        assert delete_doc("things", doc_id) is True
        assert delete_doc("things", doc_id) is False

    def test_query_filters_orders_and_limits(self):
        add_doc("things", {"n": 2, "tag": "x", "labels": ["red"]})
        add_doc("things", {"n": 1, "tag": "x", "labels": []})
        add_doc("things", {"n": 3, "tag": "y", "labels": ["red"]})
        add_doc("things", {"tag": "x"})
        add_doc("other", {"n": 0, "tag": "x"})

        docs = query_docs("things", where=[("tag", "==", "x")], order_by="n")
        assert [d.get("n") for d in docs] == [1, 2, None]

        docs = query_docs("things", order_by="n", descending=True, limit=2)
        assert [d["n"] for d in docs] == [3, 2]

        docs = query_docs("things", where=[("labels", "array-contains", "red"), ("n", ">", 2)])
        assert [d["n"] for d in docs] == [3]

        docs = query_docs("things", where=[("tag", "in", ["y"])])
        assert len(docs) == 1

    def test_increment_field(self):
        doc_id = add_doc("coupons", {"used_count": 0})
        increment_field("coupons", doc_id, "used_count")
        increment_field("coupons", doc_id, "used_count")
        assert get_doc("coupons", doc_id)["used_count"] == 2


class TestKeyValue:
    def test_set_get_overwrite(self):
        assert kv_get("c1", "k") is None
        kv_set("c1", "k", "v1")
        kv_set("c1", "k", "v2")
        assert kv_get("c1", "k") == "v2"
        assert kv_get("c2", "k") is None

    def test_delete_some_or_all(self):
        kv_set("c1", "a", "1")
        kv_set("c1", "b", "2")
        kv_delete("c1", ["a"])
        assert kv_get("c1", "a") is None
        assert kv_get("c1", "b") == "2"

        kv_delete("c1")
        assert kv_get("c1", "b") is None


class TestSessionTables:
    def test_prune_expired_sessions(self):
        add_session("old", "u1", "2000-01-01T00:00:00+00:00")
        add_session("new", "u1", "2999-01-01T00:00:00+00:00")

        assert prune_expired_sessions("2024-06-01T00:00:00+00:00") == 1

        assert find_session("old") is None
        assert find_session("new") is not None

    def test_delete_user_sessions(self):
        add_session("a", "u1", "2999-01-01T00:00:00+00:00")
        add_session("b", "u1", "2999-01-01T00:00:00+00:00")
        add_session("c", "u2", "2999-01-01T00:00:00+00:00")

        assert delete_user_sessions("u1") == 2
        assert find_session("c") is not None

    def test_prune_login_failures(self):
        record_login_failure("sam@shop.test")

        assert prune_login_failures("2000-01-01T00:00:00+00:00") == 0
        assert prune_login_failures("2999-01-01T00:00:00+00:00") == 1
        assert count_login_failures("sam@shop.test", "2000-01-01T00:00:00+00:00") == 0
