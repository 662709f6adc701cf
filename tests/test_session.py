import json
import os
import stat

from cafe_order_server.session import MAX_RECENT_ORDERS, SessionManager

from .conftest import make_draft


def test_carts_are_per_session(tmp_path):
    sessions = SessionManager(str(tmp_path / "session.json"))

    sessions.cart("a").add_item(make_draft("3.00"))

    assert sessions.cart("a").item_count == 1
    assert sessions.cart("b").is_empty
    assert sessions.cart("a") is sessions.cart("a")


def test_drop_forgets_cart(tmp_path):
    sessions = SessionManager(str(tmp_path / "session.json"))
    sessions.cart("a").add_item(make_draft("3.00"))

    sessions.drop("a")
    sessions.drop("never-used")

    assert sessions.cart("a").is_empty


def test_guest_profile_is_persisted(tmp_path):
    path = tmp_path / "session.json"
    sessions = SessionManager(str(path))

    sessions.remember_guest("Ana", "0612345678")
    sessions.record_order("order-1")

    reloaded = SessionManager(str(path))
    assert reloaded.profile.name == "Ana"
    assert reloaded.profile.phone == "0612345678"
    assert reloaded.profile.recent_order_ids == ["order-1"]
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600


def test_recent_orders_newest_first_and_capped(tmp_path):
    sessions = SessionManager(str(tmp_path / "session.json"))

    for i in range(MAX_RECENT_ORDERS + 2):
        sessions.record_order(f"order-{i}")
    sessions.record_order("order-5")

    recent = sessions.profile.recent_order_ids
    assert recent[0] == "order-5"
    assert len(recent) == MAX_RECENT_ORDERS
    assert recent.count("order-5") == 1


def test_unreadable_file_is_ignored(tmp_path, caplog):
    path = tmp_path / "session.json"
    path.write_text("{not json")

    sessions = SessionManager(str(path))

    assert sessions.profile.name is None
    assert "Ignoring unreadable session file" in caplog.text


def test_clear_profile_removes_file(tmp_path):
    path = tmp_path / "session.json"
    sessions = SessionManager(str(path))
    sessions.remember_guest("Ana", "0612345678")

    sessions.clear_profile()

    assert not path.exists()
    assert sessions.profile.name is None


def test_profile_file_format(tmp_path):
    path = tmp_path / "session.json"
    SessionManager(str(path)).remember_guest("Ana", "0612345678")

    assert json.loads(path.read_text()) == {
        "name": "Ana",
        "phone": "0612345678",
        "recent_order_ids": [],
    }


def test_unwritable_profile_file_is_logged(tmp_path, caplog):
    sessions = SessionManager(str(tmp_path / "missing" / "session.json"))

    sessions.remember_guest("Ana", "0612345678")
    sessions.record_order("order-1")

    assert sessions.profile.name == "Ana"
    assert sessions.profile.recent_order_ids == ["order-1"]
    assert "Could not save guest profile" in caplog.text


def test_find_cart_never_creates(tmp_path):
    sessions = SessionManager(str(tmp_path / "session.json"))

    assert sessions.find_cart("a") is None
    assert sessions.carts == {}

    cart = sessions.cart("a")
    assert sessions.find_cart("a") is cart
