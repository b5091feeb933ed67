"""
End-to-end route tests for the Flask dashboard (admin.py), driven through
Flask's test client against the FakeHTTP orders API from conftest.py.
"""
from conftest import ADMIN_LOGIN, CATEGORIES, ORDERS, login


def _orders_api(fake_http, orders=ORDERS, total=None):
    body = orders if total is None else {"data": orders, "total": total}
    fake_http.route("GET", "/categories", body=CATEGORIES)
    fake_http.route("GET", "/orders", body=body)


# ── auth ─────────────────────────────────────────────────────────────────────

class TestAuth:
    def test_anonymous_redirected_to_login(self, client):
        resp = client.get("/orders")
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/login")

    def test_login_sets_token_cookie(self, client, fake_http):
        resp = login(client, fake_http, ADMIN_LOGIN)
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/dashboard")
        assert client.get_cookie("token").value == "tok-admin"

    def test_bad_credentials(self, client, fake_http):
        fake_http.route("POST", "/auth/login", status=401, body={"message": "Invalid credentials"})
        resp = client.post("/login", data={"email": "a@b.c", "password": "x"})
        assert resp.status_code == 401
        assert b"Invalid credentials" in resp.data
        assert client.get_cookie("token") is None

    def test_logout_clears_cookie(self, admin_client):
        resp = admin_client.get("/logout")
        assert resp.headers["Location"].endswith("/login")
        assert admin_client.get_cookie("token") is None
        assert admin_client.get("/orders").status_code == 302

    def test_register_then_login_when_no_token(self, client, fake_http):
        fake_http.route("POST", "/auth/register", body={"success": True})
        resp = client.post("/register", data={
            "name": "Ann", "lastname": "Lee", "email": "ann@example.com", "password": "pw",
        })
        assert resp.headers["Location"].endswith("/login")

    def test_401_clears_session_and_redirects_once(self, admin_client, fake_http):
        fake_http.route("GET", "/categories", body=CATEGORIES)
        fake_http.route("GET", "/orders", status=401, body={"message": "jwt expired"})

        resp = admin_client.get("/orders")
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/login")
        assert admin_client.get_cookie("token") is None

        # the login page is reached directly, no further redirect chain
        page = admin_client.get(resp.headers["Location"])
        assert page.status_code == 200
        assert b"session has expired" in page.data


class TestAdminGate:
    def test_non_admin_redirected(self, user_client):
        resp = user_client.get("/admin")
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/dashboard")

    def test_admin_sees_users(self, admin_client, fake_http):
        fake_http.route("GET", "/auth/users", body=[{"_id": "u9", "email": "z@example.com", "role": "user"}])
        resp = admin_client.get("/admin")
        assert resp.status_code == 200
        assert b"z@example.com" in resp.data


# ── order list ───────────────────────────────────────────────────────────────

class TestOrderList:
    def test_renders_rows_and_category_names(self, admin_client, fake_http):
        _orders_api(fake_http)
        resp = admin_client.get("/orders")
        assert resp.status_code == 200
        assert b"Alice" in resp.data
        assert b"Tools" in resp.data
        assert b"Garden" in resp.data
        assert b"Rs 7.50" in resp.data

    def test_rows_without_ids_keep_their_own_category(self, admin_client, fake_http):
        rows = [{"orderId": "N1", "customer": "Nia", "category": "c1", "amount": 2},
                {"orderId": "N2", "customer": "Ola", "category": "c2", "amount": 3}]
        _orders_api(fake_http, orders=rows)
        html = admin_client.get("/orders").get_data(as_text=True)
        assert html.index("Tools", html.index("Nia")) < html.index("Ola")
        assert "Garden" in html[html.index("Ola"):]

    def test_filter_change_requests_page_one(self, admin_client, fake_http):
        _orders_api(fake_http, total=40)
        admin_client.get("/orders?page=3")
        admin_client.get("/orders?search=bob&page=3")
        sent = [c.params for c in fake_http.calls_to("GET", "/orders")]
        assert sent[0]["page"] == 3
        assert sent[1] == {"search": "bob", "page": 1, "pageSize": 10}

    def test_page_change_keeps_filters(self, admin_client, fake_http):
        _orders_api(fake_http, total=40)
        admin_client.get("/orders?category=c1")
        admin_client.get("/orders?page=2")
        last = fake_http.calls_to("GET", "/orders")[-1].params
        assert last == {"category": "c1", "page": 2, "pageSize": 10}

    def test_pagination_controls(self, admin_client, fake_http):
        _orders_api(fake_http, total=25)
        resp = admin_client.get("/orders")
        assert b"Showing <strong>1</strong> to <strong>10</strong>" in resp.data
        assert b"of <strong>25</strong> results" in resp.data

    def test_failure_keeps_previous_rows(self, admin_client, fake_http):
        _orders_api(fake_http)
        admin_client.get("/orders")
        fake_http.route("GET", "/orders", status=500, body={"message": "boom"})

        resp = admin_client.get("/orders?search=zzz")
        assert resp.status_code == 200
        assert b"Failed to fetch orders" in resp.data
        assert b"Alice" in resp.data

    def test_failure_on_first_load_renders_empty(self, admin_client, fake_http):
        fake_http.route("GET", "/categories", body=CATEGORIES)
        fake_http.fail("GET", "/orders")
        resp = admin_client.get("/orders")
        assert resp.status_code == 200
        assert b"No orders" in resp.data
        assert b"Failed to fetch orders" in resp.data


# ── export ───────────────────────────────────────────────────────────────────

class TestExport:
    def test_download(self, admin_client, fake_http):
        _orders_api(fake_http)
        resp = admin_client.get("/orders/export?search=a")
        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert "attachment; filename=orders-" in resp.headers["Content-Disposition"]
        assert resp.get_data(as_text=True).splitlines() == [
            "Order ID,Customer,Category,Date,Source,Amount",
            "O1,Alice,Tools,2024-01-05,Web,5.00",
            "O2,Bob,Garden,2024-01-06,App,7.50",
        ]
        params = fake_http.calls_to("GET", "/orders")[-1].params
        assert params["search"] == "a"
        assert params["pageSize"] == 1000

    def test_download_leaves_no_pending_flash(self, admin_client, fake_http):
        _orders_api(fake_http)
        admin_client.get("/orders/export")
        with admin_client.session_transaction() as sess:
            assert not any("exported" in msg for _, msg in sess.get("_flashes", []))

    def test_failure_redirects_without_download(self, admin_client, fake_http):
        fake_http.route("GET", "/orders", status=503, body={"message": "down"})
        resp = admin_client.get("/orders/export")
        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/orders")
        assert "Content-Disposition" not in resp.headers


# ── order CRUD ───────────────────────────────────────────────────────────────

class TestOrderCrud:
    def test_create_validation_error(self, admin_client, fake_http):
        fake_http.route("GET", "/categories", body=CATEGORIES)
        resp = admin_client.post("/orders/new", data={"customer": "A"})
        assert resp.status_code == 400
        assert b"Customer name must be at least 2 characters" in resp.data
        assert b"Amount is required" in resp.data
        assert not fake_http.calls_to("POST", "/orders")

    def test_create_success(self, admin_client, fake_http):
        fake_http.route("POST", "/orders", status=201, body={"_id": "o3", "orderId": "O3"})
        resp = admin_client.post("/orders/new", data={
            "customer": "Cara", "category": "c1", "date": "2024-02-01",
            "source": "Web", "geo": "Goa", "amount": "3",
        })
        assert resp.headers["Location"].endswith("/orders")
        assert fake_http.calls_to("POST", "/orders")[0].json["amount"] == 3.0

    def test_create_api_error_flashes(self, admin_client, fake_http):
        fake_http.route("GET", "/categories", body=CATEGORIES)
        fake_http.route("POST", "/orders", status=400, body={"message": "Category not found"})
        resp = admin_client.post("/orders/new", data={
            "customer": "Cara", "category": "c9", "date": "2024-02-01",
            "source": "Web", "geo": "Goa", "amount": "3",
        })
        assert resp.status_code == 200
        assert b"Category not found" in resp.data

    def test_detail_marks_viewed(self, admin_client, fake_http):
        fake_http.route("GET", "/orders/o1", body=ORDERS[0])
        fake_http.route("PATCH", "/orders/o1/viewed", body={"ok": True})
        fake_http.route("GET", "/categories", body=CATEGORIES)
        resp = admin_client.get("/orders/o1")
        assert resp.status_code == 200
        assert b"Tools" in resp.data
        assert fake_http.calls_to("PATCH", "/orders/o1/viewed")

    def test_edit_prefills_form(self, admin_client, fake_http):
        fake_http.route("GET", "/orders/o1", body=ORDERS[0])
        fake_http.route("GET", "/categories", body=CATEGORIES)
        resp = admin_client.get("/orders/o1/edit")
        assert resp.status_code == 200
        assert b'value="Alice"' in resp.data
        assert b'value="5.00"' in resp.data

    def test_edit_missing_order_redirects(self, admin_client, fake_http):
        fake_http.route("GET", "/orders/nope", status=404, body={"message": "not found"})
        resp = admin_client.get("/orders/nope/edit")
        assert resp.headers["Location"].endswith("/orders")

    def test_delete(self, admin_client, fake_http):
        fake_http.route("DELETE", "/orders/o1", body={"ok": True})
        resp = admin_client.post("/orders/o1/delete")
        assert resp.headers["Location"].endswith("/orders")
        assert fake_http.calls_to("DELETE", "/orders/o1")


# ── categories ───────────────────────────────────────────────────────────────

class TestCategories:
    def test_list(self, admin_client, fake_http):
        fake_http.route("GET", "/categories", body=CATEGORIES)
        resp = admin_client.get("/categories")
        assert b"garden" in resp.data

    def test_create(self, admin_client, fake_http):
        fake_http.route("POST", "/categories", status=201, body={"_id": "c3", "name": "Books"})
        resp = admin_client.post("/categories/new", data={"name": "Books", "description": ""})
        assert resp.headers["Location"].endswith("/categories")
        assert fake_http.calls_to("POST", "/categories")[0].json == {"name": "Books"}

    def test_update(self, admin_client, fake_http):
        fake_http.route("GET", "/categories/c1", body=CATEGORIES[0])
        fake_http.route("PUT", "/categories/c1", body={"_id": "c1", "name": "Hand Tools"})
        resp = admin_client.post("/categories/c1/edit", data={"name": "Hand Tools"})
        assert resp.headers["Location"].endswith("/categories")

    def test_delete_failure_flashes(self, admin_client, fake_http):
        fake_http.route("DELETE", "/categories/c1", status=409, body={"message": "in use"})
        resp = admin_client.post("/categories/c1/delete", follow_redirects=False)
        assert resp.headers["Location"].endswith("/categories")
        fake_http.route("GET", "/categories", body=CATEGORIES)
        page = admin_client.get("/categories")
        assert b"Failed to delete category" in page.data


# ── reports ──────────────────────────────────────────────────────────────────

class TestDashboard:
    def test_charts_data(self, admin_client, fake_http):
        fake_http.route("GET", "/orders", body=ORDERS)
        resp = admin_client.get("/dashboard?startDate=2024-01-01")
        assert resp.status_code == 200
        assert b"Orders by Source" in resp.data
        assert b'"sources": ["Web", "App"]' in resp.data or b'"sources":["Web","App"]' in resp.data
        params = fake_http.calls_to("GET", "/orders")[-1].params
        assert params["startDate"] == "2024-01-01"
        assert params["pageSize"] == 1000

    def test_server_export(self, admin_client, fake_http):
        fake_http.route("GET", "/orders/export", body="id,amount\n1,2", content_type="text/csv")
        resp = admin_client.get("/dashboard/export?startDate=2024-01-01")
        assert resp.get_data(as_text=True) == "id,amount\n1,2"
        assert "filename=reports-" in resp.headers["Content-Disposition"]
        assert fake_http.calls_to("GET", "/orders/export")[0].params == {"startDate": "2024-01-01"}
