import uuid
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from flask import Flask, Response, flash, g, redirect, render_template, request, session, url_for
from waitress import serve

from config import (
    API_URL,
    DISPLAY_TZ,
    ENV,
    HOST,
    PORT,
    REPORT_PAGE_SIZE,
    SECRET_KEY,
    SECURE_COOKIES,
    SESSION,
    TOKEN_MAX_AGE_DAYS,
)
from api import Gateway, AuthAPI, CategoryAPI, OrderAPI
from exceptions import AuthenticationRequired, ExportFailed, GatewayError, ValidationFailed
from session_store import SessionStore, login_required, admin_required
from services.order_filters import FilterState, from_args, to_query
from services.order_list import OrderListState, ViewRegistry, category_name, fetch_orders
from services.csv_export import build_csv, collect_orders, export_filename
from services.reports import build_report
from services.forms import parse_category_form, parse_order_form, parse_register_form
from logger import get_logger

log = get_logger("admin")

if ENV == "LIVE" and not SECRET_KEY:
    raise RuntimeError("SECRET_KEY must be set when ENV=LIVE")

app = Flask(__name__)
app.secret_key = SECRET_KEY
app.config.update(
    API_URL=API_URL,
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SAMESITE="Lax",
    SESSION_COOKIE_SECURE=SECURE_COOKIES,
    PERMANENT_SESSION_LIFETIME=timedelta(days=TOKEN_MAX_AGE_DAYS),
)

# one OrderListState per open browser session
views = ViewRegistry()


# ---------------- Display helpers ----------------
TZ = ZoneInfo(DISPLAY_TZ)

def _to_dt_utc(value):
    # value can be ISO string or datetime
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        s = str(value).strip()
        try:
            dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def local_ts(value, fmt="%b %d, %Y · %I:%M %p"):
    dt_utc = _to_dt_utc(value)
    if not dt_utc:
        return ""
    return dt_utc.astimezone(TZ).strftime(fmt)

@app.template_filter("order_date")
def order_date(value):
    # calendar date as entered, no timezone shift
    if not value:
        return ""
    try:
        dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return str(value)
    return f"{dt:%b} {dt.day}, {dt.year}"

@app.template_filter("money")
def money(value):
    try:
        return f"Rs {float(value or 0):,.2f}"
    except (TypeError, ValueError):
        return "Rs 0.00"

app.jinja_env.filters["local_ts"] = local_ts


# ---------------- Request lifecycle ----------------
@app.before_request
def open_session_store():
    g.store = SessionStore.init(request.cookies, session)


@app.after_request
def persist_session_store(response):
    store = g.get("store")
    if store is not None:
        store.persist(response, session)
    return response


@app.context_processor
def inject_user():
    store = g.get("store")
    return {
        "current_user": store.user if store else None,
        "is_admin": bool(store and store.is_admin),
    }


def gateway() -> Gateway:
    gw = g.get("gateway")
    if gw is None:
        store = g.store
        gw = Gateway(
            SESSION,
            token_provider=store.get_token,
            on_unauthorized=lambda: store.teardown("401 from API"),
            base_url=app.config["API_URL"],
        )
        g.gateway = gw
    return gw


def current_view() -> OrderListState:
    view_id = session.get("view_id")
    if not view_id:
        view_id = uuid.uuid4().hex
        session["view_id"] = view_id
    return views.get(view_id)


def forget_view() -> None:
    view_id = session.pop("view_id", None)
    if view_id:
        views.discard(view_id)


@app.errorhandler(AuthenticationRequired)
def handle_auth_required(err):
    # Gateway already tore the session down; just send them to login.
    forget_view()
    flash("Your session has expired. Please log in again.", "error")
    return redirect(url_for("login"))


@app.errorhandler(GatewayError)
def handle_gateway_error(err):
    log.error(f"Unhandled API error on {request.path}: {err.method} {err.path} status={err.status} {err}")
    return render_template("error.html", message=str(err)), 502


# ---------------- Auth ----------------
@app.route("/")
def index():
    if g.store.is_authenticated:
        return redirect(url_for("dashboard"))
    return redirect(url_for("login"))


@app.route("/login", methods=["GET", "POST"])
def login():
    if request.method == "POST":
        email = (request.form.get("email") or "").strip()
        password = request.form.get("password") or ""
        if not email or not password:
            flash("Email and password are required.", "error")
            return render_template("login.html", email=email), 400
        try:
            user = g.store.login(AuthAPI(gateway()), email, password)
        except GatewayError as e:
            # includes 401: bad credentials, not an expired session
            log.warning(f"Login failed for {email}: {e}")
            flash(str(e) or "Invalid email or password", "error")
            return render_template("login.html", email=email), 401
        flash(f"Welcome back, {user.display_name}.", "success")
        return redirect(url_for("dashboard"))

    if g.store.is_authenticated:
        return redirect(url_for("dashboard"))
    return render_template("login.html", email="")


@app.route("/register", methods=["GET", "POST"])
def register():
    form = {}
    errors = {}
    if request.method == "POST":
        form = request.form
        try:
            fields = parse_register_form(form)
            user = g.store.register_user(AuthAPI(gateway()), fields)
        except ValidationFailed as e:
            errors = e.errors
        except GatewayError as e:
            flash(str(e) or "Something went wrong", "error")
        else:
            if user is None:
                flash("Account created. Please log in.", "success")
                return redirect(url_for("login"))
            flash("Account created.", "success")
            return redirect(url_for("dashboard"))
    return render_template("register.html", form=form, errors=errors), (400 if errors else 200)


@app.route("/logout", methods=["GET", "POST"])
def logout():
    g.store.logout()
    forget_view()
    flash("You have been logged out.", "success")
    return redirect(url_for("login"))


# ---------------- Orders ----------------
@app.route("/orders")
@login_required
def orders_list():
    gw = gateway()
    state = current_view()
    state.update_from_args(request.args)
    state.load(OrderAPI(gw), CategoryAPI(gw))

    for category, message in state.drain_notifications():
        flash(message, category)

    snap = state.snapshot()
    return render_template("orders/list.html", query=to_query(snap["filters"]), **snap)


@app.route("/orders/export")
@login_required
def orders_export():
    gw = gateway()
    state = current_view()
    filters = from_args(request.args, state.filters)

    try:
        orders = collect_orders(OrderAPI(gw), filters)
    except ExportFailed as e:
        log.error(f"Export failed: {e.reason}")
        flash("Failed to export orders", "error")
        return redirect(url_for("orders_list"))

    if state.categories is None:
        state.load_categories(CategoryAPI(gw))

    text = build_csv(orders, state.categories)
    log.info(f"Exported {len(orders)} orders ({to_query(filters)})")

    response = Response(text, mimetype="text/csv")
    response.headers["Content-Disposition"] = f"attachment; filename={export_filename()}"
    return response


def _categories_or_flash(gw):
    try:
        return CategoryAPI(gw).list()
    except AuthenticationRequired:
        raise
    except GatewayError as e:
        log.warning(f"Category fetch failed: {e}")
        flash("Failed to fetch categories", "error")
        return []


@app.route("/orders/new", methods=["GET", "POST"])
@login_required
def order_new():
    gw = gateway()
    errors = {}
    form = request.form if request.method == "POST" else {}

    if request.method == "POST":
        try:
            fields = parse_order_form(form)
            created = OrderAPI(gw).create(fields)
        except ValidationFailed as e:
            errors = e.errors
        except AuthenticationRequired:
            raise
        except GatewayError as e:
            flash(str(e) or "Failed to create order", "error")
        else:
            log.info(f"Order created: {created.order_id or created.id}")
            flash("Order created successfully", "success")
            return redirect(url_for("orders_list"))

    return render_template(
        "orders/form.html",
        order=None,
        form=form,
        errors=errors,
        categories=_categories_or_flash(gw),
    ), (400 if errors else 200)


@app.route("/orders/<order_id>")
@login_required
def order_detail(order_id):
    gw = gateway()
    orders = OrderAPI(gw)
    try:
        order = orders.get(order_id)
    except AuthenticationRequired:
        raise
    except GatewayError as e:
        log.warning(f"Order {order_id} fetch failed: {e}")
        flash("Failed to fetch order", "error")
        return redirect(url_for("orders_list"))

    try:
        orders.mark_viewed(order_id)
    except AuthenticationRequired:
        raise
    except GatewayError as e:
        log.warning(f"Could not mark order {order_id} viewed: {e}")

    try:
        categories = CategoryAPI(gw).list()
    except AuthenticationRequired:
        raise
    except GatewayError as e:
        log.warning(f"Category fetch failed: {e}")
        categories = None

    return render_template(
        "orders/detail.html",
        order=order,
        category=category_name(order.category, categories),
    )


@app.route("/orders/<order_id>/edit", methods=["GET", "POST"])
@login_required
def order_edit(order_id):
    gw = gateway()
    orders = OrderAPI(gw)
    errors = {}

    try:
        order = orders.get(order_id)
        categories = CategoryAPI(gw).list()
    except AuthenticationRequired:
        raise
    except GatewayError as e:
        log.warning(f"Order {order_id} load failed: {e}")
        flash("Failed to load order", "error")
        return redirect(url_for("orders_list"))

    form = request.form if request.method == "POST" else {}
    if request.method == "POST":
        try:
            orders.update(order_id, parse_order_form(form))
        except ValidationFailed as e:
            errors = e.errors
        except AuthenticationRequired:
            raise
        except GatewayError as e:
            flash(str(e) or "Failed to update order", "error")
        else:
            log.info(f"Order updated: {order_id}")
            flash("Order updated successfully", "success")
            return redirect(url_for("orders_list"))

    return render_template(
        "orders/form.html",
        order=order,
        form=form,
        errors=errors,
        categories=categories,
    ), (400 if errors else 200)


@app.route("/orders/<order_id>/delete", methods=["POST"])
@login_required
def order_delete(order_id):
    try:
        OrderAPI(gateway()).delete(order_id)
    except AuthenticationRequired:
        raise
    except GatewayError as e:
        log.warning(f"Order {order_id} delete failed: {e}")
        flash("Failed to delete order", "error")
    else:
        log.info(f"Order deleted: {order_id}")
        flash("Order deleted successfully", "success")
    return redirect(url_for("orders_list"))


# ---------------- Categories ----------------
@app.route("/categories")
@login_required
def categories_list():
    return render_template("categories/list.html", categories=_categories_or_flash(gateway()))


@app.route("/categories/new", methods=["GET", "POST"])
@login_required
def category_new():
    errors = {}
    form = request.form if request.method == "POST" else {}
    if request.method == "POST":
        try:
            CategoryAPI(gateway()).create(parse_category_form(form))
        except ValidationFailed as e:
            errors = e.errors
        except AuthenticationRequired:
            raise
        except GatewayError as e:
            flash(str(e) or "Failed to create category", "error")
        else:
            flash("Category created successfully", "success")
            return redirect(url_for("categories_list"))
    return render_template("categories/form.html", category=None, form=form, errors=errors), (400 if errors else 200)


@app.route("/categories/<category_id>/edit", methods=["GET", "POST"])
@login_required
def category_edit(category_id):
    categories = CategoryAPI(gateway())
    try:
        category = categories.get(category_id)
    except AuthenticationRequired:
        raise
    except GatewayError as e:
        log.warning(f"Category {category_id} fetch failed: {e}")
        flash("Failed to fetch category", "error")
        return redirect(url_for("categories_list"))

    errors = {}
    form = request.form if request.method == "POST" else {}
    if request.method == "POST":
        try:
            categories.update(category_id, parse_category_form(form))
        except ValidationFailed as e:
            errors = e.errors
        except AuthenticationRequired:
            raise
        except GatewayError as e:
            flash(str(e) or "Failed to update category", "error")
        else:
            flash("Category updated successfully", "success")
            return redirect(url_for("categories_list"))
    return render_template("categories/form.html", category=category, form=form, errors=errors), (400 if errors else 200)


@app.route("/categories/<category_id>/delete", methods=["POST"])
@login_required
def category_delete(category_id):
    try:
        CategoryAPI(gateway()).delete(category_id)
    except AuthenticationRequired:
        raise
    except GatewayError as e:
        log.warning(f"Category {category_id} delete failed: {e}")
        flash("Failed to delete category", "error")
    else:
        flash("Category deleted successfully", "success")
    return redirect(url_for("categories_list"))


# ---------------- Reports ----------------
@app.route("/dashboard")
@login_required
def dashboard():
    start_date = (request.args.get("startDate") or "").strip()
    end_date = (request.args.get("endDate") or "").strip()
    filters = FilterState(start_date=start_date, end_date=end_date, page_size=REPORT_PAGE_SIZE)

    result = fetch_orders(OrderAPI(gateway()), filters)
    if result.ok:
        report = build_report(result.records)
    else:
        flash("Failed to fetch orders", "error")
        report = build_report([])

    return render_template(
        "dashboard.html",
        report=report,
        chart=report.chart_data(),
        start_date=start_date,
        end_date=end_date,
    )


@app.route("/dashboard/export")
@login_required
def dashboard_export():
    params = {
        "startDate": (request.args.get("startDate") or "").strip(),
        "endDate": (request.args.get("endDate") or "").strip(),
    }
    try:
        text = OrderAPI(gateway()).export_csv(params)
    except AuthenticationRequired:
        raise
    except GatewayError as e:
        log.error(f"Report export failed: {e}")
        flash("Failed to export report", "error")
        return redirect(url_for("dashboard", **params))

    response = Response(text, mimetype="text/csv")
    response.headers["Content-Disposition"] = (
        f"attachment; filename=reports-{date.today().isoformat()}.csv"
    )
    return response


# ---------------- Admin ----------------
@app.route("/admin")
@admin_required
def admin_home():
    try:
        users = AuthAPI(gateway()).list_users()
    except AuthenticationRequired:
        raise
    except GatewayError as e:
        log.warning(f"User list failed: {e}")
        flash("Failed to fetch users", "error")
        users = []
    return render_template("admin.html", users=users)


@app.route("/admin/seed-admin", methods=["POST"])
@admin_required
def admin_seed():
    try:
        AuthAPI(gateway()).seed_admin()
    except AuthenticationRequired:
        raise
    except GatewayError as e:
        flash(str(e) or "Failed to seed admin", "error")
    else:
        flash("Admin account seeded", "success")
    return redirect(url_for("admin_home"))


def main():
    log.info(f"===== ADMIN START: env={ENV} api={API_URL} =====")
    if ENV == "LIVE":
        serve(app, host=HOST, port=PORT)
    else:
        # For local dev only. Production runs under waitress.
        app.run(host=HOST, port=PORT, debug=True)


if __name__ == "__main__":
    main()
