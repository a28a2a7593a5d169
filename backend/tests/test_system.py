# Overview: Pytest coverage for the health endpoint, error bodies, CORS and CLI commands.

from retailops.models import Branch, Product, Stock, Warehouse


def test_health_reports_counts(client, make_product, branch):
    make_product()

    resp = client.get("/health")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "healthy"
    details = body["checks"]["database"]["details"]
    assert details["products"] == 1
    assert details["branches"] == 1
    assert details["pending_stock_requests"] == 0


def test_unknown_route_is_json(client):
    resp = client.get("/nowhere")

    assert resp.status_code == 404
    assert resp.get_json() == {"message": "Resource not found"}


def test_wrong_method_is_json(client):
    resp = client.patch("/products")

    assert resp.status_code == 405
    assert resp.get_json()["message"] == "Method not allowed"


def test_cors_allowed_origin(client):
    resp = client.get("/health", headers={"Origin": "http://localhost:5173"})

    assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"


def test_cors_unknown_origin(client):
    resp = client.get("/health", headers={"Origin": "http://evil.example"})

    assert "Access-Control-Allow-Origin" not in resp.headers


def test_seed_demo(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["retail", "seed-demo", "--company-id", "5"])

    assert result.exit_code == 0, result.output
    assert db_session.query(Product).filter_by(company_id=5).count() == 3
    assert db_session.query(Warehouse).filter_by(company_id=5).count() == 1
    assert db_session.query(Branch).filter_by(company_id=5).count() == 1
    espresso = db_session.query(Product).filter_by(sku="COF-001").one()
    assert espresso.quantity == 60
    assert db_session.query(Stock).filter_by(product_id=espresso.id).one().quantity == 60


def test_seed_demo_skips_existing_company(app, db_session, make_product):
    make_product(company_id=5)
    runner = app.test_cli_runner()

    result = runner.invoke(args=["retail", "seed-demo", "--company-id", "5"])

    assert result.exit_code == 0
    assert "already has products" in result.output
    assert db_session.query(Product).filter_by(company_id=5).count() == 1
