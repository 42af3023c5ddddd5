"""
Storefront load testing with Locust

Run against a server with a seeded catalog:
    flask --app backend/wsgi.py catalog create --name "Load Tee" --price-cents 1500 --stock 500
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5000

Or headless:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5000 \
           --users 20 --spawn-rate 5 --run-time 60s --headless

Environment:
- LOAD_PRODUCT_IDS: comma-separated product ids to buy (default "1")
- LOAD_ADMIN_USERNAME / LOAD_ADMIN_PASSWORD: enables the admin user class

Pass thresholds:
- p95 response time < 500ms for reads
- p95 response time < 1000ms for checkout and admin writes
- Error rate < 1% (a 409 for sold-out stock is an expected outcome, not an error)

After a run, orders placed + remaining stock must equal the seeded stock;
`flask orders delete-all --yes` puts every unit back.
"""

import os
import random
import time
from typing import Dict, List, Optional

from locust import HttpUser, task, between, events


# =============================================================================
# CONFIGURATION
# =============================================================================

PRODUCT_IDS = [int(pid) for pid in os.environ.get("LOAD_PRODUCT_IDS", "1").split(",") if pid.strip()]
ADMIN_USERNAME = os.environ.get("LOAD_ADMIN_USERNAME")
ADMIN_PASSWORD = os.environ.get("LOAD_ADMIN_PASSWORD")


# =============================================================================
# METRICS TRACKING
# =============================================================================

class MetricsCollector:
    """Collect per-endpoint latencies and outcomes."""

    def __init__(self):
        self.request_counts: Dict[str, int] = {}
        self.error_counts: Dict[str, int] = {}
        self.sold_out_counts: Dict[str, int] = {}
        self.response_times: Dict[str, List[float]] = {}

    def record(self, name: str, response_time: float, success: bool, sold_out: bool = False):
        if name not in self.request_counts:
            self.request_counts[name] = 0
            self.error_counts[name] = 0
            self.sold_out_counts[name] = 0
            self.response_times[name] = []

        self.request_counts[name] += 1
        if sold_out:
            self.sold_out_counts[name] += 1
        elif not success:
            self.error_counts[name] += 1
        self.response_times[name].append(response_time)

    def get_summary(self) -> Dict:
        summary = {}
        for name in self.request_counts:
            times = sorted(self.response_times[name])
            count = len(times)
            if count == 0:
                continue
            p95_idx = min(int(count * 0.95), count - 1)
            summary[name] = {
                "count": self.request_counts[name],
                "errors": self.error_counts[name],
                "sold_out": self.sold_out_counts[name],
                "error_rate": self.error_counts[name] / count * 100,
                "avg_ms": sum(times) / count,
                "p95_ms": times[p95_idx],
            }
        return summary


metrics = MetricsCollector()


def _timed(name: str, request, ok=(200,), sold_out=()):
    start = time.time()
    response = request()
    elapsed = (time.time() - start) * 1000
    metrics.record(name, elapsed, response.status_code in ok, sold_out=response.status_code in sold_out)
    return response


# =============================================================================
# USER BEHAVIORS
# =============================================================================

class ShopperUser(HttpUser):
    """Guest shopper: checks health, then buys one or two units."""
    wait_time = between(0.2, 1)
    weight = 5

    @task(6)
    def checkout(self):
        items = [
            {"product_id": pid, "quantity": random.randint(1, 2)}
            for pid in random.sample(PRODUCT_IDS, k=min(len(PRODUCT_IDS), random.randint(1, 2)))
        ]
        _timed(
            "checkout",
            lambda: self.client.post(
                "/api/checkout",
                json={
                    "items": items,
                    "payment_method": random.choice(["COD", "BankTransfer"]),
                    "user_name": "Load Tester",
                    "phone": "+1 555 0199",
                    "address": "99 Load Ave",
                },
                name="checkout",
            ),
            ok=(201,),
            sold_out=(409,),
        )

    @task(1)
    def health_check(self):
        _timed("system/health", lambda: self.client.get("/health", name="system/health"))


class AdminUser(HttpUser):
    """Admin watching the order board and nudging stock."""
    wait_time = between(0.5, 2)
    weight = 1

    token: Optional[str] = None

    def on_start(self):
        if not (ADMIN_USERNAME and ADMIN_PASSWORD):
            self.stop()
            return
        response = self.client.post(
            "/api/admin/login",
            json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
            name="admin/login",
        )
        if response.status_code == 200:
            self.token = response.json().get("token")

    def _headers(self) -> Dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    @task(4)
    def list_orders(self):
        _timed("admin/orders", lambda: self.client.get("/api/admin/orders", headers=self._headers(),
                                                       name="admin/orders"))

    @task(1)
    def restock(self):
        pid = random.choice(PRODUCT_IDS)
        _timed(
            "admin/stock_adjust",
            lambda: self.client.post(
                f"/api/admin/products/{pid}/stock/adjust",
                json={"delta": random.randint(1, 3)},
                headers=self._headers(),
                name="admin/stock_adjust",
            ),
        )


# =============================================================================
# EVENT HANDLERS
# =============================================================================

@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print summary when test stops."""
    print("\n" + "=" * 80)
    print("LOAD TEST SUMMARY")
    print("=" * 80)
    print(f"\n{'Endpoint':<24} {'Count':>8} {'SoldOut':>8} {'Errors':>8} {'Err%':>8} {'Avg(ms)':>10} {'P95(ms)':>10}")
    print("-" * 80)

    all_pass = True
    for name, stats in sorted(metrics.get_summary().items()):
        p95_threshold = 1000 if name in ("checkout", "admin/stock_adjust") else 500
        passed = stats["p95_ms"] < p95_threshold and stats["error_rate"] < 1
        all_pass = all_pass and passed
        print(
            f"{name:<24} {stats['count']:>8} {stats['sold_out']:>8} {stats['errors']:>8} "
            f"{stats['error_rate']:>7.2f}% {stats['avg_ms']:>9.1f} {stats['p95_ms']:>9.1f} "
            f"[{'PASS' if passed else 'FAIL'}]"
        )

    print("=" * 80)
    print("\n[PASS] All endpoints within thresholds" if all_pass else "\n[FAIL] Some endpoints exceeded thresholds")
    print("=" * 80)
