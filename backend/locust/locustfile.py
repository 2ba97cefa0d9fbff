"""
Locust Load Test Suite

Needs a seeded studio with a public trainer and service:
  TRAINER_ID=1 SERVICE_ID=1 locust -f locustfile.py

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test double booking
  locust -f locustfile.py --tags throughput   # Test availability cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
from datetime import date, datetime, time, timedelta, timezone

from locust import HttpUser, between, events, tag, task

TRAINER_ID = int(os.environ.get("TRAINER_ID", "1"))
SERVICE_ID = int(os.environ.get("SERVICE_ID", "1"))

# Every concurrency user races for this one slot
CONTESTED_SLOT = datetime.combine(
    date.today() + timedelta(days=14), time(10, 0), tzinfo=timezone.utc
)


def random_email():
    return f"load_{random.randint(10000, 99999)}@test.com"


def public_booking(scheduled_at: datetime, **overrides) -> dict:
    body = {
        "trainer_id": TRAINER_ID,
        "service_id": SERVICE_ID,
        "scheduled_at": scheduled_at.isoformat(),
        "first_name": "Load",
        "last_name": "Test",
        "email": random_email(),
    }
    body.update(overrides)
    return body


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Trainer {TRAINER_ID}, service {SERVICE_ID}, contested slot {CONTESTED_SLOT.isoformat()}")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users -> 1 slot

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM bookings
      WHERE trainer_id = X AND scheduled_at = '<slot>'
        AND status IN ('soft-hold', 'confirmed', 'checked-in');
    Should be 1
    """
    wait_time = between(0, 0.1)

    @tag("concurrency")
    @task
    def book_contested_slot(self):
        with self.client.post(
            "/api/v1/public/bookings",
            json=public_booking(CONTESTED_SLOT),
            name="/api/v1/public/bookings [contested]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()  # 409: slot taken
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Availability cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. With REDIS_ENABLED=false, run again

    Compare avg response time, requests/sec and P95/P99 latency.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def week_availability(self):
        start = date.today() + timedelta(days=random.randint(0, 3))
        self.client.get(
            f"/api/v1/availability/{TRAINER_ID}",
            params={"startDate": start.isoformat(), "endDate": (start + timedelta(days=6)).isoformat()},
            name="/api/v1/availability/{trainer_id} [cached]",
        )

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_trainer(self):
        with self.client.post(
            "/api/v1/public/bookings",
            json=public_booking(CONTESTED_SLOT, trainer_id=999999),
            catch_response=True,
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def bad_email(self):
        with self.client.post(
            "/api/v1/public/bookings",
            json=public_booking(CONTESTED_SLOT, email="nope"),
            catch_response=True,
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def inverted_range(self):
        today = date.today()
        with self.client.get(
            f"/api/v1/availability/{TRAINER_ID}",
            params={"startDate": (today + timedelta(days=5)).isoformat(), "endDate": today.isoformat()},
            catch_response=True,
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/public/bookings",
            data="not json at all",
            catch_response=True,
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"scheduled_at": CONTESTED_SLOT.isoformat(), "duration_minutes": 60},
            catch_response=True,
        ) as resp:
            self._expect(resp, [401])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Mostly availability reads, some public bookings on random slots.
    """
    wait_time = between(1, 3)

    @task(50)
    def browse_availability(self):
        start = date.today()
        self.client.get(
            f"/api/v1/availability/{TRAINER_ID}",
            params={"startDate": start.isoformat(), "endDate": (start + timedelta(days=13)).isoformat()},
            name="/api/v1/availability/{trainer_id}",
        )

    @task(10)
    def book_random_slot(self):
        scheduled_at = datetime.combine(
            date.today() + timedelta(days=random.randint(1, 30)),
            time(random.randint(6, 20), random.choice([0, 30])),
            tzinfo=timezone.utc,
        )
        with self.client.post(
            "/api/v1/public/bookings",
            json=public_booking(scheduled_at),
            name="/api/v1/public/bookings",
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")
