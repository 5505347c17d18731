"""
Locust Load Test Suite

Needs a bus and route already in the database:
  BUS_ID=1 ROUTE_ID=1 TRAVEL_DATE=2025-12-24 locust -f locustfile.py ...

Run scenarios:
  locust -f locustfile.py --tags contention   # Test double-booking
  locust -f locustfile.py --tags throughput   # Test availability reads
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
from datetime import date, timedelta

from locust import HttpUser, between, events, tag, task

BUS_ID = int(os.environ.get("BUS_ID", "1"))
ROUTE_ID = int(os.environ.get("ROUTE_ID", "1"))
CAPACITY = int(os.environ.get("BUS_CAPACITY", "40"))
TRAVEL_DATE = os.environ.get("TRAVEL_DATE", (date.today() + timedelta(days=30)).isoformat())

# Shared state
BOOKING_IDS = []


def booking_payload(seats, travel_date=TRAVEL_DATE):
    return {
        "bus_id": BUS_ID,
        "route_id": ROUTE_ID,
        "travel_date": travel_date,
        "seat_numbers": seats,
        "passenger_name": f"Load Passenger {random.randint(1000, 9999)}",
        "passenger_phone": f"07{random.randint(10000000, 99999999)}",
    }


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Target: bus {BUS_ID}, route {ROUTE_ID}, travel date {TRAVEL_DATE}")
    print("=" * 60)


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    print("\nVerify no seat is held twice:")
    print("  SELECT seat, COUNT(*) FROM bookings, json_array_elements_text(seat_numbers::json) seat")
    print(f"  WHERE bus_id = {BUS_ID} AND travel_date = '{TRAVEL_DATE}' AND status <> 'cancelled'")
    print("  GROUP BY seat HAVING COUNT(*) > 1;")
    print("Should return no rows.\n")


class ContentionUser(HttpUser):
    """
    TEST 1: Contention - many users, few seats, one bus/date

    Run: locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    Every request picks 1-3 seats from the first row block, so most
    requests overlap. 201 and 409 are both correct answers.
    """
    wait_time = between(0, 0.1)

    @tag("contention")
    @task
    def book_contended_seats(self):
        seats = random.sample(range(1, 9), random.randint(1, 3))
        with self.client.post(
            "/api/v1/bookings/",
            json=booking_payload(seats),
            name="/api/v1/bookings/ [contended]",
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                BOOKING_IDS.append(resp.json()["id"])
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: seat taken
            elif resp.status_code == 503:
                resp.failure("Reservation timeout")
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("contention")
    @task
    def cancel_and_free(self):
        """Cancelling returns seats to the pool for the next round."""
        if not BOOKING_IDS:
            return
        booking_id = BOOKING_IDS.pop(random.randrange(len(BOOKING_IDS)))
        self.client.post(
            f"/api/v1/bookings/{booking_id}/cancel",
            name="/api/v1/bookings/{id}/cancel",
        )


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - availability reads while bookings are written

    Run: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s

    Reads take no locks; compare latency with and without ContentionUser running.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def availability(self):
        self.client.get(
            "/api/v1/bookings/availability",
            params={"bus_id": BUS_ID, "travel_date": TRAVEL_DATE},
            name="/api/v1/bookings/availability",
        )

    @tag("throughput", "read")
    @task(3)
    def seat_layout(self):
        self.client.get(
            f"/api/v1/buses/{BUS_ID}/seat-layout",
            params={"travel_date": TRAVEL_DATE},
            name="/api/v1/buses/{id}/seat-layout",
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

    def _expect(self, name, payload, allowed):
        with self.client.post(
            "/api/v1/bookings/", json=payload, name=name, catch_response=True
        ) as resp:
            if resp.status_code in allowed:
                resp.success()
            else:
                resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_bus(self):
        self._expect("unknown bus", {**booking_payload([1]), "bus_id": 999999}, [404])

    @tag("edge")
    @task
    def empty_seat_set(self):
        self._expect("empty seats", booking_payload([]), [400])

    @tag("edge")
    @task
    def out_of_range_seat(self):
        self._expect("seat out of range", booking_payload([CAPACITY + 1]), [400])

    @tag("edge")
    @task
    def duplicate_seat(self):
        self._expect("duplicate seat", booking_payload([3, 3]), [400])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings/",
            data="not json at all",
            name="malformed json",
            catch_response=True,
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Mostly checking availability, some bookings spread over a week of dates.
    """
    wait_time = between(1, 3)

    @task(50)
    def check_availability(self):
        self.client.get(
            "/api/v1/bookings/availability",
            params={"bus_id": BUS_ID, "travel_date": TRAVEL_DATE},
            name="/api/v1/bookings/availability",
        )

    @task(10)
    def book_free_seat(self):
        travel_date = (date.fromisoformat(TRAVEL_DATE) + timedelta(days=random.randint(0, 6))).isoformat()
        resp = self.client.get(
            "/api/v1/bookings/availability",
            params={"bus_id": BUS_ID, "travel_date": travel_date},
            name="/api/v1/bookings/availability",
        )
        if resp.status_code != 200 or not resp.json()["available_seats"]:
            return
        seat = random.choice(resp.json()["available_seats"])
        with self.client.post(
            "/api/v1/bookings/",
            json=booking_payload([seat], travel_date),
            catch_response=True,
        ) as booked:
            # Someone else may have taken it since the availability read.
            if booked.status_code in [201, 409]:
                booked.success()
