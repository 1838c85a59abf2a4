import logging
import os
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import List

import pandas as pd

from dispatch.dispatcher import Dispatcher
from dispatch.errors import AlreadyAssignedError, TerminalStateError
from dispatch.policy import dispatch_policy_from_env
from helpers.models import HelperProfile
from notifications.channels import InMemoryChannel
from service_requests.models import Category, ServiceRequest, Urgency
from store.memory import InMemoryDispatchStore


def _optional(value):
    return None if pd.isna(value) else value


def load_helpers(filepath="mock_helpers.csv") -> List[HelperProfile]:
    # Resolve the path relative to the repo root so the script runs from anywhere.
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    df = pd.read_csv(os.path.join(base_dir, filepath))

    helpers = []
    for _, row in df.iterrows():
        last_active = _optional(row["last_active_at"])
        helpers.append(
            HelperProfile.new(
                str(row["helper_id"]),
                _optional(row["lat"]),
                _optional(row["lon"]),
                categories=str(row["service_categories"]).split("|"),
                full_name=row["full_name"],
                is_approved=bool(row["is_approved"]),
                is_online=bool(row["is_online"]),
                is_available_now=bool(row["is_available_now"]),
                is_on_job=bool(row["is_on_job"]),
                hourly_rate=float(row["hourly_rate"]),
                rating=_optional(row["rating"]),
                total_reviews=int(row["total_reviews"]),
                completed_jobs=int(row["completed_jobs"]),
                avg_response_time_minutes=_optional(row["avg_response_time_minutes"]),
                verification_count=int(row["verification_count"]),
                background_check_verified=bool(row["background_check_verified"]),
                has_immediate_slot=bool(row["has_immediate_slot"]),
                has_same_day_slot=bool(row["has_same_day_slot"]),
                last_active_at=datetime.fromisoformat(last_active) if last_active else None,
            )
        )
    return helpers


def run_simulation():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")
    print("=== STARTING END-TO-END DISPATCH SIMULATION ===")

    # 1. Load Data
    helpers = load_helpers("mock_helpers.csv")
    print(f"Loaded {len(helpers)} helpers.\n")

    # 2. Configure System
    store = InMemoryDispatchStore()
    store.add_helpers(helpers)
    store.set_customer_name("cust_1", "Priya")
    store.add_request(
        ServiceRequest(
            id="req_1",
            customer_id="cust_1",
            category_id="cat_plumbing",
            category=Category(id="cat_plumbing", name="Plumbing", slug="plumbing"),
            location=(17.3850, 78.4867),
            service_address="Banjara Hills, Road No. 12",
            estimated_price=499,
            urgency=Urgency.IMMEDIATE,
        )
    )
    channel = InMemoryChannel()
    dispatcher = Dispatcher(store, channel, policy=dispatch_policy_from_env())

    # 3. Broadcast
    outcome = dispatcher.broadcast("req_1")
    print(f"[BROADCAST] {outcome.message} (round {outcome.round})")
    rows = store.list_broadcasts("req_1")
    for row in rows[:5]:
        print(f"  {row.helper_id}: {row.distance_km}km")

    # 4. Everyone who was notified taps "Accept" at once
    contenders = [row.helper_id for row in rows[:8]]
    winners, losers = [], []

    def attempt(helper_id):
        try:
            dispatcher.accept("req_1", helper_id)
            winners.append(helper_id)
        except AlreadyAssignedError:
            losers.append(helper_id)

    with ThreadPoolExecutor(max_workers=len(contenders) or 1) as pool:
        list(pool.map(attempt, contenders))
    print(f"\n[ACCEPT] winner={winners} losers={len(losers)}")

    # 5. Winner drops the job before starting; it goes back out
    if winners:
        outcome = dispatcher.cancel_by_helper("req_1", winners[0])
        print(f"[CANCEL] {outcome.message} (round {outcome.round})")

        second = next((row.helper_id for row in store.list_broadcasts("req_1")), None)
        if second:
            dispatcher.accept("req_1", second)
            dispatcher.start_work("req_1", second)
            dispatcher.complete("req_1")
            print(f"[COMPLETE] request finished by {second}")

    # 6. Completed requests can never be broadcast again
    try:
        dispatcher.rebroadcast("req_1")
    except TerminalStateError as exc:
        print(f"[TERMINAL] {exc.message}")

    print("\n=== SIMULATION COMPLETE ===")
    print(f"Pushes delivered: {len(channel.delivered)}")
    print(f"Store: {store.stats()}")


if __name__ == "__main__":
    run_simulation()
