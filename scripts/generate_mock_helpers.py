import pandas as pd
import numpy as np
from datetime import datetime, timedelta

CATEGORIES = ["plumbing", "electrical", "cleaning", "carpentry", "painting", "ac-repair"]


def generate_mock_helpers(num_helpers=200, output_file="mock_helpers.csv", seed=None):
    """
    Generates a realistic pool of helpers scattered around a city centre.
    Most sit within the broadcast radius, a tail sits far outside it so the
    radius filter (and the fallback) have something to do.
    """
    rng = np.random.default_rng(seed)

    # Hyderabad city centre
    CENTER_LAT = 17.3850
    CENTER_LON = 78.4867

    now = datetime.utcnow()
    data = []

    for helper_index in range(num_helpers):
        # 90% within ~20km (roughly 0.18 degrees), 10% far away
        spread = 0.18 if rng.random() < 0.9 else 2.0
        lat = CENTER_LAT + rng.uniform(-spread, spread)
        lon = CENTER_LON + rng.uniform(-spread, spread)

        # one or two categories per helper
        categories = rng.choice(CATEGORIES, size=rng.integers(1, 3), replace=False)
        has_rating = rng.random() < 0.85
        completed_jobs = int(rng.integers(0, 150))

        data.append({
            "helper_id": f"h_{str(helper_index + 1).zfill(4)}",
            "full_name": f"Helper {helper_index + 1}",
            "lat": np.round(lat, 6),
            "lon": np.round(lon, 6),
            "service_categories": "|".join(categories),
            "is_approved": bool(rng.random() < 0.95),
            "is_online": bool(rng.random() < 0.6),
            "is_available_now": bool(rng.random() < 0.3),
            "is_on_job": bool(rng.random() < 0.1),
            "hourly_rate": float(np.round(rng.uniform(150, 800), 0)),
            "rating": float(np.round(rng.uniform(3.0, 5.0), 1)) if has_rating else None,
            "total_reviews": int(completed_jobs * rng.uniform(0.3, 0.9)),
            "completed_jobs": completed_jobs,
            "avg_response_time_minutes": float(np.round(rng.exponential(15), 1)),
            "verification_count": int(rng.integers(0, 4)),
            "background_check_verified": bool(rng.random() < 0.5),
            "has_immediate_slot": bool(rng.random() < 0.4),
            "has_same_day_slot": bool(rng.random() < 0.7),
            "last_active_at": (now - timedelta(minutes=int(rng.integers(0, 72 * 60)))).isoformat(),
        })

    df = pd.DataFrame(data)
    df.to_csv(output_file, index=False)
    print(f"✅ Generated {num_helpers} helpers and saved to '{output_file}'")

    print("\nHelpers per category:")
    counts = df["service_categories"].str.split("|").explode().value_counts()
    for name, count in counts.items():
        print(f"  {name}: {count}")

    return df


if __name__ == "__main__":
    generate_mock_helpers(num_helpers=200)
