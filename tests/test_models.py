"""Testing guidance for every Pydantic model.

Each test below exercises both the happy-path construction and the validation
errors for a specific model. When introducing a new Pydantic model, add a new
test that instantiates it with valid data and asserts the validators by feeding
invalid payloads as well.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from Athletes.donation import Donation
from Athletes.financial_aid import FinancialAidApplication
from Facilities.booking import Booking
from Facilities.structure import Facility
from Users.user import User, UserProfile


def test_user_email_normalization_and_validation() -> None:
    """Ensure a valid User email is normalized to lowercase."""
    user = User(name="Ada", email="Ada.Lovelace@Example.COM")

    assert user.email == "ada.lovelace@example.com"
    assert user.role == "user"
    assert user.favorites == []


def test_user_invalid_email_raises_value_error() -> None:
    """Ensure User rejects malformed email addresses."""
    with pytest.raises(ValueError, match="Invalid email address format"):
        User(name="Ada", email="invalid-email")


def test_user_favorites_are_deduplicated() -> None:
    """Ensure repeated facility references collapse to one, first occurrence kept."""
    first, second = uuid4(), uuid4()
    user = User(name="Ada", email="ada@example.com", favorites=[first, second, first])

    assert user.favorites == [first, second]


def test_user_favorite_set_operations_round_trip() -> None:
    """Ensure adding then removing a favorite restores the original set."""
    existing, added = uuid4(), uuid4()
    user = User(name="Ada", email="ada@example.com", favorites=[existing])

    with_added = user.with_favorite(added)
    restored = user.model_copy(update={"favorites": with_added}).without_favorite(added)

    assert with_added == [existing, added]
    assert user.with_favorite(existing) == [existing]
    assert restored == [existing]
    assert user.without_favorite(added) == [existing]


def test_user_accepts_null_lists_from_the_store() -> None:
    user = User(name="Ada", email="ada@example.com", favorites=None, sport_preferences=None)

    assert user.favorites == []
    assert user.sport_preferences == []


def test_user_profile_hides_private_columns() -> None:
    """Ensure the profile view drops the password hash and favorites."""
    record = User(name="Ada", email="ada@example.com").to_dict()
    record["password"] = "hash"
    record["reset_password_token"] = "token"

    profile = UserProfile.from_record(record)
    dumped = profile.model_dump()

    assert "password" not in dumped
    assert "favorites" not in dumped
    assert "reset_password_token" not in dumped
    assert profile.email == "ada@example.com"


def test_facility_rejects_negative_price() -> None:
    """Ensure the Facility validator refuses negative pricing."""
    with pytest.raises(ValueError, match="Facility price must not be negative"):
        Facility(name="Arena", location="Colombo", price_per_hour=-1)


def test_facility_accepts_valid_payload() -> None:
    facility = Facility(name="Arena", location="Colombo", price_per_hour=25.0, images=["a.png"])

    assert facility.to_dict()["images"] == ["a.png"]
    assert facility.to_dict()["id"] == str(facility.id)


def test_booking_validates_timestamp_ordering() -> None:
    """Ensure Booking raises when last_modified_at precedes created_at."""
    created_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
    with pytest.raises(ValueError, match="invalid timestamps"):
        Booking(
            user_id=uuid4(),
            facility_id=uuid4(),
            date=created_at,
            time_slot="10:00-11:00",
            created_at=created_at,
            last_modified_at=created_at - timedelta(hours=1),
        )


def test_booking_embeds_facility_summary() -> None:
    facility_id = uuid4()
    booking = Booking(
        user_id=uuid4(),
        facility_id=facility_id,
        date=datetime(2024, 5, 1, tzinfo=timezone.utc),
        time_slot="10:00-11:00",
        facility={"id": facility_id, "name": "Arena", "location": "Colombo", "images": []},
    )

    assert booking.status == "upcoming"
    assert booking.facility is not None
    assert booking.facility.name == "Arena"
    assert booking.trainer is None


def test_donation_requires_positive_amount() -> None:
    with pytest.raises(ValueError, match="Donation amount must be positive"):
        Donation(donor_id=uuid4(), athlete_id=uuid4(), amount=0)


def test_financial_aid_requires_positive_amount() -> None:
    with pytest.raises(ValueError, match="amount_requested must be positive"):
        FinancialAidApplication(user_id=uuid4(), sport="cricket", reason="fees", amount_requested=0)

    application = FinancialAidApplication(
        user_id=uuid4(), sport="cricket", reason="fees", amount_requested=150
    )
    assert application.status == "pending"
