import json
import random
import uuid
from typing import Any

from sqlalchemy import text

from faithbliss.auth.security import hash_password
from faithbliss.schemas import ChurchAttendance, Denomination, FaithJourney, RelationshipGoal
from faithbliss.services.profiles import default_preferences

SEED_EMAIL_DOMAIN = "seed.faithbliss.dev"

FIRST_NAMES = {
    "MALE": ["David", "Samuel", "Joshua", "Daniel", "Caleb", "Nathan", "Elijah", "Isaac", "Micah", "Jonah"],
    "FEMALE": ["Grace", "Hannah", "Esther", "Ruth", "Naomi", "Abigail", "Miriam", "Leah", "Deborah", "Lydia"],
}
CITIES = ["Lagos, Nigeria", "Abuja, Nigeria", "Accra, Ghana", "Nairobi, Kenya", "Houston, USA", "London, UK"]
HOBBIES = ["Reading", "Hiking", "Cooking", "Music", "Travel", "Photography", "Volunteering", "Football"]
VERSES = ["Jeremiah 29:11", "Philippians 4:13", "Proverbs 3:5-6", "Romans 8:28", "Psalm 23:1"]


def _seed_user(rng: random.Random, idx: int, password_hash: str) -> tuple[dict[str, Any], dict[str, Any]]:
    gender = "MALE" if idx % 2 == 0 else "FEMALE"
    age = rng.randint(21, 45)
    denomination = rng.choice(list(Denomination)).value
    user = {
        "id": str(uuid.uuid4()),
        "email": f"seed_{idx:04d}@{SEED_EMAIL_DOMAIN}",
        "password_hash": password_hash,
        "name": rng.choice(FIRST_NAMES[gender]),
        "gender": gender,
        "age": age,
        "denomination": denomination,
        "location": rng.choice(CITIES),
        "bio": "Seed profile for local development.",
        "faith_journey": rng.choice(list(FaithJourney)).value,
        "sunday_activity": rng.choice(list(ChurchAttendance)).value,
        "favorite_verse": rng.choice(VERSES),
        "hobbies": json.dumps(rng.sample(HOBBIES, 3)),
        "looking_for": json.dumps([rng.choice(list(RelationshipGoal)).value]),
        "profile_photo_1": f"https://picsum.photos/seed/fb{idx}a/600/800",
        "profile_photo_2": f"https://picsum.photos/seed/fb{idx}b/600/800",
    }
    prefs = default_preferences(gender, denomination, age)
    return user, prefs


def seed_dummy_data(db, n_users: int = 40, reset: bool = False, seed: int = 42, password: str = "faithbliss123") -> dict[str, Any]:
    rng = random.Random(seed)
    if reset:
        db.execute(
            text("DELETE FROM user_account WHERE email LIKE :pattern"),
            {"pattern": f"%@{SEED_EMAIL_DOMAIN}"},
        )

    password_hash = hash_password(password)
    created = 0
    for idx in range(n_users):
        user, prefs = _seed_user(rng, idx, password_hash)
        row = db.execute(
            text(
                """
                INSERT INTO user_account (
                  id, email, password_hash, name, gender, age, denomination, location, bio,
                  faith_journey, sunday_activity, favorite_verse, hobbies, looking_for,
                  profile_photo_1, profile_photo_2, onboarding_completed, is_verified
                )
                VALUES (
                  :id, :email, :password_hash, :name, :gender, :age, :denomination, :location, :bio,
                  :faith_journey, :sunday_activity, :favorite_verse, CAST(:hobbies AS jsonb), CAST(:looking_for AS jsonb),
                  :profile_photo_1, :profile_photo_2, TRUE, :is_verified
                )
                ON CONFLICT (email) DO NOTHING
                RETURNING id
                """
            ),
            dict(user, is_verified=rng.random() < 0.3),
        ).first()
        if not row:
            continue
        db.execute(
            text(
                """
                INSERT INTO user_preferences (
                  user_id, preferred_gender, preferred_denomination, min_age, max_age, max_distance
                )
                VALUES (CAST(:user_id AS uuid), :preferred_gender, CAST(:preferred_denomination AS jsonb), :min_age, :max_age, :max_distance)
                ON CONFLICT (user_id) DO NOTHING
                """
            ),
            {
                "user_id": user["id"],
                "preferred_gender": prefs["preferred_gender"],
                "preferred_denomination": json.dumps(prefs["preferred_denomination"]),
                "min_age": prefs["min_age"],
                "max_age": prefs["max_age"],
                "max_distance": prefs["max_distance"],
            },
        )
        created += 1
    db.commit()
    return {"requested": n_users, "created": created, "email_domain": SEED_EMAIL_DOMAIN, "password": password}
