import random
from datetime import date, timedelta

from silver_journal import create_app
from silver_journal.journal import append_guard_entries, save_notes

GUARD_POSTS = ["North Pass", "Iron Gate", "Bell Tower", "East Wall"]


def main():
    app = create_app()
    with app.app_context():
        app.init_storage(create_tables=True)
        journal = app.get_journal()

        remaining = 5000
        start = date(2025, 9, 1)
        for i in range(40):
            day = (start + timedelta(days=i)).isoformat()
            spent = random.choice([0, 0, 50, 120, 300])
            remaining = max(0, remaining + random.randint(80, 400) - spent)
            journal.records.upsert(day, str(remaining), str(spent), f"Sample day {i + 1}")
            if i % 3 == 0:
                append_guard_entries(journal.guard_inputs, day, random.sample(GUARD_POSTS, 2))

        save_notes(journal.notes, {"note1": "Daily bounty board", "note2": "Weekly sect defence"})
    print(f"Sample data generated in {app.config['DATA_DIR']}")


if __name__ == "__main__":
    main()
