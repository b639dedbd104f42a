import argparse

from expiry_guard.main import create_app
from expiry_guard.seed import reset_inventory, seed_inventory


def parse_args():
    parser = argparse.ArgumentParser(description="Seed sample inventory data.")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Clear existing data before seeding.",
    )
    return parser.parse_args()


def main():
    args = parse_args()
    app = create_app()

    if args.reset:
        reset_inventory(app.store)

    added = seed_inventory(app)
    if not added:
        print("Seed skipped: products already exist.")
        return
    app.refresh_notifications()
    print("Seed data created: {} batch(es).".format(added))


if __name__ == "__main__":
    main()
