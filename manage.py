import argparse
import logging
import sys

from infrastructure.config import Settings, build_store


COMMANDS = ("ready", "migrate-up", "migrate-down", "reset")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Points ledger store maintenance.")
    parser.add_argument("command", choices=COMMANDS)
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    store = build_store(settings)

    if args.command == "ready":
        ready = store.ready()
        print("ready" if ready else "not ready")
        return 0 if ready else 1
    if args.command == "migrate-up":
        store.migrate_up()
    elif args.command == "migrate-down":
        store.migrate_down()
    else:
        store.reset()
    return 0


if __name__ == "__main__":
    sys.exit(main())
