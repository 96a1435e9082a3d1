"""Export, restore or wipe the saved score keeper data.

Usage:
    python bin/backup.py export [<file>]   write a backup to <file> (default: stdout)
    python bin/backup.py import <file>     replace all saved data with a backup
    python bin/backup.py reset             delete all saved data

Storage is picked from the SCORE_* environment variables.
"""

import sys
from pathlib import Path

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from scoring.logic.exceptions import ImportFormatError, PersistenceError
from scoring.session.backup import export_data, factory_reset, import_data
from scoring.session.factory import create_store
from scoring.session.settings import ScoreKeeperSettings
from shared.logging import setup_logging
from shared.storage import SqliteKeyValueStore


def main(argv: list[str]) -> int:
    if len(argv) < 2 or argv[1] not in {"export", "import", "reset"} or (argv[1] == "import" and len(argv) != 3):
        print(__doc__)
        return 1

    settings = ScoreKeeperSettings()
    setup_logging(settings.log_dir, name="backup")
    store = create_store(settings)
    command = argv[1]

    try:
        if command == "export":
            document = export_data(store, settings.key_prefix)
            if len(argv) > 2:
                Path(argv[2]).write_text(document, encoding="utf-8")
                print(f"Backup written to {argv[2]}")
            else:
                print(document)
        elif command == "import":
            restored = import_data(store, Path(argv[2]).read_bytes(), settings.key_prefix)
            print(f"Restored {restored} records.")
        else:
            answer = input("This deletes all players, history and the active game. Type 'yes' to continue: ")
            if answer.strip().lower() != "yes":
                print("Aborted.")
                return 1
            removed = factory_reset(store, settings.key_prefix)
            print(f"Deleted {removed} records.")
    except ImportFormatError as e:
        print(f"Invalid backup file: {e}")
        return 1
    except (PersistenceError, OSError) as e:
        print(f"Error: {e}")
        return 1
    finally:
        if isinstance(store, SqliteKeyValueStore):
            store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
