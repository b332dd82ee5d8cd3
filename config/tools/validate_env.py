# config/tools/validate_env.py

import sys           # for exit codes
from pprint import pprint  # for structured printing
from dataclasses import asdict

# make src discoverable if running as a script
from pathlib import Path
# __file__ is .../config/tools/validate_env.py
# parents[2] is the project root; append ROOT/src
PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.append(str(PROJECT_ROOT / "src"))

from env.loader import load_console_config, resolve_event_log  # import our loader


def main(argv=None) -> int:
    """Load and print the resolved console config, failing fast on errors."""
    argv = sys.argv[1:] if argv is None else argv
    path = Path(argv[0]) if argv else None
    try:
        config = load_console_config(path)
    except (FileNotFoundError, ValueError) as e:
        print("Config validation FAILED:", file=sys.stderr)
        print(repr(e), file=sys.stderr)
        return 1                             # non-zero exit: CI will mark as failed

    print("Config validation OK.")
    print("\nServer:")
    pprint(asdict(config.server))
    print("\nTask limits:")
    pprint(asdict(config.tasks))
    print("\nEvent log:", resolve_event_log(config) or "disabled")
    return 0


if __name__ == "__main__":
    sys.exit(main())  # run main() only when script is executed directly
