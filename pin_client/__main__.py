#!/usr/bin/env python3
"""PIN client - Unified entry point.

Automatically detects mode:
- No arguments → Terminal status monitor
- With arguments → Headless CLI mode
- status → Show runtime status of a running client
"""

import sys
import json

from dotenv import load_dotenv


def main():
    """Main entry point."""
    load_dotenv()
    args = sys.argv[1:]

    # Handle 'status' command - reads the running client's runtime.json
    if args and args[0] == "status":
        from .runtime import get_status
        status = get_status()
        print(json.dumps(status, indent=2))
        sys.exit(0 if status.get("connected") else 1)

    # Flags that should still launch the monitor (not CLI mode)
    tui_only_flags = {'-v', '--verbose'}
    verbose = '-v' in args or '--verbose' in args

    has_cli_args = bool([a for a in args if a not in tui_only_flags])

    if has_cli_args:
        # Headless CLI mode
        from .cli import main as cli_main
        cli_main()
    else:
        # Interactive monitor
        from .tui import PinMonitorApp
        app = PinMonitorApp(verbose=verbose)
        app.run()


if __name__ == "__main__":
    main()
